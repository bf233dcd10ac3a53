# src/main.py
"""CLI entry point: convert, preview, inspect commands.

Usage:
    epubzip convert <files...> -o DIR [--bundle] [--jobs N] [--level L]
    epubzip preview <files...>
    epubzip inspect <file>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from epubzip.version import __version__

if TYPE_CHECKING:
    from epubzip.config.settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from pydantic import ValidationError

    from epubzip.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def cli_entry() -> None:
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="epubzip",
        description=f"epubzip v{__version__}: extract EPUB images into numbered ZIP archives",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- convert ---
    p_convert = subparsers.add_parser(
        "convert", help="Convert EPUB files into NNN.zip image archives",
    )
    p_convert.add_argument(
        "files", type=Path, nargs="+",
        help="EPUB files or directories containing them",
    )
    p_convert.add_argument(
        "-o", "--output", type=Path, default=Path("./output"),
        help="Output directory (default: ./output)",
    )
    p_convert.add_argument(
        "--bundle", action="store_true",
        help="Also write the bundled download archive",
    )
    p_convert.add_argument(
        "--jobs", type=int, default=None,
        help="Maximum concurrent conversions (default: from settings)",
    )
    p_convert.add_argument(
        "--level", type=int, default=None,
        help="ZIP compression level 0-9 (default: from settings)",
    )
    p_convert.set_defaults(func=_cmd_convert)

    # --- preview ---
    p_preview = subparsers.add_parser(
        "preview", help="Show the output names a conversion would assign",
    )
    p_preview.add_argument("files", type=Path, nargs="+", help="EPUB files or directories")
    p_preview.set_defaults(func=_cmd_preview)

    # --- inspect ---
    p_inspect = subparsers.add_parser(
        "inspect", help="Show metadata and image statistics of one EPUB",
    )
    p_inspect.add_argument("file", type=Path, help="Path to EPUB")
    p_inspect.set_defaults(func=_cmd_inspect)

    return parser


async def _cmd_convert(args: argparse.Namespace, settings: Settings) -> int:
    """Convert books and write the resulting archives."""
    from epubzip.batch.intake import read_candidates
    from epubzip.core.errors import AggregationError
    from epubzip.pipeline.session import ConversionSession
    from epubzip.storage.local_writer import LocalWriter

    try:
        candidates = read_candidates(args.files)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 1

    session = ConversionSession(settings=settings)
    try:
        session.configure(max_concurrent_jobs=args.jobs, compression_level=args.level)
    except ValueError as exc:
        logger.error("Invalid option: %s", exc)
        return 1

    report = session.add_files(candidates)
    for rejected in report.rejected:
        print(f"  Rejected: {rejected.name} ({rejected.reason})")

    summary = await session.start()
    if summary is None:
        logger.error("Nothing to convert")
        return 1

    writer = LocalWriter(args.output)
    written = await writer.write_results(summary.results)
    if args.bundle:
        try:
            artifact = await session.download_all()
        except AggregationError as exc:
            logger.error("Bundle not written: %s", exc)
        else:
            if artifact.file_name not in written:
                written.append(await writer.write_artifact(artifact))

    print("\nConversion complete:")
    for result in summary.results:
        outcome = "ok" if result.success else f"failed ({result.error_code}: {result.error})"
        print(f"  {result.original_name} -> {result.file_name}: {outcome}")
    print(f"  Result:   {summary.message}")
    print(f"  Written:  {len(written)} files to {args.output}")
    print(f"  Duration: {summary.duration_seconds:.1f}s")
    return 0 if summary.failed == 0 else 1


async def _cmd_preview(args: argparse.Namespace, settings: Settings) -> int:
    """Print the name mapping without converting anything."""
    from epubzip.batch.intake import is_allowed_type
    from epubzip.core.models import InputFile
    from epubzip.naming.sequencer import NameSequencer

    files: list[InputFile] = []
    for path in args.files:
        if path.is_dir():
            paths = sorted(p for p in path.iterdir() if p.is_file() and is_allowed_type(p.name))
        elif path.exists():
            paths = [path]
        else:
            logger.error("File not found: %s", path)
            return 1
        files.extend(InputFile(name=p.name, size=p.stat().st_size) for p in paths)

    if not files:
        logger.error("No EPUB files found")
        return 1

    for mapping in NameSequencer().preview_sorting(files):
        print(f"  {mapping.output_name}  <-  {mapping.original_name}")
    return 0


async def _cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    """Display metadata and image statistics for one book."""
    from epubzip.extraction.epub_extractor import EpubImageExtractor, image_stats

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    outcome = await EpubImageExtractor().extract(file_path)
    if not outcome.success:
        logger.error("Cannot read %s: %s", file_path.name, outcome.error)
        return 1

    stats = image_stats(outcome.images)
    metadata = outcome.metadata
    print(f"\n{file_path.name}:")
    if metadata is not None:
        print(f"  Title:    {metadata.title}")
        print(f"  Author:   {metadata.creator}")
        print(f"  Language: {metadata.language}")
    print(f"  Images:   {stats.total} ({stats.total_size} bytes)")
    for mime_type, count in sorted(stats.types.items()):
        print(f"    {mime_type}: {count}")
    if stats.largest_image:
        print(f"  Largest:  {stats.largest_image} ({stats.largest_size} bytes)")
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from epubzip.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
