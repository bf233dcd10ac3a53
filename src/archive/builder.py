# src/archive/builder.py
"""Archive builder: per-book image archives and the bundled download.

Entry names inside one archive are made unique by suffixing ``_<n>`` before
the extension. Serialization runs in a worker thread so that several books
can be packaged while the event loop keeps dispatching.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence

from epubzip.archive.adapter import build_archive
from epubzip.config.settings import DEFAULT_ARCHIVE_NAME
from epubzip.core.errors import AggregationError, CompressionFailedError
from epubzip.core.models import (
    CompressionStats,
    ConversionResult,
    ExtractedImage,
    ProgressEvent,
    ValidationIssue,
    ValidationReport,
)
from epubzip.naming.sequencer import remove_extension

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

LARGE_FILE_BYTES = 500 * 1024 * 1024
TOTAL_SIZE_NOTICE_BYTES = 1024 * 1024 * 1024


def unique_entry_name(existing: Iterable[str], name: str) -> str:
    """Return *name*, or ``stem_<n>.ext`` with the smallest free n >= 1."""
    taken = existing if isinstance(existing, (set, frozenset, dict)) else set(existing)
    if name not in taken:
        return name
    stem = remove_extension(name)
    extension = name[len(stem):]
    counter = 1
    candidate = f"{stem}_{counter}{extension}"
    while candidate in taken:
        counter += 1
        candidate = f"{stem}_{counter}{extension}"
    return candidate


class ArchiveBuilder:
    """Serialize images into ZIP archives at a configurable compression level.

    Args:
        compression_level: DEFLATE level, 0..9.
        yield_every: Yield to the event loop after this many added images.
        large_file_bytes: Images above this size are logged as large.
    """

    def __init__(
        self,
        compression_level: int = 6,
        yield_every: int = 10,
        large_file_bytes: int = LARGE_FILE_BYTES,
    ) -> None:
        self._compression_level = 6
        self._yield_every = max(1, yield_every)
        self._large_file_bytes = large_file_bytes
        self.set_compression_level(compression_level)

    @property
    def compression_level(self) -> int:
        return self._compression_level

    def set_compression_level(self, level: int) -> None:
        """Change the level; out-of-range values are rejected.

        Raises:
            ValueError: If *level* is outside 0..9.
        """
        if not 0 <= level <= 9:
            raise ValueError(f"Compression level must be between 0 and 9, got {level}")
        self._compression_level = level

    async def build_from_images(
        self,
        images: Sequence[ExtractedImage],
        archive_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> bytes:
        """Build one flat archive holding *images*.

        Raises:
            CompressionFailedError: If there is nothing to package or
                serialization fails.
        """
        if not images:
            raise CompressionFailedError("No images to package")

        report = validate_images(images, self._large_file_bytes)
        if not report.is_valid:
            logger.debug("Packaging %s with issues: %s", archive_name, report.issue_types())

        entries: list[tuple[str, bytes]] = []
        used: set[str] = set()
        total = len(images)

        for index, image in enumerate(images):
            _emit(on_progress, ProgressEvent(
                file_name=image.file_name,
                stage="adding",
                current=index + 1,
                total=total,
            ))
            entry_name = unique_entry_name(used, image.file_name)
            if entry_name != image.file_name:
                logger.debug("Renamed duplicate entry %s -> %s", image.file_name, entry_name)
            used.add(entry_name)
            entries.append((entry_name, image.data))

            if index % self._yield_every == 0:
                await asyncio.sleep(0)

        _emit(on_progress, ProgressEvent(
            file_name=archive_name, stage="compressing", current=0, total=100, percent=0.0,
        ))
        try:
            data = await asyncio.to_thread(build_archive, entries, self._compression_level)
        except Exception as exc:
            raise CompressionFailedError(f"Failed to build {archive_name}: {exc}") from exc
        _emit(on_progress, ProgressEvent(
            file_name=archive_name, stage="compressing", current=100, total=100, percent=100.0,
        ))

        stats = compression_stats(images, data)
        logger.debug(
            "Built %s: %d entries, %d -> %d bytes (%.2f%% saved)",
            archive_name, len(entries), stats.original_size, stats.compressed_size,
            stats.compression_ratio,
        )
        return data

    async def build_aggregate(
        self,
        results: Sequence[ConversionResult],
        archive_name: str = DEFAULT_ARCHIVE_NAME,
    ) -> bytes:
        """Wrap every successful result's archive into one bundle.

        Raises:
            AggregationError: If no result is successful.
        """
        successful = [r for r in results if r.success and r.archive_bytes]
        if not successful:
            raise AggregationError("No successfully converted archives to bundle")

        entries: list[tuple[str, bytes]] = []
        used: set[str] = set()
        for result in successful:
            entry_name = unique_entry_name(used, result.file_name)
            used.add(entry_name)
            entries.append((entry_name, result.archive_bytes))

        try:
            data = await asyncio.to_thread(build_archive, entries, self._compression_level)
        except Exception as exc:
            raise AggregationError(f"Failed to build {archive_name}: {exc}") from exc

        logger.info(
            "Bundled %d archives into %s (%d bytes)", len(entries), archive_name, len(data),
        )
        return data

    def status(self) -> dict[str, int]:
        return {
            "compression_level": self._compression_level,
            "yield_every": self._yield_every,
        }


def validate_images(
    images: Sequence[ExtractedImage],
    large_file_bytes: int = LARGE_FILE_BYTES,
) -> ValidationReport:
    """Check images before packaging. Large files only produce log output."""
    issues: list[ValidationIssue] = []
    if not images:
        issues.append(ValidationIssue(type="empty_array", message="No images given"))

    total_size = 0
    names: set[str] = set()
    for index, image in enumerate(images):
        if not image.data:
            issues.append(ValidationIssue(
                type="missing_data", message=f"Image {index + 1} has no data", index=index,
            ))
        if not image.file_name:
            issues.append(ValidationIssue(
                type="missing_filename", message=f"Image {index + 1} has no file name", index=index,
            ))
        elif image.file_name in names:
            issues.append(ValidationIssue(
                type="duplicate_filename",
                message=f"Duplicate file name: {image.file_name}",
                index=index,
            ))
        if image.file_name:
            names.add(image.file_name)

        total_size += len(image.data)
        if len(image.data) > large_file_bytes:
            logger.warning("Large image %s (%d bytes)", image.file_name, len(image.data))

    if total_size > TOTAL_SIZE_NOTICE_BYTES:
        logger.info("Packaging a large amount of data: %d bytes", total_size)

    return ValidationReport(
        issues=issues,
        counters={
            "total_size": total_size,
            "file_count": len(images),
            "unique_file_names": len(names),
        },
    )


def compression_stats(images: Sequence[ExtractedImage], archive: bytes) -> CompressionStats:
    """How much the archive saved over the raw image bytes."""
    original = sum(img.size or len(img.data) for img in images)
    compressed = len(archive)
    ratio = (1 - compressed / original) * 100 if original > 0 else 0.0
    return CompressionStats(
        original_size=original,
        compressed_size=compressed,
        compression_ratio=round(ratio, 2),
        saved_bytes=original - compressed,
        file_count=len(images),
    )


def _emit(callback: ProgressCallback | None, event: ProgressEvent) -> None:
    """Deliver a progress event; a failing listener never breaks the build."""
    if callback is None:
        return
    try:
        callback(event)
    except Exception:
        logger.exception("Progress callback failed for %s", event.file_name)
