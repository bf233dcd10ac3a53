# src/extraction/epub_extractor.py
"""EPUB image extractor.

Opens an EPUB (a ZIP container), checks the minimal structure, pulls every
image entry accepted by the image classifier in natural path order, and
reads best-effort OPF metadata with BeautifulSoup.

Failures to open or validate the book are reported on the returned
ExtractionOutcome instead of raised, so a batch can continue past a
broken file. A single unreadable image is skipped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
import re
import warnings
from collections.abc import Sequence
from pathlib import Path

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from epubzip.archive.adapter import (
    ArchiveHandle,
    list_entries,
    open_archive,
    read_entry,
    read_text,
)
from epubzip.core.errors import CorruptArchiveError, ParseFailedError
from epubzip.core.models import (
    EpubMetadata,
    ExtractedImage,
    ExtractionOutcome,
    ImageStats,
    ValidationIssue,
    ValidationReport,
)
from epubzip.extraction.base_extractor import BaseExtractor
from epubzip.extraction.image_classifier import is_image_candidate, sniff_type
from epubzip.naming.natural import natural_sort_key

logger = logging.getLogger(__name__)

EPUB_MIMETYPE = "application/epub+zip"
MIMETYPE_PATH = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"
OPF_MEDIA_TYPE = "application/oebps-package+xml"

METADATA_FIELDS: tuple[str, ...] = (
    "title", "creator", "language", "publisher", "date", "description", "identifier",
)

LARGE_IMAGE_BYTES = 50 * 1024 * 1024

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]")


class EpubImageExtractor(BaseExtractor):
    """Extractor for EPUB files (.epub)."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".epub"]

    async def extract(self, content: bytes | str | Path) -> ExtractionOutcome:
        """Extract images and metadata without blocking the event loop."""
        data = self._read_content(content)
        return await asyncio.to_thread(self.extract_bytes, data)

    def extract_bytes(self, data: bytes) -> ExtractionOutcome:
        """Synchronous extraction over an in-memory EPUB."""
        try:
            handle = open_archive(data)
        except CorruptArchiveError as exc:
            logger.error("EPUB parse failed: %s", exc)
            return ExtractionOutcome(success=False, error=str(exc))

        with handle:
            try:
                self.validate_structure(handle)
            except ParseFailedError as exc:
                logger.error("EPUB structure check failed: %s", exc)
                return ExtractionOutcome(success=False, error=str(exc))

            images = self.extract_images(handle)
            metadata = self.extract_metadata(handle)

        logger.info(
            "Extracted %d images (%d bytes) from '%s'",
            len(images), sum(img.size for img in images), metadata.title,
        )
        return ExtractionOutcome(success=True, images=images, metadata=metadata)

    # --- Structure ---

    @staticmethod
    def validate_structure(handle: ArchiveHandle) -> None:
        """Minimal EPUB check.

        A wrong ``mimetype`` only warns; a missing container.xml fails.

        Raises:
            ParseFailedError: If META-INF/container.xml is absent.
        """
        if MIMETYPE_PATH in handle:
            try:
                mimetype = read_text(handle, MIMETYPE_PATH).strip()
            except CorruptArchiveError as exc:
                logger.warning("Unreadable EPUB mimetype: %s", exc)
                mimetype = EPUB_MIMETYPE
            if mimetype != EPUB_MIMETYPE:
                logger.warning("Unexpected EPUB mimetype: %r", mimetype)

        if CONTAINER_PATH not in handle:
            raise ParseFailedError(f"Missing {CONTAINER_PATH}")

    # --- Images ---

    def extract_images(self, handle: ArchiveHandle) -> list[ExtractedImage]:
        """Read every candidate image in natural path order."""
        paths = [
            entry.path
            for entry in list_entries(handle)
            if not entry.is_directory and is_image_candidate(entry.path)
        ]
        paths.sort(key=natural_sort_key)

        images: list[ExtractedImage] = []
        for path in paths:
            try:
                data = read_entry(handle, path)
            except (CorruptArchiveError, KeyError) as exc:
                logger.warning("Skipping unreadable image %s: %s", path, exc)
                continue
            images.append(
                ExtractedImage(
                    original_path=path,
                    file_name=image_file_name(path),
                    data=data,
                    size=len(data),
                    mime_type=sniff_type(data, path),
                )
            )
        return images

    # --- Metadata ---

    def extract_metadata(self, handle: ArchiveHandle) -> EpubMetadata:
        """Best-effort OPF metadata; defaults on any problem."""
        try:
            container_xml = read_text(handle, CONTAINER_PATH)
            opf_path = find_opf_path(container_xml)
            if not opf_path or opf_path not in handle:
                return EpubMetadata()
            return parse_opf_metadata(read_text(handle, opf_path))
        except (CorruptArchiveError, KeyError, ValueError) as exc:
            logger.warning("Metadata extraction failed: %s", exc)
            return EpubMetadata()


def image_file_name(original_path: str) -> str:
    """Flat entry name for an image: its base name, or a sanitized fallback."""
    base = original_path.rsplit("/", 1)[-1]
    if base and base != ".":
        return base
    match = re.search(r"\.([^.]+)$", original_path)
    extension = match.group(1).lower() if match else "jpg"
    return f"image_{_UNSAFE_NAME_RE.sub('_', original_path)}.{extension}"


def _soup(markup: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        return BeautifulSoup(markup, "html.parser")


def find_opf_path(container_xml: str) -> str | None:
    """Path of the OPF package document declared in container.xml."""
    soup = _soup(container_xml)
    rootfile = soup.find("rootfile", attrs={"media-type": OPF_MEDIA_TYPE})
    if rootfile is None:
        return None
    full_path = rootfile.get("full-path")
    return str(full_path) if full_path else None


def parse_opf_metadata(opf_xml: str) -> EpubMetadata:
    """Read Dublin Core fields from the OPF ``<metadata>`` block."""
    soup = _soup(opf_xml)
    block = soup.find("metadata") or soup.find("opf:metadata")
    if block is None:
        return EpubMetadata()

    values: dict[str, str] = {}
    for field_name in METADATA_FIELDS:
        element = block.find([f"dc:{field_name}", field_name])
        text = element.get_text(strip=True) if element is not None else ""
        if text:
            values[field_name] = text
    return EpubMetadata(**values)


def image_stats(images: Sequence[ExtractedImage]) -> ImageStats:
    """Totals, per-type counts and size extremes."""
    if not images:
        return ImageStats()

    types: dict[str, int] = {}
    for image in images:
        key = image.mime_type or "unknown"
        types[key] = types.get(key, 0) + 1

    largest = max(images, key=lambda img: img.size)
    smallest = min(images, key=lambda img: img.size)
    total_size = sum(img.size for img in images)
    return ImageStats(
        total=len(images),
        total_size=total_size,
        types=types,
        average_size=round(total_size / len(images)),
        largest_image=largest.file_name,
        largest_size=largest.size,
        smallest_image=smallest.file_name,
        smallest_size=smallest.size,
    )


def validate_outcome(
    outcome: ExtractionOutcome,
    large_image_bytes: int = LARGE_IMAGE_BYTES,
) -> ValidationReport:
    """Flag failed parses, empty books and suspiciously large images."""
    issues: list[ValidationIssue] = []
    if not outcome.success:
        issues.append(ValidationIssue(
            type="parse_failed", message=outcome.error or "Parse failed",
        ))
    if not outcome.images:
        issues.append(ValidationIssue(type="no_images", message="No images found"))
    if outcome.total_size == 0:
        issues.append(ValidationIssue(type="empty_images", message="Images are empty"))

    stats = image_stats(outcome.images)
    if stats.largest_image is not None and stats.largest_size > large_image_bytes:
        issues.append(ValidationIssue(
            type="large_image",
            message=f"Very large image: {stats.largest_image} ({stats.largest_size} bytes)",
        ))

    return ValidationReport(
        issues=issues,
        counters={"total_images": stats.total, "total_size": stats.total_size},
    )
