# src/core/errors.py
"""Exception hierarchy shared by extraction, archiving and the pipeline.

Per-file failures carry a FailureCode so the runner can record them on the
file's result without inspecting messages.
"""

from __future__ import annotations

from enum import Enum


class FailureCode(str, Enum):
    """Per-file failure taxonomy."""

    PARSE_FAILED = "parse_failed"
    NO_IMAGES = "no_images"
    COMPRESSION_FAILED = "compression_failed"
    UNEXPECTED_ERROR = "unexpected_error"


class EpubZipError(Exception):
    """Base exception for the epubzip package."""


class CorruptArchiveError(EpubZipError):
    """Raised by the archive adapter when bytes cannot be opened as a ZIP."""


class ConversionError(EpubZipError):
    """A failure confined to a single input file."""

    code: FailureCode = FailureCode.UNEXPECTED_ERROR


class ParseFailedError(ConversionError):
    """Archive could not be opened or the EPUB structure check failed."""

    code = FailureCode.PARSE_FAILED


class NoImagesError(ConversionError):
    """The book contained no extractable images."""

    code = FailureCode.NO_IMAGES


class CompressionFailedError(ConversionError):
    """Serializing the per-file archive failed."""

    code = FailureCode.COMPRESSION_FAILED


class AggregationError(EpubZipError):
    """Raised when there is nothing to bundle for download."""


class SequencingError(EpubZipError):
    """Raised if name sequencing fails. Indicates a programming error."""
