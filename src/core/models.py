# src/core/models.py
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Byte payloads (book content, image data, archive bytes) are excluded from
dumps and reprs so that results can be exported and logged safely.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field

FileStatus = Literal["waiting", "processing", "completed", "error"]
FailureCodeName = Literal[
    "parse_failed", "no_images", "compression_failed", "unexpected_error"
]


# === INPUT FILES ===


class InputFile(BaseModel):
    """A user-supplied book tracked by the session file registry."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    size: int = 0
    content: bytes = Field(default=b"", exclude=True, repr=False)
    status: FileStatus = "waiting"
    output_name: str = ""
    error: str | None = None


class RejectedFile(BaseModel):
    """A candidate refused by input validation."""

    name: str
    reason: str


class IntakeReport(BaseModel):
    """Outcome of adding a set of candidates to the registry."""

    added: list[InputFile] = Field(default_factory=list)
    rejected: list[RejectedFile] = Field(default_factory=list)
    duplicates: list[str] = Field(default_factory=list)
    refused: bool = False  # nothing was registered because a batch was running

    @property
    def warning(self) -> str | None:
        """Human-readable warning listing rejected names, if any."""
        if not self.rejected:
            return None
        names = ", ".join(r.name for r in self.rejected)
        return f"The following files may not be valid EPUB files: {names}"


# === NAME SEQUENCING ===


class NumberToken(BaseModel):
    """A maximal run of decimal digits found in a stripped file name."""

    value: int
    original_string: str
    start_index: int
    length: int


class RankedFile(BaseModel):
    """An input file augmented with its ordering keys."""

    file: InputFile
    stripped_name: str
    numbers: list[NumberToken] = Field(default_factory=list)
    primary_number: int
    original_index: int


class OutputMapping(BaseModel):
    """Sequencer result for one input file."""

    file_id: str
    original_name: str
    output_name: str
    sequence_number: int
    primary_number: int


# === EXTRACTION ===


class ExtractedImage(BaseModel):
    """One image pulled out of an EPUB container."""

    original_path: str
    file_name: str
    data: bytes = Field(default=b"", exclude=True, repr=False)
    size: int = 0
    mime_type: str = "image/jpeg"


class EpubMetadata(BaseModel):
    """Informational OPF metadata. Never used for ordering or packaging."""

    title: str = "Unknown title"
    creator: str = "Unknown author"
    language: str = "zh"
    publisher: str = ""
    date: str = ""
    description: str = ""
    identifier: str = ""


class ExtractionOutcome(BaseModel):
    """Result of extracting one book. Failures are reported, not raised."""

    success: bool
    images: list[ExtractedImage] = Field(default_factory=list)
    metadata: EpubMetadata | None = None
    error: str | None = None

    @property
    def total_images(self) -> int:
        return len(self.images)

    @property
    def total_size(self) -> int:
        return sum(img.size for img in self.images)


class ImageStats(BaseModel):
    """Aggregate figures over a list of extracted images."""

    total: int = 0
    total_size: int = 0
    types: dict[str, int] = Field(default_factory=dict)
    average_size: int = 0
    largest_image: str | None = None
    largest_size: int = 0
    smallest_image: str | None = None
    smallest_size: int = 0


# === VALIDATION ===


class ValidationIssue(BaseModel):
    """A single problem found by one of the validate_* helpers."""

    type: str
    message: str
    file_id: str | None = None
    index: int | None = None


class ValidationReport(BaseModel):
    """Outcome of a validation pass."""

    issues: list[ValidationIssue] = Field(default_factory=list)
    counters: dict[str, int] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def issue_types(self) -> list[str]:
        return [issue.type for issue in self.issues]


# === CONVERSION ===


class ConversionResult(BaseModel):
    """Terminal record of one file's conversion."""

    file_id: str
    file_name: str
    original_name: str
    archive_bytes: bytes = Field(default=b"", exclude=True, repr=False)
    size: int = 0
    image_count: int = 0
    metadata: EpubMetadata | None = None
    success: bool
    error: str | None = None
    error_code: FailureCodeName | None = None


class CompressionStats(BaseModel):
    """Size comparison between raw images and the archive built from them."""

    original_size: int
    compressed_size: int
    compression_ratio: float
    saved_bytes: int
    file_count: int


class ProgressEvent(BaseModel):
    """Advisory progress notification. Never used for control decisions."""

    file_id: str | None = None
    file_name: str
    stage: Literal["status", "adding", "compressing"] = "status"
    status: FileStatus | None = None
    current: int = 0
    total: int = 0
    percent: float | None = None
    message: str = ""


class BatchSummary(BaseModel):
    """Outcome of one pipeline run over the whole registry."""

    total: int
    succeeded: int
    failed: int
    results: list[ConversionResult] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def message(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"


class ProcessingStats(BaseModel):
    """Session-level statistics over the results registry."""

    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    total_size: int = 0
    total_images: int = 0
    average_size: int = 0


class DownloadArtifact(BaseModel):
    """A named archive ready to be written or offered for download."""

    file_name: str
    data: bytes = Field(default=b"", exclude=True, repr=False)
    entry_count: int = 1

    @property
    def size(self) -> int:
        return len(self.data)


def dump_for_export(model: BaseModel) -> dict[str, Any]:
    """JSON-ready dict of a model (byte payloads already excluded)."""
    return model.model_dump(mode="json")
