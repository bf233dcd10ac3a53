# src/pipeline/state.py
"""Session-scoped state: the file registry and the results registry.

One SessionState is owned by one ConversionSession and passed explicitly to
the runner; there is no module-level registry. Mutations happen only on the
event loop thread, and each conversion job touches exactly one file id.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from epubzip.core.models import (
    ConversionResult,
    FileStatus,
    InputFile,
    OutputMapping,
    ProcessingStats,
)


class SessionState(BaseModel):
    """Registries and flags for one conversion session.

    ``files`` keeps insertion order, which is the display and dispatch
    order; output naming order is computed separately by the sequencer.
    """

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    files: dict[str, InputFile] = Field(default_factory=dict)
    results: dict[str, ConversionResult] = Field(default_factory=dict)
    is_processing: bool = False

    # --- File registry ---

    def add_file(self, file: InputFile) -> None:
        self.files[file.id] = file

    def remove_file(self, file_id: str) -> InputFile | None:
        """Drop a file and any result recorded for it."""
        self.results.pop(file_id, None)
        return self.files.pop(file_id, None)

    def get_file(self, file_id: str) -> InputFile | None:
        return self.files.get(file_id)

    def all_files(self) -> list[InputFile]:
        return list(self.files.values())

    def find_duplicate(self, name: str, size: int) -> InputFile | None:
        """An already registered file with the same name and size."""
        for file in self.files.values():
            if file.name == name and file.size == size:
                return file
        return None

    def update_status(
        self, file_id: str, status: FileStatus, error: str | None = None,
    ) -> None:
        file = self.files.get(file_id)
        if file is None:
            return
        file.status = status
        file.error = error

    def apply_output_names(self, mappings: Iterable[OutputMapping]) -> None:
        for mapping in mappings:
            file = self.files.get(mapping.file_id)
            if file is not None:
                file.output_name = mapping.output_name

    # --- Results registry ---

    def record_result(self, result: ConversionResult) -> None:
        self.results[result.file_id] = result

    def successful_results(self) -> list[ConversionResult]:
        """Successful results in registry (dispatch) order."""
        return [
            self.results[file_id]
            for file_id in self.files
            if file_id in self.results and self.results[file_id].success
        ]

    def processing_stats(self) -> ProcessingStats:
        results = list(self.results.values())
        successful = [r for r in results if r.success]
        total_size = sum(r.size for r in successful)
        return ProcessingStats(
            total_files=len(results),
            successful_files=len(successful),
            failed_files=len(results) - len(successful),
            total_size=total_size,
            total_images=sum(r.image_count for r in successful),
            average_size=round(total_size / len(successful)) if successful else 0,
        )

    def clear(self) -> None:
        self.files.clear()
        self.results.clear()
