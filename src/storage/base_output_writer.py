# src/storage/base_output_writer.py
"""Abstract output writer interface.

Writers persist finished archives (``NNN.zip`` files and the bundle) under
a backend-specific root. Paths are relative to that root.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from epubzip.core.models import ConversionResult, DownloadArtifact


class BaseOutputWriter(ABC):
    """Unified interface for output storage backends."""

    @abstractmethod
    async def write(self, path: str, content: bytes | str) -> None:
        """Write content to the given path."""

    async def write_artifact(self, artifact: DownloadArtifact) -> str:
        """Persist one download artifact under its own file name."""
        await self.write(artifact.file_name, artifact.data)
        return artifact.file_name

    async def write_results(self, results: Sequence[ConversionResult]) -> list[str]:
        """Persist every successful per-book archive. Returns written paths."""
        written: list[str] = []
        for result in results:
            if not result.success or not result.archive_bytes:
                continue
            await self.write(result.file_name, result.archive_bytes)
            written.append(result.file_name)
        return written
