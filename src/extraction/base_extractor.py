# src/extraction/base_extractor.py
"""Abstract extractor interface for image-bearing container formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from epubzip.core.models import ExtractionOutcome


class BaseExtractor(ABC):
    """Unified interface for container image extractors."""

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """File extensions this extractor handles (e.g., ['.epub'])."""

    @abstractmethod
    async def extract(self, content: bytes | str | Path) -> ExtractionOutcome:
        """Extract images and metadata from a container."""

    def supports(self, file_name: str) -> bool:
        """Whether *file_name* has one of the supported extensions."""
        return file_name.lower().endswith(tuple(self.supported_extensions))

    @staticmethod
    def _read_content(content: bytes | str | Path) -> bytes:
        """Normalize supported input types to raw bytes."""
        if isinstance(content, (bytes, bytearray)):
            return bytes(content)
        path = Path(content)
        if path.is_file():
            return path.read_bytes()
        raise FileNotFoundError(f"Input file not found: {content}")
