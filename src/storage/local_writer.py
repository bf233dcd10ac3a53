# src/storage/local_writer.py
"""Local filesystem output writer (default backend)."""

from __future__ import annotations

import logging
from pathlib import Path

from epubzip.storage.base_output_writer import BaseOutputWriter

logger = logging.getLogger(__name__)


class LocalWriter(BaseOutputWriter):
    """Write archives to a local output directory."""

    def __init__(self, base_path: str | Path | None = None) -> None:
        """Initialize with optional base path.

        Args:
            base_path: Root directory for all writes. If None, paths are
                used as given.
        """
        self._base = Path(base_path) if base_path else None

    def _resolve(self, path: str) -> Path:
        if self._base is not None:
            return self._base / path
        return Path(path)

    async def write(self, path: str, content: bytes | str) -> None:
        """Write content to a local file path, creating parent directories."""
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", p)
