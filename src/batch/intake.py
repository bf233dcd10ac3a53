# src/batch/intake.py
"""Input intake: soft validation of user-supplied books.

A candidate is accepted when its name ends with ``.epub`` and it is not
empty. The ZIP signature is sniffed, but a mismatch is only logged: books
with a ``.epub`` name are still accepted and any real damage surfaces later
as a per-file ``parse_failed``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from epubzip.archive.adapter import has_zip_signature
from epubzip.core.models import RejectedFile

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS: tuple[str, ...] = (".epub",)


@dataclass(frozen=True)
class Candidate:
    """A file offered for conversion, before it enters the registry."""

    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def is_allowed_type(name: str, allowed: Sequence[str] = ALLOWED_EXTENSIONS) -> bool:
    """Case-insensitive extension check."""
    lower = name.lower()
    return any(lower.endswith(ext.lower()) for ext in allowed)


def validate_epub_file(candidate: Candidate) -> str | None:
    """Return a rejection reason, or None when the candidate is accepted."""
    if not is_allowed_type(candidate.name):
        return "not an .epub file"
    if candidate.size == 0:
        return "file is empty"
    if not has_zip_signature(candidate.content):
        header = candidate.content[:4].hex(" ")
        logger.info(
            "ZIP signature check failed for %s (header: %s); accepting by extension",
            candidate.name, header,
        )
    return None


def validate_files(
    candidates: Iterable[Candidate],
) -> tuple[list[Candidate], list[RejectedFile]]:
    """Split candidates into accepted ones and rejections with reasons."""
    valid: list[Candidate] = []
    rejected: list[RejectedFile] = []
    for candidate in candidates:
        reason = validate_epub_file(candidate)
        if reason is None:
            valid.append(candidate)
        else:
            rejected.append(RejectedFile(name=candidate.name, reason=reason))
    if rejected:
        logger.warning(
            "Rejected %d files: %s",
            len(rejected), ", ".join(r.name for r in rejected),
        )
    return valid, rejected


def read_candidates(paths: Iterable[Path]) -> list[Candidate]:
    """Load files from disk. Directories are expanded to their ``*.epub`` files.

    Raises:
        FileNotFoundError: If a path does not exist.
    """
    candidates: list[Candidate] = []
    for path in paths:
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.is_file() and is_allowed_type(p.name))
        elif path.is_file():
            files = [path]
        else:
            raise FileNotFoundError(f"Input not found: {path}")
        candidates.extend(Candidate(name=p.name, content=p.read_bytes()) for p in files)
    return candidates
