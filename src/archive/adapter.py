# src/archive/adapter.py
"""In-memory ZIP container access.

Thin capability layer over zipfile: open a byte blob as an archive, list and
read its entries, and serialize a new archive from (name, bytes) pairs.
Everything else in the package goes through these functions rather than
touching zipfile directly.
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass
from typing import Iterable

from epubzip.core.errors import CorruptArchiveError

logger = logging.getLogger(__name__)

ZIP_SIGNATURES: tuple[bytes, ...] = (b"PK\x03", b"PK\x05", b"PK\x07")


@dataclass(frozen=True)
class ArchiveEntry:
    """A member of an opened archive."""

    path: str
    is_directory: bool
    size: int = 0


class ArchiveHandle:
    """An opened, read-only archive backed by an in-memory buffer."""

    def __init__(self, zf: zipfile.ZipFile) -> None:
        self._zf = zf
        self._names = set(zf.namelist())

    def __contains__(self, path: object) -> bool:
        return path in self._names

    def __enter__(self) -> ArchiveHandle:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def zipfile(self) -> zipfile.ZipFile:
        return self._zf

    def close(self) -> None:
        self._zf.close()


def has_zip_signature(data: bytes) -> bool:
    """Check the leading bytes for a local/central/spanned ZIP header."""
    return data[:3] in ZIP_SIGNATURES


def open_archive(data: bytes) -> ArchiveHandle:
    """Open *data* as a ZIP archive.

    Raises:
        CorruptArchiveError: If the bytes are not a readable ZIP container.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
        raise CorruptArchiveError(f"Cannot open archive: {exc}") from exc
    return ArchiveHandle(zf)


def list_entries(handle: ArchiveHandle) -> list[ArchiveEntry]:
    """Enumerate archive members in central-directory order."""
    return [
        ArchiveEntry(path=info.filename, is_directory=info.is_dir(), size=info.file_size)
        for info in handle.zipfile.infolist()
    ]


def read_entry(handle: ArchiveHandle, path: str) -> bytes:
    """Read the raw bytes of one member.

    Raises:
        KeyError: If *path* is not in the archive.
        CorruptArchiveError: If the member cannot be decompressed.
    """
    try:
        return handle.zipfile.read(path)
    except KeyError:
        raise
    except (
        zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError, OSError,
    ) as exc:
        raise CorruptArchiveError(f"Cannot read entry {path!r}: {exc}") from exc


def read_text(handle: ArchiveHandle, path: str, encoding: str = "utf-8") -> str:
    """Read one member decoded as text (undecodable bytes are replaced)."""
    return read_entry(handle, path).decode(encoding, errors="replace")


def build_archive(
    entries: Iterable[tuple[str, bytes]],
    compression_level: int = 6,
) -> bytes:
    """Serialize (name, bytes) pairs into a DEFLATE-compressed ZIP.

    Names are written as given; callers are responsible for uniqueness.

    Raises:
        ValueError: If *compression_level* is outside 0..9.
    """
    if not 0 <= compression_level <= 9:
        raise ValueError(f"compression_level must be 0..9, got {compression_level}")

    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer,
        mode="w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=compression_level,
    ) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()
