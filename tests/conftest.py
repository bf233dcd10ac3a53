# tests/conftest.py
"""Shared test fixtures for all unit and integration tests.

Builds EPUB containers in memory with zipfile; no files on disk unless a
test asks for tmp_path.
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable

import pytest

from epubzip.config.settings import Settings
from epubzip.core.models import InputFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x10JFIF" + b"\x00" * 54

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>{title}</dc:title>
    <dc:creator>{creator}</dc:creator>
    <dc:language>en</dc:language>
  </metadata>
</package>
"""

EpubFactory = Callable[..., bytes]


def build_epub(
    images: dict[str, bytes] | None = None,
    *,
    title: str = "Test Book",
    creator: str = "Jane Doe",
    mimetype: str | None = "application/epub+zip",
    with_container: bool = True,
    opf_path: str = "OEBPS/content.opf",
    extra: dict[str, bytes] | None = None,
) -> bytes:
    """Serialize a minimal EPUB with the given image entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        if mimetype is not None:
            zf.writestr("mimetype", mimetype, compress_type=zipfile.ZIP_STORED)
        if with_container:
            zf.writestr("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
            zf.writestr(opf_path, OPF_XML.format(title=title, creator=creator))
        for path, data in (images or {}).items():
            zf.writestr(path, data)
        for path, data in (extra or {}).items():
            zf.writestr(path, data)
    return buffer.getvalue()


def corrupt_entry(data: bytes, path: str) -> bytes:
    """Overwrite the start of *path*'s compressed stream with an invalid block."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        offset = zf.getinfo(path).header_offset
    raw = bytearray(data)
    name_length = int.from_bytes(raw[offset + 26:offset + 28], "little")
    extra_length = int.from_bytes(raw[offset + 28:offset + 30], "little")
    start = offset + 30 + name_length + extra_length
    raw[start:start + 8] = b"\xff" * 8
    return bytes(raw)


# === FIXTURES: Logging isolation ===


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo setup_logging() so caplog keeps seeing package records."""
    yield
    package_logger = logging.getLogger("epubzip")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# === FIXTURES: EPUB content ===


@pytest.fixture
def epub_factory() -> EpubFactory:
    """The build_epub helper, for tests that need custom layouts."""
    return build_epub


@pytest.fixture
def sample_epub() -> bytes:
    """EPUB with three images in natural order 1, 2, 10."""
    return build_epub({
        "OEBPS/images/page10.png": PNG_BYTES,
        "OEBPS/images/page1.jpg": JPEG_BYTES,
        "OEBPS/images/page2.jpg": JPEG_BYTES,
    })


@pytest.fixture
def imageless_epub() -> bytes:
    return build_epub(extra={"OEBPS/chapter1.xhtml": b"<html><body>text</body></html>"})


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


# === FIXTURES: Registry and settings ===


@pytest.fixture
def make_input_files() -> Callable[[list[str]], list[InputFile]]:
    """Build InputFile records from a list of names."""

    def _make(names: list[str]) -> list[InputFile]:
        return [InputFile(name=name, size=100 + i) for i, name in enumerate(names)]

    return _make


@pytest.fixture
def fast_settings() -> Settings:
    """Settings without .env lookup and without dispatch pauses."""
    return Settings(_env_file=None, batch_yield_ms=0)


@pytest.fixture
def damaged_epub() -> bytes:
    """EPUB with two images; the second one's deflate stream is broken."""
    data = build_epub({
        "OEBPS/images/a.png": PNG_BYTES * 4,
        "OEBPS/images/b.png": PNG_BYTES * 4,
    })
    return corrupt_entry(data, "OEBPS/images/b.png")


@pytest.fixture
def entry_corrupter() -> Callable[[bytes, str], bytes]:
    """The corrupt_entry helper, for tests that break other members."""
    return corrupt_entry
