# tests/unit/archive/test_unit_adapter.py
"""Tests for archive/adapter.py: in-memory ZIP access."""

from __future__ import annotations

import io
import zipfile

import pytest

from epubzip.archive.adapter import (
    build_archive,
    has_zip_signature,
    list_entries,
    open_archive,
    read_entry,
    read_text,
)
from epubzip.core.errors import CorruptArchiveError


def _zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class TestSignature:
    def test_local_header(self):
        assert has_zip_signature(b"PK\x03\x04rest")

    def test_empty_archive_header(self):
        assert has_zip_signature(b"PK\x05\x06")

    def test_not_zip(self):
        assert not has_zip_signature(b"%PDF-1.7")

    def test_too_short(self):
        assert not has_zip_signature(b"PK")


class TestOpenArchive:
    def test_garbage_raises(self):
        with pytest.raises(CorruptArchiveError, match="Cannot open archive"):
            open_archive(b"definitely not a zip")

    def test_empty_bytes_raise(self):
        with pytest.raises(CorruptArchiveError):
            open_archive(b"")

    def test_membership_and_listing(self):
        data = _zip({"a.txt": b"hello", "dir/b.png": b"\x89PNG"})
        with open_archive(data) as handle:
            assert "a.txt" in handle
            assert "missing" not in handle
            entries = list_entries(handle)
        assert [e.path for e in entries] == ["a.txt", "dir/b.png"]
        assert entries[0].size == 5
        assert not entries[0].is_directory


class TestReadEntry:
    def test_read_bytes_and_text(self):
        with open_archive(_zip({"a.txt": "héllo".encode()})) as handle:
            assert read_entry(handle, "a.txt") == "héllo".encode()
            assert read_text(handle, "a.txt") == "héllo"

    def test_missing_entry_raises_key_error(self):
        with open_archive(_zip({"a.txt": b"x"})) as handle:
            with pytest.raises(KeyError):
                read_entry(handle, "b.txt")

    def test_undecodable_text_is_replaced(self):
        with open_archive(_zip({"bin": b"\xff\xfe"})) as handle:
            assert "�" in read_text(handle, "bin")

    def test_corrupt_member_raises_corrupt_archive(self, damaged_epub):
        with open_archive(damaged_epub) as handle:
            assert read_entry(handle, "OEBPS/images/a.png")
            with pytest.raises(CorruptArchiveError, match="b.png"):
                read_entry(handle, "OEBPS/images/b.png")


class TestBuildArchive:
    def test_round_trip_entries(self):
        data = build_archive([("001.jpg", b"one"), ("002.jpg", b"two")], compression_level=9)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["001.jpg", "002.jpg"]
            assert zf.read("002.jpg") == b"two"
            assert zf.getinfo("001.jpg").compress_type == zipfile.ZIP_DEFLATED

    def test_empty_archive_is_valid_zip(self):
        data = build_archive([])
        assert has_zip_signature(data)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == []

    @pytest.mark.parametrize("level", [-1, 10])
    def test_invalid_level(self, level):
        with pytest.raises(ValueError, match="compression_level"):
            build_archive([("a", b"x")], compression_level=level)
