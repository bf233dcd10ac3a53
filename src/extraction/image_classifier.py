# src/extraction/image_classifier.py
"""Image candidate filtering and MIME type sniffing for EPUB entries.

Pure functions: no I/O, no logging side effects. The extractor decides which
entries to read with is_image_candidate() and labels the bytes it read with
sniff_type().
"""

from __future__ import annotations

import re

IMAGE_EXTENSIONS: tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg",
)

# Mapping of bare extensions to MIME types
_MIME_MAP: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "svg": "image/svg+xml",
}

DEFAULT_MIME_TYPE = "image/jpeg"

_IMAGE_DIR_RE = re.compile(r"/(images?|pics?|graphics?|assets?|media)/", re.IGNORECASE)
_DECORATION_RE = re.compile(r"thumb|thumbnail|cover|icon", re.IGNORECASE)

_SVG_PROBE_BYTES = 1000


def is_image_candidate(path: str) -> bool:
    """Decide whether an archive entry is an image worth extracting.

    The entry needs an image extension, and must either sit in an
    image-like directory or not look like a thumbnail, cover or icon.
    """
    lower = path.lower()
    if not lower.endswith(IMAGE_EXTENSIONS):
        return False
    in_image_dir = _IMAGE_DIR_RE.search(path) is not None
    is_decoration = _DECORATION_RE.search(lower) is not None
    return in_image_dir or not is_decoration


def mime_from_extension(path: str) -> str:
    """MIME type from the text after the last dot; image/jpeg if unknown."""
    extension = path.lower().rsplit(".", 1)[-1]
    return _MIME_MAP.get(extension, DEFAULT_MIME_TYPE)


def sniff_type(data: bytes, path: str) -> str:
    """Detect the image MIME type from magic bytes, falling back to the path."""
    if len(data) < 4:
        return mime_from_extension(path)

    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:4] == b"GIF8":
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:2] == b"BM":
        return "image/bmp"

    head = data[:_SVG_PROBE_BYTES].decode("utf-8", errors="replace")
    if "<svg" in head or "<?xml" in head:
        return "image/svg+xml"

    return mime_from_extension(path)
