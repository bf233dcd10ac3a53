# src/__init__.py
"""epubzip: extract the images of EPUB books into sequentially numbered ZIP archives."""

from epubzip.version import __version__

__all__ = ["__version__"]
