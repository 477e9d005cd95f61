"""E-book rendering adapters."""

from kindle_digest.adapters.epub.epub_generator import EpubGenerator

__all__ = ["EpubGenerator"]
