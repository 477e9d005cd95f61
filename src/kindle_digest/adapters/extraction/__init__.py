"""Content extraction adapters."""

from kindle_digest.adapters.extraction.article_extractor import ArticleExtractor

__all__ = ["ArticleExtractor"]
