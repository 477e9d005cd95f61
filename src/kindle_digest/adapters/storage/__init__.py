"""Persistence adapters."""

from kindle_digest.adapters.storage.yaml_repository import YamlArticleRepository, new_id

__all__ = ["YamlArticleRepository", "new_id"]
