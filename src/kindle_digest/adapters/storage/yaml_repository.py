"""Saved articles, owner and digest runs stored as YAML artifacts."""

import logging
import uuid
from dataclasses import asdict, fields
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from kindle_digest.core import (
    ArticleRepository,
    ArticleStatus,
    DigestRun,
    Owner,
    RunStatus,
    SavedArticle,
)

logger = logging.getLogger(__name__)

_ARTICLE_DATES = ("published_at", "created_at", "sent_at")
_RUN_DATES = ("started_at", "finished_at")


def new_id() -> str:
    return uuid.uuid4().hex


def _dump_dates(data: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    for key in keys:
        if data.get(key) is not None:
            data[key] = data[key].isoformat()
    return data


def _load_dates(data: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            data[key] = datetime.fromisoformat(value)
    return data


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class YamlArticleRepository(ArticleRepository):
    """Repository keeping one YAML file per article and per digest run."""

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = storage_dir
        self.articles_dir = storage_dir / "articles"
        self.runs_dir = storage_dir / "runs"
        self.owner_path = storage_dir / "owner.yaml"
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        """Create directory structure for artifacts."""
        self.articles_dir.mkdir(parents=True, exist_ok=True)
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, allow_unicode=True, default_flow_style=False, sort_keys=False)

    def _read(self, path: Path) -> Optional[dict[str, Any]]:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or None

    # Owner

    def get_owner(self) -> Optional[Owner]:
        data = self._read(self.owner_path)
        if not data:
            return None
        return Owner(id=data["id"], email=data["email"])

    def create_owner(self, email: str) -> Owner:
        """Create the owner record, replacing the email of an existing one."""
        existing = self.get_owner()
        owner = Owner(id=existing.id if existing else new_id(), email=email)
        self._write(self.owner_path, {"id": owner.id, "email": owner.email})
        return owner

    # Articles

    def _article_path(self, article_id: str) -> Path:
        return self.articles_dir / f"{article_id}.yaml"

    def _to_article(self, data: dict[str, Any]) -> SavedArticle:
        data = _load_dates(_known_fields(SavedArticle, data), _ARTICLE_DATES)
        data["status"] = ArticleStatus(data.get("status", ArticleStatus.INBOX.value))
        data["tags"] = list(data.get("tags") or [])
        return SavedArticle(**data)

    def _save_article(self, article: SavedArticle) -> None:
        data = asdict(article)
        data["status"] = article.status.value
        self._write(self._article_path(article.id), _dump_dates(data, _ARTICLE_DATES))

    def _iter_articles(self) -> list[SavedArticle]:
        articles = []
        for path in sorted(self.articles_dir.glob("*.yaml")):
            data = self._read(path)
            if data:
                articles.append(self._to_article(data))
        return articles

    def list_articles(self) -> list[SavedArticle]:
        return self._iter_articles()

    def list_unsent_inbox(self, limit: int) -> list[SavedArticle]:
        """Inbox articles never sent, favorites first then newest."""
        unsent = [
            a for a in self._iter_articles()
            if a.status == ArticleStatus.INBOX and a.sent_at is None
        ]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        unsent.sort(key=lambda a: a.created_at or epoch, reverse=True)
        unsent.sort(key=lambda a: not a.favorited)
        return unsent[:limit]

    def get_dedup_keys(self) -> set[str]:
        keys: set[str] = set()
        for article in self._iter_articles():
            keys.add(article.content_hash)
            keys.add(article.canonical_url)
        keys.discard("")
        return keys

    def get_article(self, article_id: str) -> Optional[SavedArticle]:
        data = self._read(self._article_path(article_id))
        return self._to_article(data) if data else None

    def find_by_canonical_url_or_hash(
        self, canonical_url: str, content_hash: str
    ) -> Optional[SavedArticle]:
        for article in self._iter_articles():
            if article.canonical_url == canonical_url or article.content_hash == content_hash:
                return article
        return None

    def add_article(self, article: SavedArticle) -> SavedArticle:
        if article.created_at is None:
            article.created_at = datetime.now(timezone.utc)
        self._save_article(article)
        return article

    def mark_sent(self, article_ids: list[str], sent_at: datetime) -> None:
        for article_id in article_ids:
            article = self.get_article(article_id)
            if article is None:
                logger.warning("Cannot mark missing article %s as sent", article_id)
                continue
            article.sent_at = sent_at
            self._save_article(article)

    # Runs

    def save_run(self, run: DigestRun) -> None:
        data = asdict(run)
        data["status"] = run.status.value
        self._write(self.runs_dir / f"{run.id}.yaml", _dump_dates(data, _RUN_DATES))

    def _to_run(self, data: dict[str, Any]) -> DigestRun:
        data = _load_dates(_known_fields(DigestRun, data), _RUN_DATES)
        data["status"] = RunStatus(data["status"])
        data["included_article_ids"] = list(data.get("included_article_ids") or [])
        data["feed_items_included"] = list(data.get("feed_items_included") or [])
        return DigestRun(**data)

    def list_runs(self, limit: Optional[int] = 20) -> list[DigestRun]:
        """Most recent runs first."""
        runs = []
        for path in self.runs_dir.glob("*.yaml"):
            data = self._read(path)
            if data:
                runs.append(self._to_run(data))
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return runs if limit is None else runs[:limit]

    def find_successful_run_on(self, day: date) -> Optional[DigestRun]:
        """Finished run on the given day that delivered a digest."""
        for run in self.list_runs(limit=None):
            if (
                run.status == RunStatus.SUCCESS
                and run.error is None
                and run.finished_at is not None
                and run.email_message_id
                and run.started_at.date() == day
            ):
                return run
        return None
