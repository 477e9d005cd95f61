"""Tests for YAML article repository."""

import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from kindle_digest.adapters.storage import YamlArticleRepository
from kindle_digest.core import ArticleStatus, DigestRun, RunStatus, SavedArticle

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_article(article_id: str, **overrides) -> SavedArticle:
    fields = dict(
        id=article_id,
        url=f"https://example.com/{article_id}",
        canonical_url=f"https://example.com/{article_id}",
        title=f"Article {article_id}",
        content_html="<p>Body</p>",
        content_text=f"Body of {article_id}",
        content_hash=f"hash-{article_id}",
        created_at=NOW,
    )
    fields.update(overrides)
    return SavedArticle(**fields)


def test_owner_lifecycle() -> None:
    """Test creating and reading the owner."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        assert repo.get_owner() is None

        owner = repo.create_owner("me@example.com")
        assert repo.get_owner() == owner

        updated = repo.create_owner("new@example.com")
        assert updated.id == owner.id
        assert repo.get_owner().email == "new@example.com"


def test_article_roundtrip() -> None:
    """Test articles persist with their fields."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        repo.add_article(make_article(
            "a1", tags=["ai", "rust"], favorited=True, published_at=NOW - timedelta(days=1)
        ))

        loaded = repo.get_article("a1")

        assert loaded.title == "Article a1"
        assert loaded.tags == ["ai", "rust"]
        assert loaded.favorited is True
        assert loaded.status == ArticleStatus.INBOX
        assert loaded.published_at == NOW - timedelta(days=1)
        assert repo.get_article("missing") is None


def test_list_unsent_inbox_order_and_filters() -> None:
    """Test favorites first, then newest, excluding sent and archived."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        repo.add_article(make_article("old", created_at=NOW - timedelta(days=3)))
        repo.add_article(make_article("new", created_at=NOW))
        repo.add_article(make_article("fav", favorited=True, created_at=NOW - timedelta(days=5)))
        repo.add_article(make_article("sent", sent_at=NOW))
        repo.add_article(make_article("archived", status=ArticleStatus.ARCHIVED))

        assert [a.id for a in repo.list_unsent_inbox(10)] == ["fav", "new", "old"]
        assert [a.id for a in repo.list_unsent_inbox(2)] == ["fav", "new"]


def test_dedup_keys_and_lookup() -> None:
    """Test hashes and canonical URLs of all articles are dedup keys."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        repo.add_article(make_article("a1"))
        repo.add_article(make_article("a2", status=ArticleStatus.ARCHIVED))

        keys = repo.get_dedup_keys()

        assert {"hash-a1", "https://example.com/a1", "hash-a2", "https://example.com/a2"} <= keys
        assert repo.find_by_canonical_url_or_hash("https://example.com/a1", "other").id == "a1"
        assert repo.find_by_canonical_url_or_hash("https://other", "hash-a2").id == "a2"
        assert repo.find_by_canonical_url_or_hash("https://other", "other") is None


def test_mark_sent() -> None:
    """Test marking articles sent removes them from the inbox."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        repo.add_article(make_article("a1"))
        repo.add_article(make_article("a2"))

        repo.mark_sent(["a1", "missing"], NOW)

        assert repo.get_article("a1").sent_at == NOW
        assert [a.id for a in repo.list_unsent_inbox(10)] == ["a2"]


def test_runs() -> None:
    """Test run records persist and successful runs are found by day."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        first = DigestRun(id="r1", owner_id="o", status=RunStatus.FAILED, started_at=NOW - timedelta(hours=2))
        empty = DigestRun(
            id="r2", owner_id="o", status=RunStatus.SUCCESS, started_at=NOW - timedelta(hours=1),
            error="No articles available",
        )
        sent = DigestRun(
            id="r3", owner_id="o", status=RunStatus.SUCCESS, started_at=NOW,
            finished_at=NOW, included_article_ids=["a1"],
            feed_items_included=[{"title": "T", "link": "https://x", "score": 12.5, "tier": "notable", "topics": ["ai"]}],
            epub_filename="summary.epub, full.epub",
            email_message_id="msg",
        )
        undelivered = DigestRun(
            id="r4", owner_id="o", status=RunStatus.SUCCESS, started_at=NOW - timedelta(minutes=30),
            finished_at=NOW - timedelta(minutes=29),
        )
        unfinished = DigestRun(
            id="r5", owner_id="o", status=RunStatus.SUCCESS, started_at=NOW - timedelta(minutes=20),
        )
        for run in (first, empty, undelivered, unfinished):
            repo.save_run(run)

        assert repo.find_successful_run_on(date(2024, 1, 15)) is None

        repo.save_run(sent)

        runs = repo.list_runs()
        assert [r.id for r in runs] == ["r3", "r5", "r4", "r2", "r1"]
        assert runs[0].feed_items_included[0]["score"] == 12.5
        assert runs[0].status == RunStatus.SUCCESS
        assert repo.find_successful_run_on(date(2024, 1, 15)).id == "r3"
        assert repo.find_successful_run_on(date(2024, 1, 14)) is None
        assert len(repo.list_runs(limit=1)) == 1
