"""Tests for use cases."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kindle_digest.adapters.epub import EpubGenerator
from kindle_digest.adapters.llm import LLMRanker, LLMSummarizer
from kindle_digest.adapters.storage import YamlArticleRepository
from kindle_digest.config import DigestConfig, Settings
from kindle_digest.core import (
    ArticleNotFoundError,
    ArticleStatus,
    DeliveryError,
    DuplicateArticleError,
    ExtractedArticle,
    ExtractionError,
    FeedItem,
    InterestTopic,
    OwnerNotFoundError,
    RunStatus,
    SavedArticle,
    Tier,
    TierAssignment,
)
from kindle_digest.core.ranking import FallbackRanker
from kindle_digest.core.summarization import FallbackSummarizer
from kindle_digest.use_cases import ArticleService, DigestPipeline, select_strategies

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

INTERESTS = {
    "tech": InterestTopic(keywords=["rust"]),
    "space": InterestTopic(keywords=["nasa"], feeds=["https://space.example.com/feed"]),
}


def make_feed_item(title: str, slug: str) -> FeedItem:
    return FeedItem(
        title=title,
        link=f"https://news.example.com/{slug}",
        published_at=NOW - timedelta(hours=1),
        content="",
        content_snippet=f"{title} snippet",
        author=None,
        feed_title="Example News",
        feed_url="https://news.example.com/feed",
    )


def make_extracted(url: str) -> ExtractedArticle:
    return ExtractedArticle(
        title="Extracted",
        author="Reporter",
        site_name="Example News",
        published_at=None,
        excerpt="Extracted excerpt",
        content_html=f"<p>Body of {url}</p>",
        content_text=f"Body of {url}",
        word_count=400,
        reading_minutes=2,
        canonical_url=url,
        content_hash=f"hash:{url}",
    )


def make_saved(article_id: str = "saved-1", **overrides) -> SavedArticle:
    fields = dict(
        id=article_id,
        url=f"https://blog.example.org/{article_id}",
        canonical_url=f"https://blog.example.org/{article_id}",
        title="A saved essay",
        content_html="<p>Saved body</p>",
        content_text="Saved body",
        content_hash=f"hash-{article_id}",
        site_name="Example Blog",
        excerpt="Saved excerpt",
        reading_minutes=7,
        created_at=NOW - timedelta(days=1),
    )
    fields.update(overrides)
    return SavedArticle(**fields)


FEED_ITEMS = [
    make_feed_item("Rust 2.0 released", "rust-2"),
    make_feed_item("Rust tooling roundup", "rust-tools"),
    make_feed_item("NASA launches probe", "nasa-probe"),
]


@pytest.fixture
def repository() -> Iterator[YamlArticleRepository]:
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        repo.create_owner("me@example.com")
        yield repo


@pytest.fixture
def extractor() -> AsyncMock:
    mock = AsyncMock()
    mock.extract.side_effect = make_extracted
    return mock


@pytest.fixture
def delivery() -> AsyncMock:
    mock = AsyncMock()
    mock.send.return_value = "msg-1"
    return mock


def make_pipeline(repository, extractor, delivery, feed_items=FEED_ITEMS, **kwargs) -> DigestPipeline:
    fetcher = AsyncMock()
    fetcher.fetch_many.return_value = list(feed_items)
    options = dict(
        repository=repository,
        feed_fetcher=fetcher,
        extractor=extractor,
        ranker=FallbackRanker(),
        summarizer=FallbackSummarizer(),
        renderer=EpubGenerator(),
        delivery=delivery,
        config=DigestConfig(),
        feeds=["https://news.example.com/feed"],
        interests=INTERESTS,
    )
    options.update(kwargs)
    return DigestPipeline(**options)


@pytest.mark.asyncio
async def test_run_with_nothing_to_send(repository, extractor, delivery) -> None:
    """Test an empty run succeeds without delivery."""
    pipeline = make_pipeline(repository, extractor, delivery, feed_items=[])

    run = await pipeline.run(NOW)

    assert run.status == RunStatus.SUCCESS
    assert run.error == "No articles available"
    assert run.finished_at is not None
    delivery.send.assert_not_called()
    assert repository.list_runs()[0].error == "No articles available"


@pytest.mark.asyncio
async def test_run_without_feeds_skips_fetching(repository, extractor, delivery) -> None:
    """Test no configured feeds means no fetch."""
    pipeline = make_pipeline(repository, extractor, delivery, feeds=[], interests={})

    run = await pipeline.run(NOW)

    pipeline.feed_fetcher.fetch_many.assert_not_called()
    assert run.error == "No articles available"


@pytest.mark.asyncio
async def test_run_full_digest(repository, extractor, delivery) -> None:
    """Test one saved article and three feed items make a delivered digest."""
    repository.add_article(make_saved())
    pipeline = make_pipeline(repository, extractor, delivery)

    run = await pipeline.run(NOW)

    assert run.status == RunStatus.SUCCESS
    assert run.error is None
    assert run.email_message_id == "msg-1"
    assert run.included_article_ids == ["saved-1"]
    assert len(run.feed_items_included) == 3
    assert {item["link"] for item in run.feed_items_included} == {i.link for i in FEED_ITEMS}
    assert all(item["tier"] in ("notable", "related") for item in run.feed_items_included)
    assert run.epub_filename == "kindle-digest-summary-2024-01-15.epub, kindle-digest-full-2024-01-15.epub"

    pipeline.feed_fetcher.fetch_many.assert_called_once_with(
        ["https://news.example.com/feed", "https://space.example.com/feed"]
    )
    delivery.send.assert_called_once()
    attachments, subject, text = delivery.send.call_args.args
    assert [a.filename for a in attachments] == [
        "kindle-digest-summary-2024-01-15.epub",
        "kindle-digest-full-2024-01-15.epub",
    ]
    assert all(a.content[:2] == b"PK" for a in attachments)
    assert subject == "Kindle Digest - Monday, January 15, 2024"
    assert "1 critical, 2 notable, 1 related items" in text
    assert "1 complete articles" in text

    assert repository.get_article("saved-1").sent_at == NOW
    assert repository.list_unsent_inbox(10) == []
    assert repository.find_successful_run_on(NOW.date()).id == run.id


@pytest.mark.asyncio
async def test_saved_article_is_critical(repository, extractor, delivery) -> None:
    """Test the manual save outranks feed items under fallback ranking."""
    repository.add_article(make_saved())
    renderer = MagicMock()
    renderer.render_summary.return_value = b"summary"
    renderer.render_full_articles.return_value = b"full"
    pipeline = make_pipeline(repository, extractor, delivery, renderer=renderer)

    await pipeline.run(NOW)

    digest = renderer.render_summary.call_args.args[2]
    assert [a.id for a in digest.critical] == ["saved-1"]
    assert len(digest.articles) == 4
    full = renderer.render_full_articles.call_args.args[2]
    assert [a.id for a in full] == ["saved-1"]
    assert full[0].reading_minutes == 7


@pytest.mark.asyncio
async def test_extraction_failures_are_excluded(repository, extractor, delivery) -> None:
    """Test failed extractions drop only their item."""
    def extract(url: str) -> ExtractedArticle:
        if "nasa" in url:
            raise ExtractionError("Failed to fetch URL: 403 Forbidden")
        return make_extracted(url)

    extractor.extract.side_effect = extract
    pipeline = make_pipeline(repository, extractor, delivery)

    run = await pipeline.run(NOW)

    assert run.status == RunStatus.SUCCESS
    links = [item["link"] for item in run.feed_items_included]
    assert "https://news.example.com/nasa-probe" not in links
    assert len(links) == 2


@pytest.mark.asyncio
async def test_history_duplicates_are_skipped(repository, extractor, delivery) -> None:
    """Test feed items already stored are not selected again."""
    repository.add_article(make_saved(
        "old", canonical_url="https://news.example.com/rust-2", sent_at=NOW - timedelta(days=2)
    ))
    pipeline = make_pipeline(repository, extractor, delivery)

    run = await pipeline.run(NOW)

    links = [item["link"] for item in run.feed_items_included]
    assert "https://news.example.com/rust-2" not in links
    assert run.included_article_ids == []


@pytest.mark.asyncio
async def test_limits_are_applied(repository, extractor, delivery) -> None:
    """Test feed selection and candidate caps."""
    repository.add_article(make_saved("s1"))
    repository.add_article(make_saved("s2", created_at=NOW))
    repository.add_article(make_saved("s3", created_at=NOW - timedelta(days=3)))
    config = DigestConfig(max_rss=2, max_per_topic=1, max_articles=2)
    pipeline = make_pipeline(repository, extractor, delivery, config=config)

    run = await pipeline.run(NOW)

    assert run.included_article_ids == ["s2", "s1"]
    assert run.feed_items_included == []
    assert extractor.extract.call_count == 2


@pytest.mark.asyncio
async def test_ranker_failure_uses_fallback(repository, extractor, delivery) -> None:
    """Test a failing ranking strategy falls back to keyword ranking."""
    ranker = AsyncMock()
    ranker.rank.side_effect = RuntimeError("LLM unavailable")
    pipeline = make_pipeline(repository, extractor, delivery, ranker=ranker)

    run = await pipeline.run(NOW)

    assert run.status == RunStatus.SUCCESS
    assert sorted(item["tier"] for item in run.feed_items_included) == ["critical", "notable", "notable"]


@pytest.mark.asyncio
async def test_omitted_rankings_default_to_related(repository, extractor, delivery) -> None:
    """Test articles a ranker leaves out become related."""
    ranker = AsyncMock()
    ranker.rank.return_value = {
        FEED_ITEMS[0].link: TierAssignment(tier=Tier.CRITICAL, reason="Big"),
    }
    summarizer = AsyncMock()
    summarizer.summarize_many.return_value = {}
    pipeline = make_pipeline(repository, extractor, delivery, ranker=ranker, summarizer=summarizer)

    run = await pipeline.run(NOW)

    tiers = {item["link"]: item["tier"] for item in run.feed_items_included}
    assert tiers[FEED_ITEMS[0].link] == "critical"
    assert tiers[FEED_ITEMS[1].link] == "related"
    assert tiers[FEED_ITEMS[2].link] == "related"


@pytest.mark.asyncio
async def test_delivery_failure_marks_run_failed(repository, extractor, delivery) -> None:
    """Test delivery errors fail the run and leave articles unsent."""
    repository.add_article(make_saved())
    delivery.send.side_effect = DeliveryError("Failed to send email: 500")
    pipeline = make_pipeline(repository, extractor, delivery)

    with pytest.raises(DeliveryError):
        await pipeline.run(NOW)

    runs = repository.list_runs()
    assert runs[0].status == RunStatus.FAILED
    assert runs[0].error == "Failed to send email: 500"
    assert runs[0].finished_at is not None
    assert repository.get_article("saved-1").sent_at is None


@pytest.mark.asyncio
async def test_missing_owner_is_fatal(extractor, delivery) -> None:
    """Test runs without an owner fail before recording anything."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo = YamlArticleRepository(Path(tmpdir))
        pipeline = make_pipeline(repo, extractor, delivery)

        with pytest.raises(OwnerNotFoundError):
            await pipeline.run(NOW)

        assert repo.list_runs() == []


@pytest.mark.asyncio
async def test_without_delivery_writes_output(repository, extractor) -> None:
    """Test runs without delivery still render and write EPUBs."""
    with tempfile.TemporaryDirectory() as outdir:
        pipeline = make_pipeline(repository, extractor, None, output_dir=Path(outdir) / "digests")

        run = await pipeline.run(NOW)

        assert run.email_message_id is None
        assert sorted(p.name for p in (Path(outdir) / "digests").iterdir()) == [
            "kindle-digest-full-2024-01-15.epub",
            "kindle-digest-summary-2024-01-15.epub",
        ]


@pytest.mark.asyncio
async def test_save_feed_items_archives(repository, extractor, delivery) -> None:
    """Test extracted feed items are archived when enabled."""
    pipeline = make_pipeline(repository, extractor, delivery, config=DigestConfig(save_feed_items=True))

    await pipeline.run(NOW)

    archived = [a for a in repository.list_articles() if a.status == ArticleStatus.ARCHIVED]
    assert len(archived) == 3
    assert repository.list_unsent_inbox(10) == []
    assert "https://news.example.com/rust-2" in repository.get_dedup_keys()


@pytest.mark.asyncio
async def test_archive_failure_is_isolated(repository, extractor, delivery) -> None:
    """Test one failed archive write skips only that item."""
    add_article = repository.add_article

    def flaky_add(article: SavedArticle) -> SavedArticle:
        if article.url.endswith("rust-2"):
            raise OSError("disk full")
        return add_article(article)

    pipeline = make_pipeline(repository, extractor, delivery, config=DigestConfig(save_feed_items=True))

    with patch.object(repository, "add_article", side_effect=flaky_add):
        run = await pipeline.run(NOW)

    assert run.status == RunStatus.SUCCESS
    assert len(run.feed_items_included) == 3
    archived = [a.url for a in repository.list_articles() if a.status == ArticleStatus.ARCHIVED]
    assert sorted(archived) == [
        "https://news.example.com/nasa-probe",
        "https://news.example.com/rust-tools",
    ]


def test_select_strategies() -> None:
    """Test strategies follow the API key."""
    ranker, summarizer = select_strategies(Settings(), None)
    assert isinstance(ranker, FallbackRanker)
    assert isinstance(summarizer, FallbackSummarizer)

    ranker, summarizer = select_strategies(Settings(anthropic_api_key="k"), AsyncMock())
    assert isinstance(ranker, LLMRanker)
    assert isinstance(summarizer, LLMSummarizer)


@pytest.mark.asyncio
async def test_article_service_add(repository, extractor) -> None:
    """Test saving an article and rejecting duplicates."""
    service = ArticleService(repository, extractor, EpubGenerator())

    article = await service.add("https://news.example.com/story", tags=["ai"], favorited=True)

    stored = repository.get_article(article.id)
    assert stored.status == ArticleStatus.INBOX
    assert stored.tags == ["ai"]
    assert stored.favorited is True
    assert stored.canonical_url == "https://news.example.com/story"

    with pytest.raises(DuplicateArticleError):
        await service.add("https://news.example.com/story")


@pytest.mark.asyncio
async def test_article_service_send_now(repository, extractor, delivery) -> None:
    """Test sending one article with the legacy filename."""
    repository.add_article(make_saved())
    service = ArticleService(repository, extractor, EpubGenerator(), delivery)

    message_id = await service.send_now("saved-1", NOW)

    assert message_id == "msg-1"
    attachments, subject, text = delivery.send.call_args.args
    assert [a.filename for a in attachments] == ["kindle-digest-2024-01-15.epub"]
    assert text == "Your daily digest with 1 articles is attached."
    assert repository.get_article("saved-1").sent_at == NOW


@pytest.mark.asyncio
async def test_article_service_send_errors(repository, extractor, delivery) -> None:
    """Test unknown articles and delivery failures surface."""
    repository.add_article(make_saved())
    service = ArticleService(repository, extractor, EpubGenerator(), delivery)

    with pytest.raises(ArticleNotFoundError):
        await service.send_now("missing", NOW)

    delivery.send.side_effect = DeliveryError("rejected")
    with pytest.raises(DeliveryError, match="rejected"):
        await service.send_now("saved-1", NOW)
    assert repository.get_article("saved-1").sent_at is None

    with pytest.raises(DeliveryError):
        await ArticleService(repository, extractor, EpubGenerator()).send_now("saved-1", NOW)
