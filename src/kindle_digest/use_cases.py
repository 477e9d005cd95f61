"""Business logic use cases."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from kindle_digest.adapters.llm import LLMRanker, LLMSummarizer
from kindle_digest.config import DigestConfig, Settings
from kindle_digest.core import (
    ArticleContent,
    ArticleForRanking,
    ArticleNotFoundError,
    ArticleRepository,
    ArticleStatus,
    ContentExtractor,
    DeliveryError,
    DeliveryService,
    DigestRenderer,
    DigestRun,
    DuplicateArticleError,
    EpubAttachment,
    ExtractedArticle,
    FeedFetcher,
    InterestConfiguration,
    ItemResult,
    LLMClient,
    OwnerNotFoundError,
    RankingStrategy,
    RunStatus,
    SavedArticle,
    ScoredFeedItem,
    SummarizationStrategy,
    Summary,
    SummaryRequest,
    Tier,
    TierAssignment,
    TieredDigestArticle,
)
from kindle_digest.core.assembler import (
    DigestAssembler,
    TieredDigest,
    digest_filename,
    email_subject,
    full_articles_filename,
    single_email_text,
    summary_filename,
    tiered_email_text,
)
from kindle_digest.core.interests import (
    dedupe_scored_items,
    get_all_feeds_from_interests,
    score_and_rank_feed_items,
    select_diverse_items,
)
from kindle_digest.core.ranking import FallbackRanker, fill_missing_rankings
from kindle_digest.core.summarization import FallbackSummarizer, fill_missing_summaries

logger = logging.getLogger(__name__)

NO_ARTICLES_ERROR = "No articles available"
SAVED_EXCERPT_CHARS = 500


def select_strategies(
    settings: Settings, llm_client: Optional[LLMClient] = None
) -> tuple[RankingStrategy, SummarizationStrategy]:
    """Choose LLM-backed strategies when an API key is configured."""
    if settings.llm_enabled and llm_client is not None:
        return LLMRanker(llm_client), LLMSummarizer(llm_client)
    return FallbackRanker(), FallbackSummarizer()


def saved_article_for_ranking(article: SavedArticle) -> ArticleForRanking:
    return ArticleForRanking(
        id=article.id,
        title=article.title,
        source=article.site_name or "Unknown",
        published_at=article.published_at,
        excerpt=article.excerpt or article.content_text[:SAVED_EXCERPT_CHARS],
        content_snippet=article.excerpt or "",
        url=article.url,
        is_manual_save=True,
    )


def feed_item_for_ranking(scored: ScoredFeedItem) -> ArticleForRanking:
    item = scored.item
    return ArticleForRanking(
        id=item.link,
        title=item.title,
        source=item.feed_title,
        published_at=item.published_at,
        excerpt=item.content_snippet or item.content[:SAVED_EXCERPT_CHARS],
        content_snippet=item.content_snippet,
        url=item.link,
        is_manual_save=False,
        matched_topics=list(scored.matched_topics),
    )


class DigestPipeline:
    """Daily digest run: collect, rank, summarize, render and deliver."""

    def __init__(
        self,
        repository: ArticleRepository,
        feed_fetcher: FeedFetcher,
        extractor: ContentExtractor,
        ranker: RankingStrategy,
        summarizer: SummarizationStrategy,
        renderer: DigestRenderer,
        delivery: Optional[DeliveryService] = None,
        config: Optional[DigestConfig] = None,
        feeds: Optional[list[str]] = None,
        interests: Optional[InterestConfiguration] = None,
        output_dir: Optional[Path] = None,
    ) -> None:
        self.repository = repository
        self.feed_fetcher = feed_fetcher
        self.extractor = extractor
        self.ranker = ranker
        self.summarizer = summarizer
        self.renderer = renderer
        self.delivery = delivery
        self.config = config or DigestConfig()
        self.feeds = feeds or []
        self.interests = interests or {}
        self.output_dir = output_dir
        self.assembler = DigestAssembler()

    async def run(self, now: Optional[datetime] = None) -> DigestRun:
        """Execute one digest run and return its record.

        Raises:
            OwnerNotFoundError: If no owner exists; no run is recorded
        """
        now = now or datetime.now(timezone.utc)

        owner = self.repository.get_owner()
        if owner is None:
            raise OwnerNotFoundError("No owner found. Run 'kindle-digest init' first.")

        run = DigestRun(
            id=uuid.uuid4().hex,
            owner_id=owner.id,
            status=RunStatus.SUCCESS,
            started_at=now,
        )
        self.repository.save_run(run)
        logger.info("Started digest run %s", run.id)

        try:
            await self._execute(run, now)
        except Exception as e:
            logger.exception("Digest run %s failed", run.id)
            run.status = RunStatus.FAILED
            run.error = str(e) or e.__class__.__name__
            run.finished_at = datetime.now(timezone.utc)
            self.repository.save_run(run)
            raise

        run.finished_at = datetime.now(timezone.utc)
        self.repository.save_run(run)
        return run

    async def _execute(self, run: DigestRun, now: datetime) -> None:
        saved = self.repository.list_unsent_inbox(self.config.max_saved)
        logger.info("Found %d unsent saved articles", len(saved))

        dedup_keys = self.repository.get_dedup_keys()
        selected = await self.collect_feed_items(dedup_keys, now)

        if not saved and not selected:
            logger.info("No articles to include in digest, skipping")
            run.error = NO_ARTICLES_ERROR
            return

        contents: dict[str, ArticleContent] = {
            article.id: ArticleContent(
                html=article.content_html,
                text=article.content_text,
                reading_minutes=article.reading_minutes,
                author=article.author,
            )
            for article in saved
        }

        extracted = await self.extract_feed_items(selected)
        for link, article in extracted.items():
            contents[link] = ArticleContent(
                html=article.content_html,
                text=article.content_text,
                reading_minutes=article.reading_minutes,
                author=article.author,
            )
        if self.config.save_feed_items:
            self.archive_feed_items(selected, extracted)

        candidates = [saved_article_for_ranking(a) for a in saved] + [
            feed_item_for_ranking(s) for s in selected if s.link in extracted
        ]
        candidates = candidates[:self.config.max_articles]
        logger.info("Ranking %d articles", len(candidates))

        rankings = await self.rank(candidates)
        summaries = await self.summarize(candidates, rankings, contents)

        digest = self.assembler.assemble(candidates, rankings, summaries, contents)
        stats = digest.stats()
        logger.info(
            "Tiered articles: %d critical, %d notable, %d related",
            stats.critical, stats.notable, stats.related,
        )

        attachments = self.render(digest, now)
        self.write_output(attachments)

        if self.delivery is not None:
            run.email_message_id = await self.delivery.send(
                attachments,
                email_subject(now, self.config.timezone),
                tiered_email_text(stats),
            )
        else:
            logger.info("Delivery disabled, skipping email")

        included_ids = {a.id for a in digest.articles}
        saved_ids = [a.id for a in saved if a.id in included_ids]
        if saved_ids:
            self.repository.mark_sent(saved_ids, now)

        run.included_article_ids = saved_ids
        run.feed_items_included = [
            {
                "title": s.title,
                "link": s.link,
                "score": s.score,
                "tier": rankings[s.link].tier.value,
                "topics": list(s.matched_topics),
            }
            for s in selected
            if s.link in rankings
        ]
        run.epub_filename = ", ".join(a.filename for a in attachments)

    async def collect_feed_items(self, dedup_keys: set[str], now: datetime) -> list[ScoredFeedItem]:
        """Fetch, score, deduplicate and select feed items."""
        feeds = list(dict.fromkeys(self.feeds + get_all_feeds_from_interests(self.interests)))
        if not feeds:
            return []

        logger.info("Fetching %d feeds", len(feeds))
        items = await self.feed_fetcher.fetch_many(feeds)
        logger.info("Fetched %d feed items", len(items))

        scored = score_and_rank_feed_items(items, self.interests, now)
        fresh = dedupe_scored_items(scored, dedup_keys)
        selected = select_diverse_items(fresh, self.config.max_rss, self.config.max_per_topic)
        logger.info(
            "Scored %d matching items, %d new, selected %d",
            len(scored), len(fresh), len(selected),
        )
        return selected

    async def extract_feed_items(self, selected: list[ScoredFeedItem]) -> dict[str, ExtractedArticle]:
        """Extract selected feed items concurrently. Failed items are left out."""
        semaphore = asyncio.Semaphore(max(1, self.config.extraction_concurrency))

        async def _extract(scored: ScoredFeedItem) -> ItemResult[ExtractedArticle]:
            async with semaphore:
                try:
                    return ItemResult.success(scored.link, await self.extractor.extract(scored.link))
                except Exception as e:
                    return ItemResult.failure(scored.link, str(e))

        results = await asyncio.gather(*(_extract(s) for s in selected))

        extracted: dict[str, ExtractedArticle] = {}
        for result in results:
            if result.ok:
                extracted[result.key] = result.value
            else:
                logger.warning("Failed to extract feed item %s: %s", result.key, result.error)
        return extracted

    def archive_feed_items(
        self, selected: list[ScoredFeedItem], extracted: dict[str, ExtractedArticle]
    ) -> None:
        """Store extracted feed items as archived articles."""
        for scored in selected:
            article = extracted.get(scored.link)
            if article is None:
                continue
            try:
                if self.repository.find_by_canonical_url_or_hash(
                    article.canonical_url, article.content_hash
                ):
                    continue
                self.repository.add_article(SavedArticle(
                    id=uuid.uuid4().hex,
                    url=scored.link,
                    canonical_url=article.canonical_url,
                    title=article.title,
                    content_html=article.content_html,
                    content_text=article.content_text,
                    content_hash=article.content_hash,
                    author=article.author,
                    site_name=article.site_name,
                    published_at=scored.item.published_at,
                    excerpt=article.excerpt,
                    word_count=article.word_count,
                    reading_minutes=article.reading_minutes,
                    status=ArticleStatus.ARCHIVED,
                ))
            except Exception as e:
                logger.warning("Failed to archive feed item %s: %s", scored.link, e)

    async def rank(self, candidates: list[ArticleForRanking]) -> dict[str, TierAssignment]:
        """Rank candidates, falling back to keyword ranking if the strategy fails."""
        topics = list(self.interests)
        try:
            rankings = await self.ranker.rank(candidates, topics)
        except Exception as e:
            logger.warning("Ranking failed, using fallback: %s", e)
            rankings = await FallbackRanker().rank(candidates, topics)
        return fill_missing_rankings(candidates, rankings)

    async def summarize(
        self,
        candidates: list[ArticleForRanking],
        rankings: dict[str, TierAssignment],
        contents: dict[str, ArticleContent],
    ) -> dict[str, Summary]:
        requests = [
            SummaryRequest(
                article=article,
                content=contents[article.id].text if article.id in contents else article.excerpt,
                tier=rankings[article.id].tier,
            )
            for article in candidates
        ]
        try:
            summaries = await self.summarizer.summarize_many(requests)
        except Exception as e:
            logger.warning("Summaries failed, using fallback: %s", e)
            summaries = {}
        return fill_missing_summaries(requests, summaries)

    def render(self, digest: TieredDigest, now: datetime) -> list[EpubAttachment]:
        """Render the summary and full-article documents."""
        title = self.config.title
        return [
            EpubAttachment(
                filename=summary_filename(now),
                content=self.renderer.render_summary(title, now, digest),
            ),
            EpubAttachment(
                filename=full_articles_filename(now),
                content=self.renderer.render_full_articles(title, now, digest.full_articles()),
            ),
        ]

    def write_output(self, attachments: list[EpubAttachment]) -> None:
        if self.output_dir is None:
            return
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for attachment in attachments:
            path = self.output_dir / attachment.filename
            path.write_bytes(attachment.content)
            logger.info("Saved %s", path)


class ArticleService:
    """Save articles and send single articles on demand."""

    def __init__(
        self,
        repository: ArticleRepository,
        extractor: ContentExtractor,
        renderer: DigestRenderer,
        delivery: Optional[DeliveryService] = None,
        config: Optional[DigestConfig] = None,
    ) -> None:
        self.repository = repository
        self.extractor = extractor
        self.renderer = renderer
        self.delivery = delivery
        self.config = config or DigestConfig()

    async def add(
        self, url: str, tags: Optional[list[str]] = None, favorited: bool = False
    ) -> SavedArticle:
        """Extract and store an article in the inbox.

        Raises:
            ExtractionError: If the page cannot be extracted
            DuplicateArticleError: If the article is already saved
        """
        extracted = await self.extractor.extract(url)

        existing = self.repository.find_by_canonical_url_or_hash(
            extracted.canonical_url, extracted.content_hash
        )
        if existing is not None:
            raise DuplicateArticleError(f"Article already saved: {existing.id}")

        return self.repository.add_article(SavedArticle(
            id=uuid.uuid4().hex,
            url=url,
            canonical_url=extracted.canonical_url,
            title=extracted.title,
            content_html=extracted.content_html,
            content_text=extracted.content_text,
            content_hash=extracted.content_hash,
            author=extracted.author,
            site_name=extracted.site_name,
            published_at=extracted.published_at,
            excerpt=extracted.excerpt,
            word_count=extracted.word_count,
            reading_minutes=extracted.reading_minutes,
            favorited=favorited,
            tags=list(tags or []),
            created_at=datetime.now(timezone.utc),
        ))

    async def send_now(self, article_id: str, now: Optional[datetime] = None) -> str:
        """Send one saved article as its own digest and mark it sent.

        Returns:
            Delivery message id

        Raises:
            ArticleNotFoundError: If the article does not exist
            DeliveryError: If delivery is not configured or fails
        """
        now = now or datetime.now(timezone.utc)

        article = self.repository.get_article(article_id)
        if article is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}")
        if self.delivery is None:
            raise DeliveryError("Email delivery is not configured")

        entry = TieredDigestArticle(
            id=article.id,
            title=article.title,
            author=article.author,
            site_name=article.site_name,
            url=article.url,
            tier=Tier.CRITICAL,
            summary=article.excerpt or "",
            content_html=article.content_html,
            reading_minutes=article.reading_minutes,
        )
        attachment = EpubAttachment(
            filename=digest_filename(now),
            content=self.renderer.render_articles(self.config.title, now, [entry]),
        )

        message_id = await self.delivery.send(
            [attachment], email_subject(now, self.config.timezone), single_email_text(1)
        )
        self.repository.mark_sent([article.id], now)
        return message_id
