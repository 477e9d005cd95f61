"""Core interfaces for adapters and strategies."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, TYPE_CHECKING

from kindle_digest.core.entities import (
    ArticleForRanking,
    DigestRun,
    EpubAttachment,
    ExtractedArticle,
    FeedItem,
    Owner,
    SavedArticle,
    Summary,
    Tier,
    TierAssignment,
    TieredDigestArticle,
)

if TYPE_CHECKING:
    from kindle_digest.core.assembler import TieredDigest


class FeedFetcher(ABC):
    """Interface for fetching RSS/Atom feeds."""

    @abstractmethod
    async def fetch_many(self, feed_urls: list[str]) -> list[FeedItem]:
        """Fetch all feeds, newest items first. Failing feeds yield nothing."""
        pass


class ContentExtractor(ABC):
    """Interface for extracting readable content from a URL."""

    @abstractmethod
    async def extract(self, url: str) -> ExtractedArticle:
        """Fetch and extract an article. Raises ExtractionError on failure."""
        pass


class DeliveryService(ABC):
    """Interface for delivering rendered digests."""

    @abstractmethod
    async def send(self, attachments: list[EpubAttachment], subject: str, text: str) -> str:
        """Send attachments and return the delivery message id."""
        pass


class ArticleRepository(ABC):
    """Interface for persisted articles, owner and digest runs."""

    @abstractmethod
    def get_owner(self) -> Optional[Owner]:
        pass

    @abstractmethod
    def list_unsent_inbox(self, limit: int) -> list[SavedArticle]:
        """Inbox articles never sent, favorites first then newest."""
        pass

    @abstractmethod
    def get_dedup_keys(self) -> set[str]:
        """Content hashes and canonical URLs of every stored article."""
        pass

    @abstractmethod
    def get_article(self, article_id: str) -> Optional[SavedArticle]:
        pass

    @abstractmethod
    def find_by_canonical_url_or_hash(
        self, canonical_url: str, content_hash: str
    ) -> Optional[SavedArticle]:
        pass

    @abstractmethod
    def add_article(self, article: SavedArticle) -> SavedArticle:
        pass

    @abstractmethod
    def mark_sent(self, article_ids: list[str], sent_at: datetime) -> None:
        pass

    @abstractmethod
    def save_run(self, run: DigestRun) -> None:
        pass

    @abstractmethod
    def find_successful_run_on(self, day: date) -> Optional[DigestRun]:
        pass


class RankingStrategy(ABC):
    """Assigns an importance tier to every article."""

    @abstractmethod
    async def rank(
        self, articles: list[ArticleForRanking], interest_topics: list[str]
    ) -> dict[str, TierAssignment]:
        """Return tier assignments keyed by article id."""
        pass


@dataclass(frozen=True)
class SummaryRequest:
    """One article to summarize at a given tier."""

    article: ArticleForRanking
    content: str
    tier: Tier


class SummarizationStrategy(ABC):
    """Produces tier-appropriate summaries."""

    @abstractmethod
    async def summarize(self, article: ArticleForRanking, content: str, tier: Tier) -> Summary:
        """Summarize one article."""
        pass

    @abstractmethod
    async def summarize_many(self, requests: list[SummaryRequest]) -> dict[str, Summary]:
        """Summarize many articles. Failed articles are absent from the result."""
        pass


class LLMClient(ABC):
    """Interface for structured LLM requests."""

    @abstractmethod
    async def complete_json(
        self,
        system: str,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Any:
        """Send a prompt and return the parsed JSON answer."""
        pass


class DigestRenderer(ABC):
    """Interface for rendering digests into e-book documents."""

    @abstractmethod
    def render_summary(self, title: str, digest_date: datetime, digest: "TieredDigest") -> bytes:
        """Render the all-tiers summary document."""
        pass

    @abstractmethod
    def render_full_articles(
        self, title: str, digest_date: datetime, articles: list[TieredDigestArticle]
    ) -> bytes:
        """Render the critical-tier full-article document."""
        pass

    @abstractmethod
    def render_articles(
        self, title: str, digest_date: datetime, articles: list[TieredDigestArticle]
    ) -> bytes:
        """Render a plain (non-tiered) document with the given articles."""
        pass
