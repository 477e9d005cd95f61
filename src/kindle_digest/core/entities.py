"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class Tier(str, Enum):
    """Importance tier of an article in a digest."""

    CRITICAL = "critical"
    NOTABLE = "notable"
    RELATED = "related"

    @property
    def rank(self) -> int:
        """Position in the importance order (0 is most important)."""
        return list(Tier).index(self)


class ArticleStatus(str, Enum):
    """Lifecycle status of a saved article."""

    INBOX = "INBOX"
    ARCHIVED = "ARCHIVED"


class RunStatus(str, Enum):
    """Outcome of a digest run."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DigestError(Exception):
    """Base error for digest operations."""


class OwnerNotFoundError(DigestError):
    """No owner record exists in storage."""


class ExtractionError(DigestError):
    """Article content could not be fetched or extracted."""


class DeliveryError(DigestError):
    """Digest could not be delivered."""


class ArticleNotFoundError(DigestError):
    """Requested saved article does not exist."""


class DuplicateArticleError(DigestError):
    """Article with the same canonical URL or content is already saved."""


@dataclass(frozen=True)
class FeedItem:
    """Item fetched from an RSS or Atom feed."""

    title: str
    link: str
    published_at: Optional[datetime]
    content: str
    content_snippet: str
    author: Optional[str]
    feed_title: str
    feed_url: str


@dataclass(frozen=True)
class InterestTopic:
    """Named interest: keywords to match and optional topic feeds."""

    keywords: list[str]
    feeds: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.keywords:
            raise ValueError("Interest topic needs at least one keyword")


InterestConfiguration = dict[str, InterestTopic]


@dataclass(frozen=True)
class ScoredFeedItem:
    """Feed item with its interest score."""

    item: FeedItem
    score: float
    matched_topics: list[str]
    matched_keywords: list[str]
    recency_score: float

    @property
    def link(self) -> str:
        return self.item.link

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def primary_topic(self) -> Optional[str]:
        return self.matched_topics[0] if self.matched_topics else None


@dataclass(frozen=True)
class ArticleForRanking:
    """Rankable unit built from a saved article or a selected feed item."""

    id: str
    title: str
    source: str
    published_at: Optional[datetime]
    excerpt: str
    content_snippet: str
    url: str
    is_manual_save: bool
    matched_topics: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TierAssignment:
    """Tier given to one article and why."""

    tier: Tier
    reason: str


@dataclass(frozen=True)
class Summary:
    """Tier-appropriate prose for one article."""

    summary: str
    one_liner: Optional[str] = None


@dataclass(frozen=True)
class TieredDigestArticle:
    """Article ready for rendering."""

    id: str
    title: str
    author: Optional[str]
    site_name: Optional[str]
    url: str
    tier: Tier
    summary: str
    one_liner: Optional[str] = None
    content_html: Optional[str] = None
    reading_minutes: Optional[int] = None


@dataclass(frozen=True)
class ExtractedArticle:
    """Readable content extracted from a web page."""

    title: str
    author: Optional[str]
    site_name: Optional[str]
    published_at: Optional[datetime]
    excerpt: str
    content_html: str
    content_text: str
    word_count: int
    reading_minutes: int
    canonical_url: str
    content_hash: str


@dataclass(frozen=True)
class ArticleContent:
    """Full content of a candidate article, keyed by article id in a run."""

    html: str
    text: str
    reading_minutes: int
    author: Optional[str] = None


@dataclass
class SavedArticle:
    """Article saved by the owner."""

    id: str
    url: str
    canonical_url: str
    title: str
    content_html: str
    content_text: str
    content_hash: str
    author: Optional[str] = None
    site_name: Optional[str] = None
    published_at: Optional[datetime] = None
    excerpt: Optional[str] = None
    word_count: int = 0
    reading_minutes: int = 1
    status: ArticleStatus = ArticleStatus.INBOX
    favorited: bool = False
    tags: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("Title cannot be empty")
        if not self.url:
            raise ValueError("URL cannot be empty")


@dataclass(frozen=True)
class Owner:
    """The single owner of the digest."""

    id: str
    email: str


@dataclass
class DigestRun:
    """Record of one digest run."""

    id: str
    owner_id: str
    status: RunStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    included_article_ids: list[str] = field(default_factory=list)
    feed_items_included: list[dict[str, Any]] = field(default_factory=list)
    epub_filename: Optional[str] = None
    email_message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ItemResult(Generic[T]):
    """Outcome of one item-level operation: a value or an error message."""

    key: str
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, key: str, value: T) -> "ItemResult[T]":
        return cls(key=key, value=value)

    @classmethod
    def failure(cls, key: str, error: str) -> "ItemResult[T]":
        return cls(key=key, error=error or "Unknown error")


@dataclass(frozen=True)
class EpubAttachment:
    """Rendered EPUB ready to be attached to an email."""

    filename: str
    content: bytes


@dataclass(frozen=True)
class DigestStats:
    """Counts reported for a tiered digest."""

    critical: int
    notable: int
    related: int
    full_articles: int

    @property
    def total(self) -> int:
        return self.critical + self.notable + self.related
