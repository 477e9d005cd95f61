"""Core domain layer."""

from kindle_digest.core.entities import (
    ArticleContent,
    ArticleForRanking,
    ArticleNotFoundError,
    ArticleStatus,
    DeliveryError,
    DigestError,
    DigestRun,
    DigestStats,
    DuplicateArticleError,
    EpubAttachment,
    ExtractedArticle,
    ExtractionError,
    FeedItem,
    InterestConfiguration,
    InterestTopic,
    ItemResult,
    Owner,
    OwnerNotFoundError,
    RunStatus,
    SavedArticle,
    ScoredFeedItem,
    Summary,
    Tier,
    TierAssignment,
    TieredDigestArticle,
)
from kindle_digest.core.interfaces import (
    ArticleRepository,
    ContentExtractor,
    DeliveryService,
    DigestRenderer,
    FeedFetcher,
    LLMClient,
    RankingStrategy,
    SummarizationStrategy,
    SummaryRequest,
)

__all__ = [
    "ArticleContent",
    "ArticleForRanking",
    "ArticleNotFoundError",
    "ArticleStatus",
    "DeliveryError",
    "DigestError",
    "DigestRun",
    "DigestStats",
    "DuplicateArticleError",
    "EpubAttachment",
    "ExtractedArticle",
    "ExtractionError",
    "FeedItem",
    "InterestConfiguration",
    "InterestTopic",
    "ItemResult",
    "Owner",
    "OwnerNotFoundError",
    "RunStatus",
    "SavedArticle",
    "ScoredFeedItem",
    "Summary",
    "Tier",
    "TierAssignment",
    "TieredDigestArticle",
    "ArticleRepository",
    "ContentExtractor",
    "DeliveryService",
    "DigestRenderer",
    "FeedFetcher",
    "LLMClient",
    "RankingStrategy",
    "SummarizationStrategy",
    "SummaryRequest",
]
