"""Summary fallbacks and bounded-concurrency batch summarization."""

import asyncio
import logging

from kindle_digest.core.entities import ArticleForRanking, ItemResult, Summary, Tier
from kindle_digest.core.interfaces import SummarizationStrategy, SummaryRequest

logger = logging.getLogger(__name__)

SUMMARY_CONCURRENCY = 5
CRITICAL_EXCERPT_CHARS = 400
SHORT_EXCERPT_CHARS = 150
ELLIPSIS = "..."


def fallback_summary(article: ArticleForRanking, tier: Tier) -> Summary:
    """Excerpt-based summary: 400 chars for critical, 150 otherwise."""
    limit = CRITICAL_EXCERPT_CHARS if tier == Tier.CRITICAL else SHORT_EXCERPT_CHARS
    return Summary(summary=article.excerpt[:limit] + ELLIPSIS, one_liner=article.title)


class ConcurrentSummarizer(SummarizationStrategy):
    """Runs summarize() over many requests with a concurrency limit."""

    concurrency = SUMMARY_CONCURRENCY

    async def summarize_many(self, requests: list[SummaryRequest]) -> dict[str, Summary]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run(request: SummaryRequest) -> ItemResult[Summary]:
            async with semaphore:
                try:
                    summary = await self.summarize(request.article, request.content, request.tier)
                    return ItemResult.success(request.article.id, summary)
                except Exception as e:
                    return ItemResult.failure(request.article.id, str(e))

        results = await asyncio.gather(*(_run(r) for r in requests))

        summaries: dict[str, Summary] = {}
        for result in results:
            if result.ok:
                summaries[result.key] = result.value
            else:
                logger.warning("Summary failed for %s: %s", result.key, result.error)
        return summaries


class FallbackSummarizer(ConcurrentSummarizer):
    """Deterministic summaries cut from the article excerpt."""

    async def summarize(self, article: ArticleForRanking, content: str, tier: Tier) -> Summary:
        return fallback_summary(article, tier)


def fill_missing_summaries(
    requests: list[SummaryRequest], summaries: dict[str, Summary]
) -> dict[str, Summary]:
    """Backfill every request without a summary using the excerpt fallback."""
    complete = dict(summaries)
    for request in requests:
        if request.article.id not in complete:
            complete[request.article.id] = fallback_summary(request.article, request.tier)
    return complete
