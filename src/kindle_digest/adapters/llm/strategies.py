"""LLM-backed ranking and summarization strategies."""

import logging

from kindle_digest.adapters.llm.prompts import build_ranking_prompt, build_summary_prompt
from kindle_digest.core import (
    ArticleForRanking,
    LLMClient,
    RankingStrategy,
    Summary,
    Tier,
    TierAssignment,
)
from kindle_digest.core.ranking import parse_tier
from kindle_digest.core.summarization import ConcurrentSummarizer, ELLIPSIS, fallback_summary

logger = logging.getLogger(__name__)

RANKING_BATCH_SIZE = 15
RANKING_FAILED_REASON = "Fallback: LLM ranking failed"
RANKING_TEMPERATURE = 0.3
RANKING_MAX_TOKENS = 2000
SUMMARY_TEMPERATURE = 0.5
CRITICAL_SUMMARY_TOKENS = 500
SHORT_SUMMARY_TOKENS = 200
EMPTY_SUMMARY_CHARS = 200


class LLMRanker(RankingStrategy):
    """Ranks articles in fixed-size batches, one request per batch."""

    def __init__(self, llm_client: LLMClient, batch_size: int = RANKING_BATCH_SIZE) -> None:
        self.llm_client = llm_client
        self.batch_size = batch_size

    async def rank(
        self, articles: list[ArticleForRanking], interest_topics: list[str]
    ) -> dict[str, TierAssignment]:
        results: dict[str, TierAssignment] = {}

        for start in range(0, len(articles), self.batch_size):
            batch = articles[start:start + self.batch_size]
            try:
                results.update(await self._rank_batch(batch, interest_topics))
            except Exception as e:
                logger.warning(
                    "LLM ranking batch %d failed, marking %d articles notable: %s",
                    start // self.batch_size + 1, len(batch), e,
                )
                for article in batch:
                    results[article.id] = TierAssignment(tier=Tier.NOTABLE, reason=RANKING_FAILED_REASON)

        return results

    async def _rank_batch(
        self, batch: list[ArticleForRanking], interest_topics: list[str]
    ) -> dict[str, TierAssignment]:
        system, user = build_ranking_prompt(batch, interest_topics)
        parsed = await self.llm_client.complete_json(
            system, user, max_tokens=RANKING_MAX_TOKENS, temperature=RANKING_TEMPERATURE
        )

        rankings = parsed.get("rankings") if isinstance(parsed, dict) else None
        if not isinstance(rankings, list):
            raise ValueError("response has no rankings list")

        batch_ids = {a.id for a in batch}
        results: dict[str, TierAssignment] = {}
        for ranking in rankings:
            if not isinstance(ranking, dict):
                continue
            article_id = str(ranking.get("id", ""))
            if article_id not in batch_ids:
                continue
            results[article_id] = TierAssignment(
                tier=parse_tier(ranking.get("tier")),
                reason=str(ranking.get("tierReason") or ""),
            )
        return results


class LLMSummarizer(ConcurrentSummarizer):
    """Summarizes each article with a tier-specific request."""

    def __init__(self, llm_client: LLMClient) -> None:
        self.llm_client = llm_client

    async def summarize(self, article: ArticleForRanking, content: str, tier: Tier) -> Summary:
        system, user = build_summary_prompt(article, content, tier)
        max_tokens = CRITICAL_SUMMARY_TOKENS if tier == Tier.CRITICAL else SHORT_SUMMARY_TOKENS

        try:
            parsed = await self.llm_client.complete_json(
                system, user, max_tokens=max_tokens, temperature=SUMMARY_TEMPERATURE
            )
            if not isinstance(parsed, dict):
                raise ValueError("summary response is not an object")
            summary = parsed.get("summary")
            if summary is not None and not isinstance(summary, str):
                raise ValueError(f"summary is {type(summary).__name__}, not a string")
            one_liner = parsed.get("oneLiner")
            return Summary(
                summary=summary or article.excerpt[:EMPTY_SUMMARY_CHARS] + ELLIPSIS,
                one_liner=one_liner if isinstance(one_liner, str) else None,
            )
        except Exception as e:
            logger.warning("Summary generation failed for %s: %s", article.id, e)

        fallback = fallback_summary(article, tier)
        return Summary(
            summary=fallback.summary,
            one_liner=article.title if tier == Tier.RELATED else None,
        )
