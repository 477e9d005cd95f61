"""Tier parsing and deterministic fallback ranking."""

import math

from kindle_digest.core.entities import ArticleForRanking, Tier, TierAssignment
from kindle_digest.core.interfaces import RankingStrategy

FALLBACK_REASON = "Keyword-based fallback ranking"
DEFAULT_REASON = "Default"
CRITICAL_SHARE = 0.2
NOTABLE_SHARE = 0.3


def parse_tier(value: object) -> Tier:
    """Map a tier label to a Tier; anything unrecognized becomes notable."""
    normalized = str(value or "").lower().strip()
    try:
        return Tier(normalized)
    except ValueError:
        return Tier.NOTABLE


def apply_fallback_ranking(articles: list[ArticleForRanking]) -> dict[str, TierAssignment]:
    """Rank manual saves first, then by number of matched topics.

    The top 20% (at least one) are critical, the next 30% (at least two)
    notable and the rest related.
    """
    if not articles:
        return {}

    ordered = sorted(
        articles,
        key=lambda a: (not a.is_manual_save, -len(a.matched_topics or [])),
    )

    critical_count = max(1, math.floor(len(ordered) * CRITICAL_SHARE))
    notable_count = max(2, math.floor(len(ordered) * NOTABLE_SHARE))

    rankings: dict[str, TierAssignment] = {}
    for index, article in enumerate(ordered):
        if index < critical_count:
            tier = Tier.CRITICAL
        elif index < critical_count + notable_count:
            tier = Tier.NOTABLE
        else:
            tier = Tier.RELATED
        rankings[article.id] = TierAssignment(tier=tier, reason=FALLBACK_REASON)

    return rankings


class FallbackRanker(RankingStrategy):
    """Deterministic ranking used without an LLM backend."""

    async def rank(
        self, articles: list[ArticleForRanking], interest_topics: list[str]
    ) -> dict[str, TierAssignment]:
        return apply_fallback_ranking(articles)


def fill_missing_rankings(
    articles: list[ArticleForRanking], rankings: dict[str, TierAssignment]
) -> dict[str, TierAssignment]:
    """Give every article without an assignment the related tier."""
    complete = {a.id: rankings[a.id] for a in articles if a.id in rankings}
    for article in articles:
        complete.setdefault(article.id, TierAssignment(tier=Tier.RELATED, reason=DEFAULT_REASON))
    return complete
