"""Interest-based scoring and diversity selection of feed items."""

import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from kindle_digest.core.entities import (
    FeedItem,
    InterestConfiguration,
    InterestTopic,
    ScoredFeedItem,
)
from kindle_digest.core.urls import canonicalize_url

logger = logging.getLogger(__name__)

MAX_KEYWORD_SCORE = 10
POINTS_PER_MATCH = 2
RECENCY_WEIGHT = 0.2
FRESH_HOURS = 6.0
STALE_HOURS = 72.0
DEFAULT_MAX_PER_TOPIC = 3

_NON_WORD = re.compile(r"[^a-z0-9\s-]")


def parse_interests(raw: Any) -> InterestConfiguration:
    """Build the interest configuration from a mapping or a JSON string.

    Malformed configuration is logged and treated as no interests.
    """
    if raw is None or raw == "":
        return {}

    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(data, Mapping):
            raise ValueError("interests must be a mapping of topic name to topic")

        interests: InterestConfiguration = {}
        for name, topic in data.items():
            if not isinstance(topic, Mapping):
                raise ValueError(f"topic {name!r} must be a mapping")
            keywords = topic.get("keywords")
            feeds = topic.get("feeds") or []
            if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
                raise ValueError(f"topic {name!r} keywords must be a list of strings")
            if not isinstance(feeds, list) or not all(isinstance(f, str) for f in feeds):
                raise ValueError(f"topic {name!r} feeds must be a list of strings")
            interests[str(name)] = InterestTopic(keywords=list(keywords), feeds=list(feeds))
        return interests
    except (ValueError, TypeError) as e:
        logger.error("Failed to parse interest configuration: %s", e)
        return {}


def get_all_feeds_from_interests(interests: InterestConfiguration) -> list[str]:
    """Unique topic feed URLs in configuration order."""
    feeds: dict[str, None] = {}
    for topic in interests.values():
        for feed in topic.feeds:
            feeds.setdefault(feed, None)
    return list(feeds)


def _normalize_text(text: str) -> str:
    return _NON_WORD.sub(" ", text.lower())


def score_keyword(keyword: str, text: str) -> int:
    """Score keyword occurrences in text, 2 points per match capped at 10."""
    normalized_keyword = _normalize_text(keyword).strip()
    if not normalized_keyword:
        return 0

    pattern = re.compile(rf"\b{re.escape(normalized_keyword)}\b")
    matches = pattern.findall(_normalize_text(text))
    if not matches:
        return 0

    return min(MAX_KEYWORD_SCORE, len(matches) * POINTS_PER_MATCH)


def calculate_recency_score(published_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Recency on a 0-100 scale: full within 6 hours, zero after 72 hours."""
    if published_at is None:
        return 0.0

    now = now or datetime.now(timezone.utc)
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)

    age_hours = (now - published_at).total_seconds() / 3600
    if age_hours <= FRESH_HOURS:
        return 100.0
    if age_hours >= STALE_HOURS:
        return 0.0

    return max(0.0, 100 - (age_hours - FRESH_HOURS) * (100 / (STALE_HOURS - FRESH_HOURS)))


def score_feed_item(
    item: FeedItem, interests: InterestConfiguration, now: Optional[datetime] = None
) -> ScoredFeedItem:
    """Score one feed item against every interest topic."""
    text = " ".join(part for part in (item.title, item.content_snippet, item.content) if part)

    total_score = 0
    matched_topics: list[str] = []
    matched_keywords: list[str] = []

    for topic_name, topic in interests.items():
        topic_score = 0
        for keyword in topic.keywords:
            keyword_score = score_keyword(keyword, text)
            if keyword_score > 0:
                topic_score += keyword_score
                if keyword not in matched_keywords:
                    matched_keywords.append(keyword)

        if topic_score > 0:
            matched_topics.append(topic_name)
            total_score += topic_score

    recency_score = calculate_recency_score(item.published_at, now)

    return ScoredFeedItem(
        item=item,
        score=total_score + recency_score * RECENCY_WEIGHT,
        matched_topics=matched_topics,
        matched_keywords=matched_keywords,
        recency_score=recency_score,
    )


def score_and_rank_feed_items(
    items: Iterable[FeedItem], interests: InterestConfiguration, now: Optional[datetime] = None
) -> list[ScoredFeedItem]:
    """Score items, drop those matching no topic, best first.

    The sort is stable, so equal scores keep their feed order.
    """
    now = now or datetime.now(timezone.utc)
    scored = [score_feed_item(item, interests, now) for item in items]
    relevant = [s for s in scored if s.matched_topics]
    relevant.sort(key=lambda s: s.score, reverse=True)
    return relevant


def dedupe_scored_items(items: list[ScoredFeedItem], seen_keys: set[str]) -> list[ScoredFeedItem]:
    """Drop items already in history or repeated within this run.

    Args:
        items: Scored items, best first.
        seen_keys: Canonical URLs and content hashes already stored.
    """
    unique: list[ScoredFeedItem] = []
    run_keys: set[str] = set()

    for scored in items:
        if not scored.link.strip():
            continue
        canonical = canonicalize_url(scored.link)
        if canonical in seen_keys or canonical in run_keys:
            continue
        run_keys.add(canonical)
        unique.append(scored)

    return unique


def select_diverse_items(
    scored_items: list[ScoredFeedItem],
    max_items: int,
    max_per_topic: int = DEFAULT_MAX_PER_TOPIC,
) -> list[ScoredFeedItem]:
    """Pick up to max_items, capping items per primary topic when supply allows.

    The first pass admits items whose primary topic is under its cap. If that
    leaves the quota unfilled, a second pass adds the best remaining items
    regardless of topic.
    """
    selected: list[ScoredFeedItem] = []
    selected_ids: set[int] = set()
    topic_counts: dict[Optional[str], int] = {}

    for scored in scored_items:
        if len(selected) >= max_items:
            break
        topic = scored.primary_topic
        count = topic_counts.get(topic, 0)
        if count < max_per_topic:
            selected.append(scored)
            selected_ids.add(id(scored))
            topic_counts[topic] = count + 1

    if len(selected) < max_items:
        for scored in scored_items:
            if len(selected) >= max_items:
                break
            if id(scored) not in selected_ids:
                selected.append(scored)
                selected_ids.add(id(scored))

    return selected
