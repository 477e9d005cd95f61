"""RSS and Atom feed source."""

import asyncio
import logging
from calendar import timegm
from datetime import datetime, timezone
from typing import Any, Optional

import feedparser
import httpx
from bs4 import BeautifulSoup

from kindle_digest.core import FeedFetcher, FeedItem

logger = logging.getLogger(__name__)

USER_AGENT = "KindleDigest/1.0"
SNIPPET_CHARS = 300


def parse_feed_urls(value: Optional[str]) -> list[str]:
    """Split a comma-separated list of feed URLs."""
    if not value:
        return []
    return [url.strip() for url in value.split(",") if url.strip()]


def _strip_html(text: str) -> str:
    if not text:
        return ""
    return " ".join(BeautifulSoup(text, "html.parser").get_text(" ").split())


def _entry_date(entry: Any) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)


class RSSFeedSource(FeedFetcher):
    """Fetch and parse feeds concurrently, ignoring feeds that fail."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    async def fetch_many(self, feed_urls: list[str]) -> list[FeedItem]:
        """Fetch all feeds, newest first, undated items last."""
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "application/rss+xml, application/xml, text/xml, */*",
            },
        ) as client:
            results = await asyncio.gather(*(self.fetch_feed(url, client) for url in feed_urls))

        items = [item for feed_items in results for item in feed_items]
        dated = sorted(
            (i for i in items if i.published_at is not None),
            key=lambda i: i.published_at,
            reverse=True,
        )
        undated = [i for i in items if i.published_at is None]
        return dated + undated

    async def fetch_feed(self, feed_url: str, client: httpx.AsyncClient) -> list[FeedItem]:
        """Fetch one feed. Any failure yields an empty list."""
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
            items = self.parse_feed(response.text, feed_url)
            logger.debug("Fetched %d items from %s", len(items), feed_url)
            return items
        except Exception as e:
            logger.warning("Failed to fetch feed %s: %s", feed_url, e)
            return []

    def parse_feed(self, xml_content: str, feed_url: str) -> list[FeedItem]:
        """Parse RSS/Atom XML into feed items."""
        parsed = feedparser.parse(xml_content)
        if parsed.bozo and not parsed.entries:
            raise ValueError(f"Unparseable feed: {parsed.get('bozo_exception')}")

        feed_title = parsed.feed.get("title") or "Unknown Feed"
        items: list[FeedItem] = []

        for entry in parsed.entries:
            content = ""
            if entry.get("content"):
                content = entry["content"][0].get("value", "")
            summary = entry.get("summary", "")
            content = content or summary

            snippet = _strip_html(summary) or _strip_html(content)[:SNIPPET_CHARS]

            items.append(FeedItem(
                title=entry.get("title") or "Untitled",
                link=entry.get("link", ""),
                published_at=_entry_date(entry),
                content=content,
                content_snippet=snippet,
                author=entry.get("author") or None,
                feed_title=feed_title,
                feed_url=feed_url,
            ))

        return items
