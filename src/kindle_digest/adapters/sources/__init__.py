"""Source adapters for fetching feed items."""

from kindle_digest.adapters.sources.rss_feed_source import RSSFeedSource, parse_feed_urls

__all__ = ["RSSFeedSource", "parse_feed_urls"]
