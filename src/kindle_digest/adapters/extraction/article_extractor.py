"""Readable article extraction from web pages."""

import html
import logging
import math
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx
import trafilatura
from bs4 import BeautifulSoup

from kindle_digest.core import ContentExtractor, ExtractedArticle, ExtractionError
from kindle_digest.core.urls import canonicalize_url, compute_content_hash

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; KindleDigest/1.0)"
WORDS_PER_MINUTE = 200
EXCERPT_CHARS = 200

PUBLISHED_SELECTORS = [
    ('meta[property="article:published_time"]', "content"),
    ('meta[property="og:published_time"]', "content"),
    ('meta[name="date"]', "content"),
    ('meta[name="pubdate"]', "content"),
    ('meta[name="publish-date"]', "content"),
    ('meta[itemprop="datePublished"]', "content"),
    ("time[datetime]", "datetime"),
]


def count_words(text: str) -> int:
    return len(text.split())


def calculate_reading_minutes(word_count: int) -> int:
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def site_name_from_url(url: str) -> Optional[str]:
    """'https://www.the-verge.com/x' -> 'The-verge'."""
    host = urlsplit(url).hostname
    if not host:
        return None
    if host.startswith("www."):
        host = host[4:]
    labels = host.split(".")[:-1]
    return " ".join(label[:1].upper() + label[1:] for label in labels) or None


def _parse_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _body_html(document: str) -> str:
    """Inner HTML of the body element when given a whole document."""
    body = BeautifulSoup(document, "html.parser").body
    return body.decode_contents().strip() if body is not None else document


def _meta_content(soup: BeautifulSoup, selector: str) -> Optional[str]:
    element = soup.select_one(selector)
    if element is None:
        return None
    value = element.get("content")
    return value.strip() if value and value.strip() else None


class ArticleExtractor(ContentExtractor):
    """Fetch a page and extract its main article content."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    async def extract(self, url: str) -> ExtractedArticle:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            try:
                response = await client.get(
                    url,
                    headers={
                        "User-Agent": USER_AGENT,
                        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                        "Accept-Language": "en-US,en;q=0.5",
                    },
                )
            except httpx.HTTPError as e:
                raise ExtractionError(f"Failed to fetch URL: {e}") from e

        if response.status_code >= 400:
            raise ExtractionError(
                f"Failed to fetch URL: {response.status_code} {response.reason_phrase}"
            )

        return self.parse(response.text, str(response.url))

    def parse(self, page_html: str, url: str) -> ExtractedArticle:
        """Extract article fields from fetched HTML."""
        soup = BeautifulSoup(page_html, "html.parser")

        content_text = trafilatura.extract(page_html, url=url, output_format="txt") or ""
        if not content_text.strip():
            raise ExtractionError("Failed to extract article content")

        content_html = trafilatura.extract(
            page_html,
            url=url,
            output_format="html",
            include_links=True,
            include_images=True,
        )
        if content_html:
            content_html = _body_html(content_html)
        else:
            content_html = "".join(
                f"<p>{html.escape(p)}</p>" for p in content_text.split("\n") if p.strip()
            )

        word_count = count_words(content_text)
        excerpt = _meta_content(soup, 'meta[name="description"]') or (
            content_text[:EXCERPT_CHARS] + "..."
        )

        return ExtractedArticle(
            title=self._find_title(soup),
            author=_meta_content(soup, 'meta[name="author"]'),
            site_name=_meta_content(soup, 'meta[property="og:site_name"]') or site_name_from_url(url),
            published_at=self._find_published(soup),
            excerpt=excerpt,
            content_html=content_html,
            content_text=content_text,
            word_count=word_count,
            reading_minutes=calculate_reading_minutes(word_count),
            canonical_url=canonicalize_url(self._find_canonical_url(soup, url)),
            content_hash=compute_content_hash(content_text),
        )

    def _find_title(self, soup: BeautifulSoup) -> str:
        title = _meta_content(soup, 'meta[property="og:title"]')
        if title:
            return title
        if soup.title and soup.title.string and soup.title.string.strip():
            return soup.title.string.strip()
        return "Untitled"

    def _find_published(self, soup: BeautifulSoup) -> Optional[datetime]:
        for selector, attribute in PUBLISHED_SELECTORS:
            element = soup.select_one(selector)
            value = element.get(attribute) if element is not None else None
            if value:
                published = _parse_date(value)
                if published:
                    return published
        return None

    def _find_canonical_url(self, soup: BeautifulSoup, url: str) -> str:
        link = soup.select_one('link[rel="canonical"]')
        if link is not None and link.get("href"):
            return urljoin(url, link["href"])
        og_url = _meta_content(soup, 'meta[property="og:url"]')
        if og_url:
            return urljoin(url, og_url)
        return url
