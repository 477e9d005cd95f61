"""EPUB rendering of tiered and plain digests."""

import io
from datetime import datetime
from html import escape
from ebooklib import epub

from kindle_digest.core import DigestRenderer, TieredDigestArticle
from kindle_digest.core.assembler import (
    DEFAULT_READING_MINUTES,
    TieredDigest,
    format_digest_date,
)

PUBLISHER = "Kindle Digest"

EPUB_CSS = """
body {
  font-family: Georgia, 'Times New Roman', serif;
  line-height: 1.6;
  color: #333;
  margin: 0;
  padding: 0;
}
h1, h2, h3, h4 { font-weight: bold; line-height: 1.3; margin: 1.5em 0 0.5em; }
h1 { font-size: 1.8em; }
h2 { font-size: 1.5em; }
h3 { font-size: 1.3em; }
p { margin: 1em 0; text-align: justify; }
img { max-width: 100%; height: auto; display: block; margin: 1em auto; }
a { color: #0066cc; text-decoration: none; }
blockquote { margin: 1em 0; padding-left: 1em; border-left: 3px solid #ccc; color: #555; font-style: italic; }
pre, code { font-family: 'Courier New', monospace; font-size: 0.9em; background: #f5f5f5; }
pre { padding: 1em; white-space: pre-wrap; word-wrap: break-word; }
ul, ol { margin: 1em 0; padding-left: 2em; }
table { border-collapse: collapse; width: 100%; margin: 1em 0; }
th, td { border: 1px solid #ccc; padding: 0.5em; text-align: left; }
hr { border: none; border-top: 1px solid #ccc; margin: 2em 0; }
.cover { text-align: center; padding: 40px 20px; }
.cover h1 { font-size: 2.5em; }
.cover .date { font-size: 1.2em; color: #666; }
.cover .counts { text-align: left; max-width: 300px; margin: 0 auto; }
.meta { font-size: 0.85em; color: #666; }
.intro { font-size: 0.9em; color: #666; font-style: italic; }
.empty { color: #888; font-style: italic; }
.critical h3 { color: #c0392b; }
.critical article { margin-bottom: 2em; padding-bottom: 1.5em; border-bottom: 1px solid #eee; }
.notable div.entry { margin-bottom: 1.5em; padding-left: 1em; border-left: 3px solid #d35400; }
.related ul, .toc ol { list-style: none; padding: 0; }
"""


def _link(url: str, text: str) -> str:
    return f'<a href="{escape(url)}">{escape(text)}</a>'


def _source(article: TieredDigestArticle) -> str:
    return escape(article.site_name or "Unknown")


class EpubGenerator(DigestRenderer):
    """Render digests as EPUB documents with ebooklib."""

    def __init__(self, timezone: str = "America/Denver") -> None:
        self.timezone = timezone

    # Book plumbing

    def _new_book(self, title: str, digest_date: datetime, identifier: str) -> tuple[epub.EpubBook, epub.EpubItem]:
        book = epub.EpubBook()
        book.set_identifier(f"{identifier}-{digest_date.strftime('%Y%m%d%H%M%S')}")
        book.set_title(title)
        book.set_language("en")
        book.add_author(PUBLISHER)
        book.add_metadata("DC", "publisher", PUBLISHER)
        book.add_metadata("DC", "date", digest_date.isoformat())

        css = epub.EpubItem(
            uid="digest_css",
            file_name="style/digest.css",
            media_type="text/css",
            content=EPUB_CSS,
        )
        book.add_item(css)
        return book, css

    def _chapter(
        self, book: epub.EpubBook, css: epub.EpubItem, index: int, title: str, body: str
    ) -> epub.EpubHtml:
        chapter = epub.EpubHtml(
            uid=f"chapter_{index:03d}",
            title=title or f"Chapter {index}",
            file_name=f"chapter_{index:03d}.xhtml",
            lang="en",
        )
        chapter.content = f"<h2>{escape(chapter.title)}</h2>\n{body}"
        chapter.add_item(css)
        book.add_item(chapter)
        return chapter

    def _write(self, book: epub.EpubBook, chapters: list[epub.EpubHtml]) -> bytes:
        book.toc = chapters
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = ["nav", *chapters]

        buffer = io.BytesIO()
        epub.write_epub(buffer, book, {})
        return buffer.getvalue()

    # Sections

    def _cover(self, title: str, digest_date: datetime, details: str) -> str:
        return (
            '<div class="cover">'
            f"<h1>{escape(title)}</h1>"
            f'<p class="date">{escape(format_digest_date(digest_date, self.timezone))}</p>'
            "<hr/>"
            f"{details}"
            "</div>"
        )

    def _critical_section(self, articles: list[TieredDigestArticle]) -> str:
        if not articles:
            return '<p class="empty">No critical items today.</p>'
        entries = []
        for article in articles:
            byline = _source(article)
            if article.author:
                byline += f" &#8226; {escape(article.author)}"
            entries.append(
                "<article>"
                f"<h3>{_link(article.url, article.title)}</h3>"
                f'<p class="meta">{byline}</p>'
                f"<p>{escape(article.summary)}</p>"
                f'<p class="meta">{_link(article.url, "Read full article")}</p>'
                "</article>"
            )
        return (
            '<div class="critical">'
            '<p class="intro">Breaking news and major developments that need your attention.</p>'
            + "".join(entries)
            + "</div>"
        )

    def _notable_section(self, articles: list[TieredDigestArticle]) -> str:
        if not articles:
            return '<p class="empty">No notable items today.</p>'
        entries = [
            '<div class="entry">'
            f"<h4>{_link(article.url, article.title)}</h4>"
            f'<p class="meta">{_source(article)}</p>'
            f"<p>{escape(article.summary)}</p>"
            "</div>"
            for article in articles
        ]
        return (
            '<div class="notable">'
            '<p class="intro">Important updates worth knowing about.</p>'
            + "".join(entries)
            + "</div>"
        )

    def _related_section(self, articles: list[TieredDigestArticle]) -> str:
        if not articles:
            return '<p class="empty">No related items today.</p>'
        entries = [
            f"<li>{_link(article.url, article.one_liner or article.title)}"
            f' <span class="meta">({_source(article)})</span></li>'
            for article in articles
        ]
        return (
            '<div class="related">'
            '<p class="intro">Quick mentions you might find interesting.</p>'
            f"<ul>{''.join(entries)}</ul>"
            "</div>"
        )

    def _article_body(self, article: TieredDigestArticle) -> str:
        source_info = " &#8226; ".join(
            escape(part) for part in (article.site_name, article.author) if part
        )
        minutes = article.reading_minutes or DEFAULT_READING_MINUTES
        prefix = f"{source_info} &#8226; " if source_info else ""
        return (
            "<article>"
            f'<p class="meta">{prefix}{minutes} min read</p>'
            f'<p class="meta">{_link(article.url, "Original Article")}</p>'
            "<hr/>"
            f'<div class="article-content">{article.content_html or ""}</div>'
            "</article>"
        )

    # Renderers

    def render_summary(self, title: str, digest_date: datetime, digest: TieredDigest) -> bytes:
        """Render the all-tiers summary document."""
        book, css = self._new_book(f"{title} - Summary", digest_date, "kindle-digest-summary")
        stats = digest.stats()
        counts = (
            '<div class="counts">'
            f"<p><strong>{stats.critical}</strong> Critical Items</p>"
            f"<p><strong>{stats.notable}</strong> Notable Updates</p>"
            f"<p><strong>{stats.related}</strong> Related Items</p>"
            "</div>"
        )
        chapters = [
            self._chapter(book, css, 1, "Cover", self._cover(title, digest_date, "<p>Daily Summary</p>" + counts)),
            self._chapter(book, css, 2, "Critical News", self._critical_section(digest.critical)),
            self._chapter(book, css, 3, "Notable Updates", self._notable_section(digest.notable)),
            self._chapter(book, css, 4, "Related Items", self._related_section(digest.related)),
        ]
        return self._write(book, chapters)

    def render_full_articles(
        self, title: str, digest_date: datetime, articles: list[TieredDigestArticle]
    ) -> bytes:
        """Render the critical-tier full-article document."""
        return self._render_article_book(
            f"{title} - Full Articles", digest_date, articles, "kindle-digest-full"
        )

    def render_articles(
        self, title: str, digest_date: datetime, articles: list[TieredDigestArticle]
    ) -> bytes:
        """Render a plain document: cover, table of contents, one chapter per article."""
        return self._render_article_book(title, digest_date, articles, "kindle-digest")

    def _render_article_book(
        self,
        title: str,
        digest_date: datetime,
        articles: list[TieredDigestArticle],
        identifier: str,
    ) -> bytes:
        book, css = self._new_book(title, digest_date, identifier)
        total_minutes = len(articles) * DEFAULT_READING_MINUTES

        details = (
            f'<p class="meta">{len(articles)} articles</p>'
            f'<p class="meta">~{total_minutes} min read</p>'
        )
        toc_items = "".join(
            f"<li>{index}. {escape(article.title)}"
            f' <span class="meta">({_source(article)})</span></li>'
            for index, article in enumerate(articles, start=1)
        )

        chapters = [
            self._chapter(book, css, 1, "Cover", self._cover(title, digest_date, details)),
            self._chapter(book, css, 2, "Table of Contents", f'<div class="toc"><ol>{toc_items}</ol></div>'),
        ]
        for index, article in enumerate(articles, start=3):
            chapters.append(self._chapter(book, css, index, article.title, self._article_body(article)))
        return self._write(book, chapters)
