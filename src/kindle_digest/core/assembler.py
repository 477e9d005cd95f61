"""Digest assembly: join rankings and summaries, split by tier."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from kindle_digest.core.entities import (
    ArticleContent,
    ArticleForRanking,
    DigestStats,
    Summary,
    Tier,
    TierAssignment,
    TieredDigestArticle,
)

DEFAULT_READING_MINUTES = 5
SUMMARY_DEFAULT_CHARS = 200


@dataclass
class TieredDigest:
    """Rendered-ready articles partitioned by tier."""

    critical: list[TieredDigestArticle] = field(default_factory=list)
    notable: list[TieredDigestArticle] = field(default_factory=list)
    related: list[TieredDigestArticle] = field(default_factory=list)

    @property
    def articles(self) -> list[TieredDigestArticle]:
        return self.critical + self.notable + self.related

    def full_articles(self) -> list[TieredDigestArticle]:
        """Critical articles that have full content to render."""
        return [a for a in self.critical if a.content_html]

    def stats(self) -> DigestStats:
        return DigestStats(
            critical=len(self.critical),
            notable=len(self.notable),
            related=len(self.related),
            full_articles=len(self.full_articles()),
        )


class DigestAssembler:
    """Build TieredDigestArticle records and partition them by tier."""

    def build_article(
        self,
        article: ArticleForRanking,
        assignment: TierAssignment,
        summary: Optional[Summary],
        content: Optional[ArticleContent],
    ) -> TieredDigestArticle:
        return TieredDigestArticle(
            id=article.id,
            title=article.title,
            author=content.author if content else None,
            site_name=article.source,
            url=article.url,
            tier=assignment.tier,
            summary=(summary.summary if summary and summary.summary
                     else article.excerpt[:SUMMARY_DEFAULT_CHARS] + "..."),
            one_liner=(summary.one_liner if summary and summary.one_liner else article.title),
            content_html=content.html if content else None,
            reading_minutes=(content.reading_minutes or DEFAULT_READING_MINUTES) if content else None,
        )

    def assemble(
        self,
        articles: list[ArticleForRanking],
        rankings: dict[str, TierAssignment],
        summaries: dict[str, Summary],
        contents: dict[str, ArticleContent],
    ) -> TieredDigest:
        """Join every article with its tier, summary and content.

        Candidate order is kept inside each tier.
        """
        digest = TieredDigest()
        buckets = {
            Tier.CRITICAL: digest.critical,
            Tier.NOTABLE: digest.notable,
            Tier.RELATED: digest.related,
        }

        for article in articles:
            assignment = rankings.get(article.id) or TierAssignment(Tier.RELATED, "Default")
            tiered = self.build_article(
                article, assignment, summaries.get(article.id), contents.get(article.id)
            )
            buckets[tiered.tier].append(tiered)

        return digest


def _date_stamp(run_date: datetime) -> str:
    if run_date.tzinfo is not None:
        run_date = run_date.astimezone(ZoneInfo("UTC"))
    return run_date.date().isoformat()


def summary_filename(run_date: datetime) -> str:
    return f"kindle-digest-summary-{_date_stamp(run_date)}.epub"


def full_articles_filename(run_date: datetime) -> str:
    return f"kindle-digest-full-{_date_stamp(run_date)}.epub"


def digest_filename(run_date: datetime) -> str:
    """Filename of the legacy single-document digest."""
    return f"kindle-digest-{_date_stamp(run_date)}.epub"


def format_digest_date(run_date: datetime, timezone: str = "America/Denver") -> str:
    """Long English date, e.g. 'Monday, January 15, 2024'."""
    local = run_date.astimezone(ZoneInfo(timezone)) if run_date.tzinfo else run_date
    return f"{local.strftime('%A, %B')} {local.day}, {local.year}"


def email_subject(run_date: datetime, timezone: str = "America/Denver") -> str:
    return f"Kindle Digest - {format_digest_date(run_date, timezone)}"


def tiered_email_text(stats: DigestStats) -> str:
    return (
        "Your daily digest is attached.\n\n"
        f"Summary: {stats.critical} critical, {stats.notable} notable, "
        f"{stats.related} related items\n"
        f"Full Articles: {stats.full_articles} complete articles (critical tier only)\n\n"
        "Tip: Read the Summary first for an overview, then dive into Full Articles for details."
    )


def single_email_text(article_count: int) -> str:
    return f"Your daily digest with {article_count} articles is attached."
