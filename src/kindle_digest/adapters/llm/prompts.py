"""Prompts for tier ranking and summarization."""

from kindle_digest.core import ArticleForRanking, Tier

SUMMARY_CONTENT_CHARS = 4000
RANKING_EXCERPT_CHARS = 300

RANKING_SYSTEM_PROMPT = """You are a news editor assistant that ranks articles into importance tiers for a personalized daily digest.

Tier Definitions:
- CRITICAL: Breaking news, major product launches, significant acquisitions/mergers, critical security issues, major policy changes. These are "need to know NOW" items that warrant full article reading.
- NOTABLE: Follow-ups to critical stories, important industry updates, interesting developments that aren't urgent. Readers want a summary but don't need full details immediately.
- RELATED: Tangentially interesting content, opinion pieces on known topics, minor updates. A one-liner mention is sufficient.

User's interest areas: {interests}

Guidelines:
1. Prioritize recency - breaking news from today ranks higher
2. User-saved articles should be weighted slightly higher (they explicitly saved it)
3. Consider impact scope - affects millions > affects thousands > affects niche
4. Prefer primary sources over aggregator coverage
5. Avoid ranking multiple articles about the same story as critical - pick the best one

Respond with JSON only."""

RANKING_USER_PROMPT = """Rank these {count} articles into tiers (critical/notable/related):

{articles}

Respond with JSON:
{{
  "rankings": [
    {{ "id": "article-id", "tier": "critical|notable|related", "tierReason": "brief explanation" }}
  ]
}}"""

SUMMARY_SYSTEM_PROMPT = """You are a skilled editor creating summaries for a daily news digest sent to Kindle.

For CRITICAL tier articles: Write a compelling paragraph (3-5 sentences) that captures the key facts, why it matters, and any immediate implications. Include specific numbers, names, and dates when relevant.

For NOTABLE tier articles: Write 1-2 concise sentences highlighting the main point and why it's noteworthy.

For RELATED tier articles: Create a single compelling one-liner (10-15 words max) that captures the essence.

Style guidelines:
- Use active voice
- Be specific, not vague
- Assume the reader is intelligent but time-constrained
- No marketing fluff or clickbait

Respond with JSON only."""

SUMMARY_USER_PROMPT = """Create a {tier} tier summary for this article:

Title: {title}
Source: {source}
Published: {published}

Content:
{content}

Respond with JSON:
{{
  "summary": "your summary here",
  "oneLiner": "for related tier only, otherwise omit"
}}"""


def _format_ranking_entry(article: ArticleForRanking) -> str:
    published = article.published_at.date().isoformat() if article.published_at else "unknown date"
    saved = " [USER SAVED]" if article.is_manual_save else ""
    return (
        f'[{article.id}] "{article.title}" - {article.source} ({published}){saved}\n'
        f"Excerpt: {article.excerpt[:RANKING_EXCERPT_CHARS]}..."
    )


def build_ranking_prompt(
    articles: list[ArticleForRanking], interests: list[str]
) -> tuple[str, str]:
    """Build (system, user) prompts for ranking one batch."""
    system = RANKING_SYSTEM_PROMPT.format(interests=", ".join(interests))
    user = RANKING_USER_PROMPT.format(
        count=len(articles),
        articles="\n\n".join(_format_ranking_entry(a) for a in articles),
    )
    return system, user


def build_summary_prompt(
    article: ArticleForRanking, content: str, tier: Tier
) -> tuple[str, str]:
    """Build (system, user) prompts for one summary, content truncated."""
    published = article.published_at.date().isoformat() if article.published_at else "unknown"
    user = SUMMARY_USER_PROMPT.format(
        tier=tier.value,
        title=article.title,
        source=article.source,
        published=published,
        content=content[:SUMMARY_CONTENT_CHARS],
    )
    return SUMMARY_SYSTEM_PROMPT, user
