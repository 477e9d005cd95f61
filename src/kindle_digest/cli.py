"""CLI entry point for kindle digest."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from kindle_digest.adapters.epub import EpubGenerator
from kindle_digest.adapters.extraction import ArticleExtractor
from kindle_digest.adapters.llm import ClaudeClient
from kindle_digest.adapters.notifications import ResendEmailSender
from kindle_digest.adapters.sources import RSSFeedSource
from kindle_digest.adapters.storage import YamlArticleRepository
from kindle_digest.config import Settings, get_settings
from kindle_digest.core import DigestError, RunStatus
from kindle_digest.use_cases import ArticleService, DigestPipeline, select_strategies

app = typer.Typer(help="Daily tiered digests of saved articles and feeds for Kindle.")

ConfigOption = typer.Option(Path("config.yaml"), "--config", help="Path to config.yaml")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_sender(settings: Settings) -> ResendEmailSender:
    return ResendEmailSender(
        api_key=settings.resend_api_key,
        sender=settings.email.sender,
        recipients=settings.email.recipients,
    )


def print_banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


@app.command()
def run(
    force: bool = typer.Option(False, "--force", help="Run even if a digest was sent today"),
    no_email: bool = typer.Option(False, "--no-email", help="Build the digest without sending it"),
    output: Optional[Path] = typer.Option(None, "--output", help="Directory for EPUB copies"),
    config: Path = ConfigOption,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Build and deliver today's digest."""
    setup_logging(verbose)
    settings = get_settings(config)

    print_banner("📚 KINDLE DIGEST")

    print("\n🔑 Credentials:")
    if settings.llm_enabled:
        print("  ✓ ANTHROPIC_API_KEY - LLM ranking and summaries")
    else:
        print("  ⚠️  ANTHROPIC_API_KEY - not found (keyword ranking, excerpt summaries)")
    if no_email:
        print("  ⚠️  Email delivery disabled by --no-email")
    elif settings.resend_api_key:
        print(f"  ✓ RESEND_API_KEY - delivering to {', '.join(settings.email.recipients) or '(no recipients)'}")
    else:
        print("  ✗ RESEND_API_KEY - not found (delivery will fail)")

    print("\n⚙️  Settings:")
    print(f"  • Feeds: {len(settings.feeds)} base, {len(settings.interests)} interest topics")
    print(f"  • Limits: {settings.digest.max_articles} articles, "
          f"{settings.digest.max_saved} saved, {settings.digest.max_rss} from feeds, "
          f"{settings.digest.max_per_topic} per topic")

    repository = YamlArticleRepository(settings.storage_dir)

    today = datetime.now(timezone.utc).date()
    if not force:
        previous = repository.find_successful_run_on(today)
        if previous is not None:
            print(f"\n✓ Digest already sent today (run {previous.id}). Use --force to run again.")
            return

    llm_client = ClaudeClient(settings) if settings.llm_enabled else None
    ranker, summarizer = select_strategies(settings, llm_client)

    pipeline = DigestPipeline(
        repository=repository,
        feed_fetcher=RSSFeedSource(),
        extractor=ArticleExtractor(),
        ranker=ranker,
        summarizer=summarizer,
        renderer=EpubGenerator(settings.digest.timezone),
        delivery=None if no_email else build_sender(settings),
        config=settings.digest,
        feeds=settings.feeds,
        interests=settings.interests,
        output_dir=output or settings.output_dir,
    )

    try:
        digest_run = asyncio.run(pipeline.run())
    except Exception as e:
        print_banner(f"❌ DIGEST FAILED: {e}")
        raise typer.Exit(code=1)

    print_banner("✅ DONE!" if digest_run.error is None else f"ℹ️  {digest_run.error}")
    print(f"  • Run: {digest_run.id}")
    print(f"  • Saved articles sent: {len(digest_run.included_article_ids)}")
    print(f"  • Feed items included: {len(digest_run.feed_items_included)}")
    if digest_run.epub_filename:
        print(f"  • EPUB: {digest_run.epub_filename}")
    if digest_run.email_message_id:
        print(f"  • Email id: {digest_run.email_message_id}")
    print()


@app.command()
def init(
    email: str = typer.Option(..., "--email", help="Owner email address"),
    config: Path = ConfigOption,
) -> None:
    """Create the owner record."""
    settings = get_settings(config)
    owner = YamlArticleRepository(settings.storage_dir).create_owner(email)
    print(f"✓ Owner {owner.email} ({owner.id}) stored in {settings.storage_dir}")


@app.command()
def add(
    url: str,
    tag: Optional[list[str]] = typer.Option(None, "--tag", help="Tag to attach (repeatable)"),
    favorite: bool = typer.Option(False, "--favorite", help="Mark as favorite"),
    config: Path = ConfigOption,
) -> None:
    """Save an article to the inbox."""
    setup_logging()
    settings = get_settings(config)
    service = ArticleService(
        repository=YamlArticleRepository(settings.storage_dir),
        extractor=ArticleExtractor(),
        renderer=EpubGenerator(settings.digest.timezone),
        config=settings.digest,
    )

    try:
        article = asyncio.run(service.add(url, tags=tag or [], favorited=favorite))
    except DigestError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

    print(f"✓ Saved: {article.title}")
    print(f"  └─ id: {article.id} ({article.reading_minutes} min read)")


@app.command()
def send(
    article_id: str,
    config: Path = ConfigOption,
) -> None:
    """Send one saved article to Kindle now."""
    setup_logging()
    settings = get_settings(config)
    service = ArticleService(
        repository=YamlArticleRepository(settings.storage_dir),
        extractor=ArticleExtractor(),
        renderer=EpubGenerator(settings.digest.timezone),
        delivery=build_sender(settings),
        config=settings.digest,
    )

    try:
        message_id = asyncio.run(service.send_now(article_id))
    except DigestError as e:
        print(f"❌ {e}")
        raise typer.Exit(code=1)

    print(f"✓ Sent to Kindle (email id: {message_id})")


@app.command()
def runs(
    limit: int = typer.Option(10, "--limit", help="Number of runs to show"),
    config: Path = ConfigOption,
) -> None:
    """List recent digest runs."""
    settings = get_settings(config)
    recent = YamlArticleRepository(settings.storage_dir).list_runs(limit)

    if not recent:
        print("No digest runs yet.")
        return

    for digest_run in recent:
        mark = "✓" if digest_run.status == RunStatus.SUCCESS else "✗"
        started = digest_run.started_at.strftime("%Y-%m-%d %H:%M")
        print(f"{mark} {started} {digest_run.status.value:<7} "
              f"{len(digest_run.included_article_ids)} saved, "
              f"{len(digest_run.feed_items_included)} feed items")
        if digest_run.error:
            print(f"  └─ {digest_run.error}")


if __name__ == "__main__":
    app()
