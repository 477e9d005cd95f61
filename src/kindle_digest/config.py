"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from kindle_digest.adapters.notifications.resend_sender import parse_recipients
from kindle_digest.adapters.sources.rss_feed_source import parse_feed_urls
from kindle_digest.core.entities import InterestConfiguration
from kindle_digest.core.interests import parse_interests


@dataclass
class ClaudeConfig:
    """Claude API settings."""
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2000
    temperature: float = 0.3
    max_retries: int = 5
    initial_retry_delay: float = 2.0
    request_delay: float = 0.5


@dataclass
class DigestConfig:
    """Digest assembly limits and presentation."""
    title: str = "Kindle Digest"
    max_articles: int = 25
    max_saved: int = 10
    max_rss: int = 15
    max_per_topic: int = 3
    save_feed_items: bool = False
    timezone: str = "America/Denver"
    extraction_concurrency: int = 5


@dataclass
class PathsConfig:
    """Path settings."""
    storage_dir: Path = Path("data")
    output_dir: Path = Path("digests")


@dataclass
class EmailConfig:
    """Delivery settings."""
    sender: str = ""
    recipients: list[str] = field(default_factory=list)


@dataclass
class Settings:
    """Application settings."""

    # API keys (from environment only)
    anthropic_api_key: str = ""
    resend_api_key: str = ""

    # Config sections
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    feeds: list[str] = field(default_factory=list)
    interests: InterestConfiguration = field(default_factory=dict)

    @property
    def llm_enabled(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def interest_topics(self) -> list[str]:
        return list(self.interests)

    @property
    def storage_dir(self) -> Path:
        return self.paths.storage_dir

    @property
    def output_dir(self) -> Path:
        return self.paths.output_dir


_DIGEST_ENV = {
    "DIGEST_MAX_ARTICLES": "max_articles",
    "DIGEST_MAX_SAVED": "max_saved",
    "DIGEST_MAX_RSS": "max_rss",
    "DIGEST_MAX_PER_TOPIC": "max_per_topic",
}


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)

    settings = Settings(
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        resend_api_key=os.getenv("RESEND_API_KEY", ""),
    )

    # Apply YAML config
    if "claude" in config:
        for key, value in config["claude"].items():
            setattr(settings.claude, key, value)

    if "digest" in config:
        for key, value in config["digest"].items():
            setattr(settings.digest, key, value)

    if "paths" in config:
        for key, value in config["paths"].items():
            setattr(settings.paths, key, Path(value))

    if "email" in config:
        settings.email.sender = config["email"].get("sender", "")
        settings.email.recipients = list(config["email"].get("recipients") or [])

    settings.feeds = list(config.get("feeds") or [])
    settings.interests = parse_interests(config.get("interests"))

    # Environment overrides
    for env_name, attr in _DIGEST_ENV.items():
        value = _env_int(env_name)
        if value is not None:
            setattr(settings.digest, attr, value)

    if "DIGEST_SAVE_FEED_ITEMS" in os.environ:
        settings.digest.save_feed_items = os.environ["DIGEST_SAVE_FEED_ITEMS"] == "true"

    if os.getenv("RSS_FEEDS"):
        settings.feeds = parse_feed_urls(os.environ["RSS_FEEDS"])

    if os.getenv("DIGEST_INTERESTS_JSON"):
        settings.interests = parse_interests(os.environ["DIGEST_INTERESTS_JSON"])

    if os.getenv("EMAIL_FROM"):
        settings.email.sender = os.environ["EMAIL_FROM"]

    if os.getenv("KINDLE_EMAIL_TO"):
        settings.email.recipients = parse_recipients(os.environ["KINDLE_EMAIL_TO"])

    return settings
