"""Configuration management for the news relay bot."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .feeds import DEFAULT_FEEDS, FeedRegistry
from .models import FeedSource


@dataclass
class TelegramConfig:
    """Configuration for Telegram Bot API."""

    bot_token: str
    parse_mode: str = "Markdown"
    disable_web_page_preview: bool = False
    message_limit: int = 4096
    split_lookback: int = 100
    retry_attempts: int = 3
    backoff_factor: float = 2.0
    poll_timeout: int = 10
    poll_interval: float = 0.3
    request_timeout: int = 30


@dataclass
class FeedConfig:
    """Configuration for feed retrieval and query windows."""

    fetch_timeout: float = 15.0
    query_window_hours: int = 48
    user_agent: str = "News-Relay-Bot/1.0 (RSS to Telegram relay)"


@dataclass
class ScheduleConfig:
    """Configuration for the daily digest.

    ``timezone`` is also the reference zone for calendar day keys.
    """

    timezone: str = "UTC"
    hour: int = 8
    minute: int = 0
    category: str = "tech"
    window_hours: int = 24


class Config:
    """Main configuration manager."""

    FEEDS_FILE = "feeds.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.bot_token = os.getenv("TELEGRAM_BOT_TOKEN", os.getenv("TOKEN", ""))
        self.telegram_secret_name = os.getenv("TELEGRAM_SECRET_NAME", "")
        self.aws_region = os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1"))
        self.feeds_file = os.getenv("FEEDS_FILE", self.FEEDS_FILE)
        self.timezone = os.getenv("TIMEZONE", "UTC")
        self.digest_category = os.getenv("DIGEST_CATEGORY", "tech").strip().lower()
        self.digest_hour = int(os.getenv("DIGEST_HOUR", "8"))
        self.digest_minute = int(os.getenv("DIGEST_MINUTE", "0"))
        self.fetch_timeout = float(os.getenv("FEED_TIMEOUT", "15"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    def get_feed_sources(self) -> list[FeedSource]:
        """Get feed sources from the feeds file, or the built-in defaults."""
        feeds_file = Path(self.feeds_file)
        if not feeds_file.exists():
            return [FeedSource(category, url) for category, url in DEFAULT_FEEDS.items()]

        try:
            with open(feeds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in feeds file: {e}") from e

        sources = [
            FeedSource(feed["category"].strip().lower(), feed["url"])
            for feed in data.get("feeds", [])
            if feed.get("enabled", True) and "url" in feed and "category" in feed
        ]

        if not sources:
            raise ValueError(f"No enabled feeds found in {feeds_file}")

        return sources

    def get_registry(self) -> FeedRegistry:
        """Build the category registry."""
        return FeedRegistry(self.get_feed_sources())

    def get_telegram_config(self) -> TelegramConfig:
        """Get Telegram configuration."""
        # Token may still be resolved from Secrets Manager at startup
        return TelegramConfig(bot_token=self.bot_token)

    def get_feed_config(self) -> FeedConfig:
        """Get feed retrieval configuration."""
        return FeedConfig(fetch_timeout=self.fetch_timeout)

    def get_schedule_config(self) -> ScheduleConfig:
        """Get schedule configuration."""
        return ScheduleConfig(
            timezone=self.timezone,
            hour=self.digest_hour,
            minute=self.digest_minute,
            category=self.digest_category,
        )
