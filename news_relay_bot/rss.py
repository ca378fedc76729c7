"""RSS Feed retrieval module for the news relay bot."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .logging_config import create_execution_logger
from .models import FeedItem, FeedSource


class FeedFetchError(Exception):
    """A feed could not be downloaded or parsed."""

    def __init__(self, feed_url: str, reason: str):
        super().__init__(f"Failed to fetch feed {feed_url}: {reason}")
        self.feed_url = feed_url
        self.reason = reason


@dataclass
class FetchResult:
    """Items fetched from one source, or the error that prevented it."""

    source: FeedSource
    items: list[FeedItem] = field(default_factory=list)
    error: FeedFetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FeedProcessor:
    """Handles RSS/Atom feed retrieval and normalization."""

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = "News-Relay-Bot/1.0 (RSS to Telegram relay)",
        execution_id: str | None = None,
    ):
        """Initialize FeedProcessor with configuration.

        Args:
            timeout: Per-feed timeout in seconds
            user_agent: User-Agent header sent to feed servers
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.logger = create_execution_logger("feed_processor", execution_id)
        self._local = threading.local()

        self.logger.info("FeedProcessor initialized", timeout=timeout)

    @property
    def session(self) -> requests.Session:
        """The calling thread's HTTP session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.user_agent})
            self._local.session = session
        return session

    def fetch(self, source: FeedSource) -> FetchResult:
        """Fetch one source without raising.

        Args:
            source: The feed source to fetch

        Returns:
            FetchResult holding either the items or the failure
        """
        try:
            items = self.parse_feed(source.url)
        except FeedFetchError as e:
            self.logger.warning(
                str(e), category=source.category, feed_url=source.url, error=e.reason
            )
            return FetchResult(source, error=e)
        except Exception as e:
            self.logger.exception(
                f"Unexpected error fetching {source.url}",
                category=source.category,
                feed_url=source.url,
            )
            return FetchResult(source, error=FeedFetchError(source.url, str(e)))

        self.logger.log_feed_fetch(source.category, source.url, len(items))
        return FetchResult(source, items=items)

    def fetch_all(self, sources: list[FeedSource]) -> list[FetchResult]:
        """Fetch several sources concurrently.

        Every source yields exactly one result, in the order given. Each
        source gets its own thread, so all fetches start together and the
        timeout bounds each one. Fetches still running once it elapses are
        reported as failures.
        """
        if not sources:
            return []

        executor = ThreadPoolExecutor(
            max_workers=len(sources),
            thread_name_prefix="feed-fetch",
        )
        try:
            futures = [executor.submit(self.fetch, source) for source in sources]
            wait(futures, timeout=self.timeout)

            results = []
            for source, future in zip(sources, futures):
                if future.done():
                    results.append(future.result())
                else:
                    future.cancel()
                    error = FeedFetchError(source.url, f"timed out after {self.timeout}s")
                    self.logger.warning(
                        str(error), category=source.category, feed_url=source.url
                    )
                    results.append(FetchResult(source, error=error))
        finally:
            # Hung downloads must not hold up the caller
            executor.shutdown(wait=False, cancel_futures=True)

        failed = sum(1 for result in results if not result.ok)
        self.logger.info(
            f"Fetched {len(sources) - failed}/{len(sources)} feeds",
            metrics={"feeds": len(sources), "failed": failed},
        )
        return results

    def parse_feed(self, feed_url: str) -> list[FeedItem]:
        """Download and parse a single RSS/Atom feed.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            List of FeedItem objects from the feed

        Raises:
            FeedFetchError: If the feed cannot be downloaded or parsed
        """
        self.logger.debug("Downloading feed content", feed_url=feed_url)
        try:
            response = self.session.get(feed_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedFetchError(feed_url, str(e)) from e

        feed = feedparser.parse(response.content)

        if feed.bozo and not feed.entries:
            reason = str(getattr(feed, "bozo_exception", "unparseable feed"))
            raise FeedFetchError(feed_url, reason)

        if feed.bozo:
            self.logger.debug(
                f"Feed parsing warning for {feed_url}: {feed.bozo_exception}",
                feed_url=feed_url,
            )

        items = []
        for entry in feed.entries:
            try:
                items.append(self.normalize_item(entry))
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize entry from {feed_url}: {e}",
                    feed_url=feed_url,
                    error=str(e),
                )
                continue

        return items

    def normalize_item(self, raw_item) -> FeedItem:
        """Normalize a raw feed entry into a FeedItem.

        Entries without a usable publish date get ``published=None`` and are
        later excluded by the time-window filter.
        """
        title = _text_attr(raw_item, "title") or ""
        link = _text_attr(raw_item, "link") or ""

        published = self.parse_published(raw_item)

        # First non-empty of summary, content, description
        description = ""
        for name in ("summary", "content", "description"):
            value = getattr(raw_item, name, None)
            if isinstance(value, list):
                value = value[0].get("value", "") if value else ""
            if isinstance(value, str) and value.strip():
                description = self.clean_html_content(value)
                if description:
                    break

        return FeedItem(
            title=self.clean_html_content(title),
            link=link.strip(),
            published=published,
            description=description,
        )

    def parse_published(self, raw_item) -> datetime | None:
        """Extract a timezone-aware publish time, or None."""
        for name in ("published", "updated"):
            value = _text_attr(raw_item, name)
            if not value:
                continue
            try:
                published = date_parser.parse(value)
            except (ValueError, TypeError, OverflowError):
                continue
            if published.tzinfo is None:
                published = published.replace(tzinfo=UTC)
            return published

        for name in ("published_parsed", "updated_parsed"):
            value = getattr(raw_item, name, None)
            if isinstance(value, time.struct_time):
                return datetime(*value[:6], tzinfo=UTC)

        return None

    def clean_html_content(self, content: str | None) -> str:
        """Remove HTML tags from content and normalize whitespace.

        Args:
            content: Raw content that may contain HTML

        Returns:
            Clean text content without HTML tags
        """
        if not content:
            return ""

        if "<" in content and ">" in content:
            soup = BeautifulSoup(content, "html.parser")
            for script in soup(["script", "style"]):
                script.decompose()
            content = soup.get_text(separator=" ")

        return " ".join(content.split())


def _text_attr(raw_item, name: str) -> str | None:
    value = getattr(raw_item, name, None)
    return value if isinstance(value, str) else None
