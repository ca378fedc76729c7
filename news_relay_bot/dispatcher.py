"""Routes inbound chat messages to category lookup or keyword search."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta, tzinfo

from . import formatting
from .delivery import ChunkedSender
from .feeds import FeedRegistry
from .grouping import filter_and_group, title_contains
from .logging_config import create_execution_logger
from .models import FeedSource, InboundMessage, SearchHit
from .rss import FeedProcessor
from .subscribers import SubscriberStore

SUBSCRIBE_COMMAND = "/start"


class QueryDispatcher:
    """Handles one inbound message at a time; safe to call from many threads."""

    def __init__(
        self,
        registry: FeedRegistry,
        processor: FeedProcessor,
        sender: ChunkedSender,
        subscribers: SubscriberStore,
        tz: tzinfo = UTC,
        window: timedelta = timedelta(hours=48),
        clock: Callable[[], datetime] | None = None,
        execution_id: str | None = None,
    ):
        self.registry = registry
        self.processor = processor
        self.sender = sender
        self.subscribers = subscribers
        self.tz = tz
        self.window = window
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = create_execution_logger("dispatcher", execution_id)

    def handle(self, message: InboundMessage) -> str:
        """Route a message and return the name of the path taken.

        Returns one of "ignored", "subscribe", "lookup" or "search".
        """
        if not message.text or not message.text.strip():
            self.logger.debug("Ignoring message without text", chat_id=message.chat_id)
            return "ignored"

        text = message.text.strip()

        if text.lower() == SUBSCRIBE_COMMAND:
            self.subscribe(message.chat_id)
            return "subscribe"

        source = self.registry.lookup(text)
        if source is not None:
            self.category_lookup(message.chat_id, source)
            return "lookup"

        self.keyword_search(message.chat_id, text)
        return "search"

    def subscribe(self, chat_id: int) -> None:
        if self.subscribers.add(chat_id):
            self.logger.info(
                "New digest subscriber",
                chat_id=chat_id,
                metrics={"subscribers": len(self.subscribers)},
            )
        self.sender.send_notice(chat_id, formatting.welcome(self.registry.categories))

    def category_lookup(self, chat_id: int, source: FeedSource) -> None:
        """Send the last window's items from one feed, or a failure notice."""
        self.logger.info("Category lookup", chat_id=chat_id, category=source.category)
        self.sender.send_notice(chat_id, formatting.lookup_ack(source.category))

        result = self.processor.fetch(source)
        if not result.ok:
            self.sender.send_notice(chat_id, formatting.FETCH_FAILED_TEXT, parse_mode="")
            return

        grouped = filter_and_group(result.items, self.clock(), self.window, self.tz)
        reply = formatting.render(
            formatting.lookup_title(source.category),
            grouped,
            formatting.NO_LOOKUP_RESULTS_TEXT,
        )
        self.sender.deliver(chat_id, reply)

    def keyword_search(self, chat_id: int, query: str) -> None:
        """Search every feed's recent titles for ``query``.

        Feeds that fail are skipped; the user only ever sees results or the
        no-results notice.
        """
        self.logger.info("Keyword search", chat_id=chat_id, query=query)
        self.sender.send_notice(chat_id, formatting.search_ack(query))

        now = self.clock()
        candidates = [
            SearchHit.from_item(item, result.source.category)
            for result in self.processor.fetch_all(list(self.registry))
            if result.ok
            for item in result.items
        ]
        grouped = filter_and_group(
            candidates, now, self.window, self.tz, predicate=title_contains(query)
        )

        if not grouped:
            self.sender.send_notice(chat_id, formatting.NO_SEARCH_RESULTS_TEXT, parse_mode="")
            return

        hits = sum(len(items) for items in grouped.values())
        self.logger.info(
            f"Keyword search found {hits} headlines", chat_id=chat_id, query=query
        )
        reply = formatting.render(
            formatting.search_title(query), grouped, formatting.NO_SEARCH_RESULTS_TEXT
        )
        self.sender.deliver(chat_id, reply)
