"""Data models for the news relay bot."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class FeedSource:
    """A named feed registered under a category key."""

    category: str
    url: str


@dataclass(frozen=True)
class FeedItem:
    """Represents a single RSS/Atom feed item."""

    title: str
    link: str
    published: datetime | None
    description: str = ""


@dataclass(frozen=True)
class SearchHit(FeedItem):
    """A feed item matched by keyword search, tagged with its category."""

    category: str = ""

    @classmethod
    def from_item(cls, item: FeedItem, category: str) -> "SearchHit":
        return cls(
            title=item.title,
            link=item.link,
            published=item.published,
            description=item.description,
            category=category,
        )


# Day key ("YYYY-MM-DD") -> items published that day, in feed order.
GroupedResult = dict[str, list[FeedItem]]


@dataclass(frozen=True)
class InboundMessage:
    """A text message received from the chat gateway."""

    sender_id: int | None
    chat_id: int
    text: str | None


@dataclass
class ChunkOutcome:
    """Outcome of sending one chunk of a longer message."""

    index: int
    status: str  # "sent", "unreachable" or "failed"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


@dataclass
class DigestReport:
    """Summary of one scheduled digest run."""

    category: str
    fetched: bool = False
    items: int = 0
    recipients: int = 0
    outcomes: dict[int, list[ChunkOutcome]] = field(default_factory=dict)
