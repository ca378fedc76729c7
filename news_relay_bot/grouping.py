"""Time-window filtering and day grouping of feed items."""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, tzinfo

from .models import FeedItem, GroupedResult


def day_key(published: datetime, tz: tzinfo) -> str:
    """Zero-padded calendar date of ``published`` in ``tz``.

    Keys sort lexicographically in chronological order.
    """
    return published.astimezone(tz).date().isoformat()


def in_window(item: FeedItem, now: datetime, window: timedelta) -> bool:
    """True when the item has a publish time within [now - window, now]."""
    if item.published is None:
        return False
    return now - window <= item.published <= now


def filter_and_group(
    items: Iterable[FeedItem],
    now: datetime,
    window: timedelta,
    tz: tzinfo,
    predicate: Callable[[FeedItem], bool] | None = None,
) -> GroupedResult:
    """Keep items published within the window and bucket them by day.

    Args:
        items: Items in feed-arrival order
        now: End of the window, timezone-aware
        window: Lookback duration
        tz: Reference zone for calendar day keys
        predicate: Optional extra filter applied to in-window items

    Returns:
        Mapping of day key to items, days most recent first and items
        in arrival order within each day
    """
    buckets: dict[str, list[FeedItem]] = {}
    for item in items:
        if not in_window(item, now, window):
            continue
        if predicate is not None and not predicate(item):
            continue
        buckets.setdefault(day_key(item.published, tz), []).append(item)

    return {day: buckets[day] for day in sorted(buckets, reverse=True)}


def title_contains(query: str) -> Callable[[FeedItem], bool]:
    """Case-insensitive substring match against item titles."""
    needle = query.strip().casefold()

    def matches(item: FeedItem) -> bool:
        return needle in item.title.casefold()

    return matches
