"""Property-based tests for time-window filtering and day grouping."""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from hypothesis import given, settings
from hypothesis import strategies as st

from news_relay_bot.grouping import day_key, filter_and_group
from news_relay_bot.models import FeedItem

NOW = datetime(2025, 10, 15, 12, 0, tzinfo=UTC)

# Resolved once at import, not inside timed examples
ZONES = [ZoneInfo(name) for name in ("UTC", "Asia/Kolkata", "America/Los_Angeles", "Pacific/Kiritimati")]


@st.composite
def feed_item_strategy(draw):
    """Generate items published around NOW, some undated."""
    offset = draw(st.one_of(st.none(), st.integers(min_value=-5 * 86400, max_value=86400)))
    published = None if offset is None else NOW - timedelta(seconds=offset)
    title = draw(st.text(min_size=1, max_size=30))
    return FeedItem(title=title, link="https://example.com/item", published=published)


class TestGroupingProperties:
    """Property-based tests for filter_and_group."""

    @settings(deadline=None)
    @given(
        items=st.lists(feed_item_strategy(), max_size=40),
        window_hours=st.integers(min_value=1, max_value=96),
        tz=st.sampled_from(ZONES),
    )
    def test_only_dated_items_within_window(self, items, window_hours, tz):
        """Every grouped item has a publish time in [now - window, now]."""
        window = timedelta(hours=window_hours)

        grouped = filter_and_group(items, NOW, window, tz)

        grouped_items = [item for day_items in grouped.values() for item in day_items]
        for item in grouped_items:
            assert item.published is not None
            assert NOW - window <= item.published <= NOW

        expected = [
            item
            for item in items
            if item.published is not None and NOW - window <= item.published <= NOW
        ]
        assert len(grouped_items) == len(expected)

        for key, day_items in grouped.items():
            assert day_items
            for item in day_items:
                assert day_key(item.published, tz) == key

    @given(
        items=st.lists(feed_item_strategy(), max_size=40),
        window_hours=st.integers(min_value=1, max_value=120),
    )
    def test_day_keys_descend_chronologically(self, items, window_hours):
        """String order of day keys matches calendar order, most recent first."""
        grouped = filter_and_group(items, NOW, timedelta(hours=window_hours), UTC)

        keys = list(grouped)
        dates = [date.fromisoformat(key) for key in keys]
        assert dates == sorted(dates, reverse=True)
        assert len(set(keys)) == len(keys)

    @given(
        first=st.datetimes(
            min_value=datetime(2000, 1, 1), max_value=datetime(2099, 12, 31), timezones=st.just(UTC)
        ),
        second=st.datetimes(
            min_value=datetime(2000, 1, 1), max_value=datetime(2099, 12, 31), timezones=st.just(UTC)
        ),
    )
    def test_day_key_order_matches_time_order(self, first, second):
        earlier, later = sorted([first, second])

        assert day_key(earlier, UTC) <= day_key(later, UTC)
