"""Category to feed URL registry."""

from collections.abc import Iterable

from .models import FeedSource

DEFAULT_FEEDS = {
    "tech": "https://feeds.feedburner.com/TechCrunch/",
    "world": "http://feeds.bbci.co.uk/news/world/rss.xml",
    "india": "https://timesofindia.indiatimes.com/rssfeeds/-2128936835.cms",
    "sports": "http://feeds.bbci.co.uk/sport/rss.xml",
    "business": "http://feeds.bbci.co.uk/news/business/rss.xml",
    "health": "http://feeds.bbci.co.uk/news/health/rss.xml",
    "science": "http://feeds.bbci.co.uk/news/science_and_environment/rss.xml",
    "entertainment": "http://feeds.bbci.co.uk/news/entertainment_and_arts/rss.xml",
    "finance": "https://www.livemint.com/rss/markets",
    "environment": "https://www.theguardian.com/environment/rss",
}


def normalize_category(text: str) -> str:
    """Normalize user input into a registry lookup key."""
    return text.strip().lower()


class FeedRegistry:
    """Static mapping from category key to feed source."""

    def __init__(self, sources: Iterable[FeedSource]):
        self._sources: dict[str, FeedSource] = {}
        for source in sources:
            key = normalize_category(source.category)
            if key in self._sources:
                raise ValueError(f"Duplicate feed category: {key}")
            self._sources[key] = FeedSource(key, source.url)

    @classmethod
    def default(cls) -> "FeedRegistry":
        return cls(FeedSource(category, url) for category, url in DEFAULT_FEEDS.items())

    def lookup(self, text: str) -> FeedSource | None:
        """Return the source whose key exactly matches the trimmed, case-folded text."""
        return self._sources.get(normalize_category(text))

    @property
    def categories(self) -> list[str]:
        return list(self._sources)

    def __iter__(self):
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, text: str) -> bool:
        return self.lookup(text) is not None
