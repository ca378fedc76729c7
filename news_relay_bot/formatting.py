"""Message formatting for Telegram's legacy Markdown dialect.

Entities cannot nest in this dialect and a backslash escape only works
outside an entity, so text placed inside bold or italic markers closes the
entity around each literal marker character instead.
"""

from .models import FeedItem, GroupedResult, SearchHit

WELCOME_TEXT = (
    "👋 Welcome! Type a category like {examples} or any keyword to see news. "
    "You will also receive daily digests if you stay subscribed."
)
FETCH_FAILED_TEXT = "⚠️ Failed to fetch news."
NO_SEARCH_RESULTS_TEXT = "No recent headlines found for this keyword in the last 2 days."
NO_LOOKUP_RESULTS_TEXT = "No news found for the last 2 days!"
NO_DIGEST_RESULTS_TEXT = "No headlines in the last 24 hours!"


def bold(text: str) -> str:
    return "*" + text.replace("*", "*\\**") + "*"


def italic(text: str) -> str:
    return "_" + text.replace("_", "_\\__") + "_"


def link(text: str, url: str) -> str:
    # Link text cannot hold brackets; a bare ")" would end the target early
    label = text.replace("[", "(").replace("]", ")")
    return f"[{label}]({url.replace(')', '%29')})"


def lookup_title(category: str) -> str:
    return f"📰 News for last 2 days in {bold(category)}:"


def digest_title(category: str) -> str:
    return f"📰 {bold(f'Daily {category} Digest:')}"


def search_title(query: str) -> str:
    return f'🟢 News headlines for "{bold(query)}" (last 2 days):'


def lookup_ack(category: str) -> str:
    return f"Getting news for {bold(category)}, please wait..."


def search_ack(query: str) -> str:
    return f"Looking for recent news containing: {bold(query)}"


def welcome(categories: list[str]) -> str:
    examples = ", ".join(f"`{category}`" for category in categories[:3])
    return WELCOME_TEXT.format(examples=examples)


def format_entry(item: FeedItem) -> str:
    """Render one item: link line, optional italic description, blank line."""
    line = f"• {link(item.title, item.link)}"
    if isinstance(item, SearchHit) and item.category:
        line += f" {italic(f'(in {item.category})')}"
    entry = line + "\n"
    if item.description:
        entry += f"   {italic(item.description)}\n"
    return entry + "\n"


def render(title: str, grouped: GroupedResult, empty_text: str) -> str:
    """Render grouped items under ``title``.

    Args:
        title: First line of the message, already marked up
        grouped: Day key to items, most recent day first
        empty_text: Sentence appended when there are no items

    Returns:
        The complete message text
    """
    reply = f"{title}\n"
    for day, items in grouped.items():
        reply += f"\n{bold(f'{day}:')}\n"
        for item in items:
            reply += format_entry(item)

    if not grouped:
        reply += f"\n{empty_text}"

    return reply
