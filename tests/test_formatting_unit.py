"""Unit tests for message formatting."""

from datetime import UTC, datetime

from news_relay_bot import formatting
from news_relay_bot.models import FeedItem, SearchHit

PUBLISHED = datetime(2025, 10, 15, 9, 0, tzinfo=UTC)


class TestFormattingUnit:
    """Unit tests for the Markdown renderer."""

    def test_render_grouped_items(self):
        grouped = {
            "2025-10-15": [
                FeedItem("Rates rise", "https://example.com/rates", PUBLISHED, "Central bank moves"),
                FeedItem("Markets calm", "https://example.com/markets", PUBLISHED),
            ],
            "2025-10-14": [
                FeedItem("Earnings beat", "https://example.com/earnings", PUBLISHED),
            ],
        }

        text = formatting.render(
            formatting.lookup_title("business"), grouped, formatting.NO_LOOKUP_RESULTS_TEXT
        )

        assert text == (
            "📰 News for last 2 days in *business*:\n"
            "\n*2025-10-15:*\n"
            "• [Rates rise](https://example.com/rates)\n"
            "   _Central bank moves_\n"
            "\n"
            "• [Markets calm](https://example.com/markets)\n"
            "\n"
            "\n*2025-10-14:*\n"
            "• [Earnings beat](https://example.com/earnings)\n"
            "\n"
        )

    def test_render_empty_result(self):
        text = formatting.render(
            formatting.digest_title("tech"), {}, formatting.NO_DIGEST_RESULTS_TEXT
        )

        assert text == "📰 *Daily tech Digest:*\n\nNo headlines in the last 24 hours!"

    def test_search_hits_annotated_with_category(self):
        hit = SearchHit("Climate summit", "https://example.com/c", PUBLISHED, "", category="world")

        entry = formatting.format_entry(hit)

        assert entry == "• [Climate summit](https://example.com/c) _(in world)_\n\n"

    def test_search_title(self):
        assert (
            formatting.search_title("climate")
            == '🟢 News headlines for "*climate*" (last 2 days):'
        )

    def test_italic_text_keeps_underscores_literal(self):
        assert formatting.italic("snake_case") == "_snake_\\__case_"

    def test_bold_text_keeps_asterisks_literal(self):
        assert formatting.bold("a*b") == "*a*\\**b*"

    def test_link_text_without_brackets(self):
        assert (
            formatting.link("[Live] Updates", "https://example.com/x_(y)")
            == "[(Live) Updates](https://example.com/x_(y%29)"
        )

    def test_acknowledgements(self):
        assert formatting.lookup_ack("tech") == "Getting news for *tech*, please wait..."
        assert (
            formatting.search_ack("Mars rover")
            == "Looking for recent news containing: *Mars rover*"
        )

    def test_welcome_lists_categories(self):
        text = formatting.welcome(["tech", "world", "business", "health"])

        assert "`tech`, `world`, `business`" in text
        assert "health" not in text
        assert "daily digests" in text
