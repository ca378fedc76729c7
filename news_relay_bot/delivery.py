"""Chunked delivery of long messages."""

from .logging_config import create_execution_logger
from .models import ChunkOutcome
from .telegram import (
    RecipientUnreachableError,
    TelegramError,
    TelegramGateway,
    TelegramSendError,
)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096
SPLIT_LOOKBACK = 100


def split_message(
    text: str, limit: int = TELEGRAM_MAX_MESSAGE_LENGTH, lookback: int = SPLIT_LOOKBACK
) -> list[str]:
    """Split text into chunks of at most ``limit`` characters.

    A chunk is cut at the last line break when one falls within the final
    ``lookback`` characters; the break itself starts the next chunk, so the
    chunks concatenate back to the original text.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")

    chunks = []
    while text:
        chunk = text[:limit]
        if len(text) > limit:
            last_newline = chunk.rfind("\n")
            if last_newline > 0 and last_newline > limit - lookback:
                chunk = chunk[:last_newline]
        chunks.append(chunk)
        text = text[len(chunk):]
    return chunks


class ChunkedSender:
    """Delivers arbitrarily long text to one chat, chunk by chunk."""

    def __init__(
        self,
        gateway: TelegramGateway,
        limit: int = TELEGRAM_MAX_MESSAGE_LENGTH,
        lookback: int = SPLIT_LOOKBACK,
        execution_id: str | None = None,
    ):
        self.gateway = gateway
        self.limit = limit
        self.lookback = lookback
        self.logger = create_execution_logger("delivery", execution_id)

    def deliver(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        disable_web_page_preview: bool | None = None,
    ) -> list[ChunkOutcome]:
        """
        Send ``text`` to ``chat_id`` in order, one Bot API call per chunk.

        Never raises for a failed chunk: unreachable recipients are noted at
        debug level, other failures are logged, and the remaining chunks are
        still attempted. A chunk whose markup is rejected with a 400 is sent
        again once as plain text.

        Returns:
            One outcome per chunk
        """
        outcomes = []
        for index, chunk in enumerate(split_message(text, self.limit, self.lookback)):
            try:
                self._send_chunk(chat_id, chunk, index, parse_mode, disable_web_page_preview)
                outcomes.append(ChunkOutcome(index, "sent"))
            except RecipientUnreachableError as e:
                self.logger.debug(
                    f"Recipient unreachable: {e.description}", chat_id=chat_id
                )
                outcomes.append(ChunkOutcome(index, "unreachable", e.description))
            except TelegramError as e:
                self.logger.error(
                    f"Send error: {e.description}",
                    chat_id=chat_id,
                    chunk_index=index,
                    error_code=e.error_code,
                )
                outcomes.append(ChunkOutcome(index, "failed", e.description))
            except Exception as e:
                self.logger.exception(
                    f"Unexpected send error: {e}", chat_id=chat_id, chunk_index=index
                )
                outcomes.append(ChunkOutcome(index, "failed", str(e)))

        return outcomes

    def _send_chunk(
        self,
        chat_id: int,
        chunk: str,
        index: int,
        parse_mode: str | None,
        disable_web_page_preview: bool | None,
    ) -> None:
        """Send one chunk, re-sending it as plain text if its markup is rejected."""
        try:
            self.gateway.send_message(
                chat_id,
                chunk,
                parse_mode=parse_mode,
                disable_web_page_preview=disable_web_page_preview,
            )
        except TelegramSendError as e:
            if e.error_code != 400 or parse_mode == "":
                raise
            self.logger.warning(
                f"Markup rejected, resending as plain text: {e.description}",
                chat_id=chat_id,
                chunk_index=index,
            )
            self.gateway.send_message(
                chat_id,
                chunk,
                parse_mode="",
                disable_web_page_preview=disable_web_page_preview,
            )

    def send_notice(self, chat_id: int, text: str, parse_mode: str | None = None) -> bool:
        """Send a short single-message notice with the same failure policy."""
        outcomes = self.deliver(chat_id, text, parse_mode=parse_mode)
        return all(outcome.ok for outcome in outcomes)
