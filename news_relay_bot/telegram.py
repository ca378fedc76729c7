"""Telegram Bot API gateway for the news relay bot."""

import http.client
import json
import time
import urllib.error
import urllib.request
from typing import Any

from .config import TelegramConfig
from .logging_config import create_execution_logger
from .models import InboundMessage


class TelegramError(Exception):
    """A Bot API call failed."""

    def __init__(self, description: str, error_code: int | None = None):
        super().__init__(description)
        self.description = description
        self.error_code = error_code


class RecipientUnreachableError(TelegramError):
    """The chat blocked the bot, was deleted, or removed the bot."""


class TelegramSendError(TelegramError):
    """Any other Bot API failure."""


class TelegramGateway:
    """Sends messages and polls updates through the Telegram Bot API."""

    def __init__(self, config: TelegramConfig, execution_id: str | None = None):
        """Initialize the gateway with configuration."""
        self.config = config
        self.logger = create_execution_logger("telegram_gateway", execution_id)
        self.base_url = f"https://api.telegram.org/bot{config.bot_token}"

        self.logger.info(
            "TelegramGateway initialized",
            parse_mode=config.parse_mode,
            retry_attempts=config.retry_attempts,
        )

    def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        disable_web_page_preview: bool | None = None,
    ) -> dict[str, Any]:
        """
        Send one text message.

        Args:
            chat_id: Target chat
            text: Message text, at most ``config.message_limit`` characters
            parse_mode: Markup dialect, defaults to the configured one
            disable_web_page_preview: Defaults to the configured value

        Returns:
            The sent Message object

        Raises:
            RecipientUnreachableError: If the chat can no longer be reached
            TelegramSendError: For any other failure
        """
        data = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": (
                self.config.disable_web_page_preview
                if disable_web_page_preview is None
                else disable_web_page_preview
            ),
        }
        mode = self.config.parse_mode if parse_mode is None else parse_mode
        if mode:
            data["parse_mode"] = mode

        return self._call("sendMessage", data, timeout=self.config.request_timeout)

    def get_updates(self, offset: int | None = None) -> list[dict[str, Any]]:
        """Long-poll for new updates after ``offset``."""
        data: dict[str, Any] = {
            "timeout": self.config.poll_timeout,
            "allowed_updates": ["message"],
        }
        if offset is not None:
            data["offset"] = offset

        # The HTTP timeout has to outlast the long-poll window
        return self._call(
            "getUpdates", data, timeout=self.config.poll_timeout + self.config.request_timeout
        )

    def handle_rate_limit(self, retry_count: int, retry_after: int | None = None) -> None:
        """
        Handle rate limiting with exponential backoff.

        Args:
            retry_count: Current retry attempt number
            retry_after: Server-suggested wait in seconds, if any
        """
        backoff_time = self.config.backoff_factor**retry_count
        if retry_after:
            backoff_time = max(backoff_time, retry_after)
        self.logger.warning(
            f"Rate limited, waiting {backoff_time} seconds before retry {retry_count + 1}",
            retry_count=retry_count,
            backoff_time=backoff_time,
        )
        time.sleep(backoff_time)

    def _call(self, method: str, data: dict[str, Any], timeout: float) -> Any:
        url = f"{self.base_url}/{method}"
        json_data = json.dumps(data).encode("utf-8")

        for attempt in range(self.config.retry_attempts):
            req = urllib.request.Request(
                url,
                data=json_data,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "News-Relay-Bot/1.0",
                },
            )
            try:
                with urllib.request.urlopen(req, timeout=timeout) as response:
                    body = json.loads(response.read().decode("utf-8"))
                    if not body.get("ok"):
                        raise TelegramSendError(
                            body.get("description", "Bot API call failed"),
                            body.get("error_code"),
                        )
                    return body.get("result")

            except urllib.error.HTTPError as e:
                error_code, description, retry_after = _read_error(e)
                if error_code == 429:
                    if attempt < self.config.retry_attempts - 1:
                        self.handle_rate_limit(attempt, retry_after)
                        continue
                    raise TelegramSendError(
                        "Max retry attempts reached for rate limiting", error_code
                    ) from e
                if error_code == 403:
                    raise RecipientUnreachableError(description, error_code) from e
                raise TelegramSendError(description, error_code) from e

            except urllib.error.URLError as e:
                raise TelegramSendError(f"URL error calling {method}: {e.reason}") from e

            except (OSError, http.client.HTTPException) as e:
                # Dropped or reset connections surface here, outside urllib's wrapping
                raise TelegramSendError(f"Connection error calling {method}: {e!r}") from e

            except json.JSONDecodeError as e:
                raise TelegramSendError(f"Error calling {method}: {e}") from e

        raise TelegramSendError(f"{method} failed after {self.config.retry_attempts} attempts")


def _read_error(error: urllib.error.HTTPError) -> tuple[int, str, int | None]:
    """Extract error_code, description and retry_after from an error response."""
    error_code = error.code
    description = f"HTTP {error.code} - {error.reason}"
    retry_after = None
    try:
        body = json.loads(error.read().decode("utf-8"))
    except (ValueError, TypeError, AttributeError, OSError):
        return error_code, description, retry_after

    if isinstance(body, dict):
        error_code = body.get("error_code", error_code)
        description = body.get("description", description)
        retry_after = (body.get("parameters") or {}).get("retry_after")
    return error_code, description, retry_after


def parse_update(update: dict[str, Any]) -> InboundMessage | None:
    """Normalize a Bot API update into an InboundMessage.

    Returns None for updates that carry no message with a chat.
    """
    message = update.get("message")
    if not isinstance(message, dict) or "chat" not in message:
        return None

    sender = message.get("from") or {}
    text = message.get("text")
    return InboundMessage(
        sender_id=sender.get("id"),
        chat_id=message["chat"]["id"],
        text=text if isinstance(text, str) else None,
    )
