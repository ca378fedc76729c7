"""Long-running entry point: polls Telegram and runs the daily digest."""

import json
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import boto3
from apscheduler.schedulers.background import BackgroundScheduler
from botocore.exceptions import BotoCoreError, ClientError

from .config import Config
from .delivery import ChunkedSender
from .digest import DigestScheduler
from .dispatcher import QueryDispatcher
from .logging_config import create_execution_logger, setup_structured_logging
from .rss import FeedProcessor
from .subscribers import SubscriberStore
from .telegram import RecipientUnreachableError, TelegramError, TelegramGateway, parse_update


class NewsRelayBot:
    """Long-polls for updates and hands each message to a worker thread."""

    def __init__(
        self,
        gateway: TelegramGateway,
        dispatcher: QueryDispatcher,
        poll_interval: float = 0.3,
        max_workers: int = 16,
        execution_id: str | None = None,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="message"
        )
        self.logger = create_execution_logger("main", execution_id)
        self.offset: int | None = None
        self._running = False

    def poll_once(self) -> int:
        """Fetch one batch of updates and dispatch them. Returns the batch size."""
        updates = self.gateway.get_updates(self.offset)
        for update in updates:
            self.offset = update["update_id"] + 1
            message = parse_update(update)
            if message is None:
                continue
            future = self.executor.submit(self.dispatcher.handle, message)
            future.add_done_callback(self._report_failure)
        return len(updates)

    def _report_failure(self, future: Future) -> None:
        """Last-resort handler for anything a message worker let escape."""
        if future.cancelled():
            return
        error = future.exception()
        if error is None or isinstance(error, RecipientUnreachableError):
            return
        self.logger.error(
            f"Unhandled error while handling message: {error!r}",
            error=type(error).__name__,
        )

    def run_forever(self) -> None:
        self._running = True
        self.logger.info("Bot is running")
        while self._running:
            try:
                self.poll_once()
            except TelegramError as e:
                self.logger.warning(
                    f"Polling error: {e.description}", error_code=e.error_code
                )
                time.sleep(max(self.poll_interval, 1.0))
                continue
            except Exception as e:
                self.logger.exception(
                    f"Unexpected polling error: {e!r}", error=type(e).__name__
                )
                time.sleep(max(self.poll_interval, 1.0))
                continue
            time.sleep(self.poll_interval)

    def stop(self) -> None:
        self._running = False
        self.executor.shutdown(wait=False, cancel_futures=True)


def get_telegram_token(config: Config, execution_id: str | None = None) -> str:
    """
    Resolve the bot token.

    The ``TELEGRAM_BOT_TOKEN`` (or ``TOKEN``) environment variable wins;
    otherwise ``TELEGRAM_SECRET_NAME`` is read from AWS Secrets Manager,
    either as a plain string or as a JSON object holding a token field.

    Raises:
        ValueError: If no token can be found
        RuntimeError: If the secret cannot be retrieved
    """
    if config.bot_token and config.bot_token.strip():
        return config.bot_token.strip()

    secret_name = config.telegram_secret_name
    if not secret_name or not secret_name.strip():
        raise ValueError("TELEGRAM_BOT_TOKEN is not set and no TELEGRAM_SECRET_NAME given")

    secrets_logger = create_execution_logger("secrets_manager", execution_id)
    secrets_logger.info(f"Retrieving Telegram token from Secrets Manager: {secret_name}")

    try:
        client = boto3.client("secretsmanager", region_name=config.aws_region)
        secret_value = client.get_secret_value(SecretId=secret_name).get("SecretString", "")
    except (ClientError, BotoCoreError) as e:
        secrets_logger.error(f"Secrets Manager error retrieving {secret_name}: {e}")
        raise RuntimeError(f"Failed to retrieve secret {secret_name}") from e

    if not secret_value or not secret_value.strip():
        raise ValueError(f"Secret {secret_name} contains empty value")

    try:
        secret_data = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value.strip()

    if isinstance(secret_data, dict):
        for key in ("token", "bot_token", "telegram_token", "telegram_bot_token"):
            value = secret_data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

    raise ValueError(f"No valid token found in JSON secret {secret_name}")


def build_bot(config: Config, scheduler: BackgroundScheduler) -> NewsRelayBot:
    """Wire every component from configuration."""
    execution_id = f"bot_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"

    telegram_config = config.get_telegram_config()
    telegram_config.bot_token = get_telegram_token(config, execution_id)
    feed_config = config.get_feed_config()
    schedule = config.get_schedule_config()
    registry = config.get_registry()
    tz = ZoneInfo(schedule.timezone)

    digest_source = registry.lookup(schedule.category)
    if digest_source is None:
        raise ValueError(f"Digest category {schedule.category!r} is not a registered feed")

    gateway = TelegramGateway(telegram_config, execution_id=execution_id)
    sender = ChunkedSender(
        gateway,
        limit=telegram_config.message_limit,
        lookback=telegram_config.split_lookback,
        execution_id=execution_id,
    )
    processor = FeedProcessor(
        timeout=feed_config.fetch_timeout,
        user_agent=feed_config.user_agent,
        execution_id=execution_id,
    )
    subscribers = SubscriberStore()

    dispatcher = QueryDispatcher(
        registry,
        processor,
        sender,
        subscribers,
        tz=tz,
        window=timedelta(hours=feed_config.query_window_hours),
        execution_id=execution_id,
    )
    digest = DigestScheduler(
        digest_source,
        processor,
        sender,
        subscribers,
        tz=tz,
        window=timedelta(hours=schedule.window_hours),
    )
    digest.register(scheduler, schedule)

    return NewsRelayBot(
        gateway,
        dispatcher,
        poll_interval=telegram_config.poll_interval,
        execution_id=execution_id,
    )


def main() -> None:
    config = Config()
    setup_structured_logging(config.log_level)

    scheduler = BackgroundScheduler()
    bot = build_bot(config, scheduler)
    scheduler.start()
    try:
        bot.run_forever()
    except KeyboardInterrupt:
        bot.logger.info("Shutting down")
    finally:
        bot.stop()
        scheduler.shutdown(wait=False)
