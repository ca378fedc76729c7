"""Daily digest push to all subscribers."""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta, tzinfo

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from . import formatting
from .config import ScheduleConfig
from .delivery import ChunkedSender
from .grouping import filter_and_group
from .logging_config import create_execution_logger
from .models import DigestReport, FeedSource
from .rss import FeedProcessor
from .subscribers import SubscriberStore

DIGEST_JOB_ID = "daily_digest"


class DigestScheduler:
    """Renders one category's recent items and fans them out to subscribers."""

    def __init__(
        self,
        source: FeedSource,
        processor: FeedProcessor,
        sender: ChunkedSender,
        subscribers: SubscriberStore,
        tz: tzinfo = UTC,
        window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] | None = None,
        max_workers: int = 8,
    ):
        self.source = source
        self.processor = processor
        self.sender = sender
        self.subscribers = subscribers
        self.tz = tz
        self.window = window
        self.clock = clock or (lambda: datetime.now(UTC))
        self.max_workers = max_workers

    def register(self, scheduler: BaseScheduler, schedule: ScheduleConfig) -> None:
        """Register the digest as a daily cron job on ``scheduler``."""
        trigger = CronTrigger(
            hour=schedule.hour, minute=schedule.minute, timezone=schedule.timezone
        )
        scheduler.add_job(
            self.run,
            trigger=trigger,
            id=DIGEST_JOB_ID,
            name=f"Daily {self.source.category} digest",
            replace_existing=True,
            misfire_grace_time=3600,
            coalesce=True,
        )

    def run(self) -> DigestReport:
        """Fetch, render and deliver one digest.

        A fetch failure is logged and ends the run without contacting any
        subscriber.
        """
        logger = create_execution_logger("digest")
        logger.log_execution_start(category=self.source.category)
        report = DigestReport(category=self.source.category)

        result = self.processor.fetch(self.source)
        if not result.ok:
            logger.error(
                f"Failed to send daily digest: {result.error}",
                category=self.source.category,
                feed_url=self.source.url,
            )
            logger.log_execution_end(success=False, metrics=vars(report))
            return report
        report.fetched = True

        grouped = filter_and_group(result.items, self.clock(), self.window, self.tz)
        report.items = sum(len(items) for items in grouped.values())
        reply = formatting.render(
            formatting.digest_title(self.source.category),
            grouped,
            formatting.NO_DIGEST_RESULTS_TEXT,
        )

        recipients = self.subscribers.snapshot()
        report.recipients = len(recipients)
        if recipients:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(recipients)),
                thread_name_prefix="digest-send",
            ) as executor:
                futures = {
                    chat_id: executor.submit(self.sender.deliver, chat_id, reply)
                    for chat_id in recipients
                }
            for chat_id, future in futures.items():
                try:
                    report.outcomes[chat_id] = future.result()
                except Exception:
                    logger.exception("Digest delivery crashed", chat_id=chat_id)

        delivered = sum(
            1 for outcomes in report.outcomes.values() if all(o.ok for o in outcomes)
        )
        logger.log_execution_end(
            success=True,
            metrics={
                "items": report.items,
                "recipients": report.recipients,
                "delivered": delivered,
            },
        )
        return report
