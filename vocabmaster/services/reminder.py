"""Periodic due-word reminder."""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from .review_service import ReviewService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30 * 60

Notifier = Callable[[int, str], Any]


class ReviewReminder:
    """
    Checks the due count on a fixed period and notifies when it is positive.

    Delivery (desktop notification, badge, log line) is up to the notifier,
    which may be a plain function or a coroutine function.

    Usage:
        reminder = ReviewReminder(reviews, notifier=print)
        reminder.start()
        ...
        await reminder.stop()
    """

    def __init__(self, review_service: ReviewService, notifier: Notifier,
                 interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError(f"Reminder interval must be positive, got {interval_seconds}")
        self.review_service = review_service
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @staticmethod
    def message(count: int) -> str:
        noun = "word" if count == 1 else "words"
        return f"You have {count} {noun} due for review."

    async def check_once(self, now: Optional[int] = None) -> int:
        """Count due words and notify if any. Returns the count."""
        count = len(await self.review_service.due_words(now))
        if count > 0:
            result = self.notifier(count, self.message(count))
            if inspect.isawaitable(result):
                await result
        return count

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.check_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Review reminder check failed: %s", e)
            await asyncio.sleep(self.interval_seconds)
