"""
Review Service - applies scheduler transitions to stored records.
"""

import logging
from typing import Dict, List, Optional

from ..models import WordRecord, now_ms
from .repository import WordRepository
from .scheduler import ReviewOutcome, SpacedRepetitionScheduler

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Store-bound side of spaced repetition.

    Usage:
        reviews = ReviewService(repo)
        for record in await reviews.due_words():
            await reviews.review(record.key, remembered=True)
    """

    def __init__(self, store: WordRepository,
                 scheduler: Optional[SpacedRepetitionScheduler] = None):
        self.store = store
        self.scheduler = scheduler or store.scheduler

    async def review(self, key: str, remembered: bool,
                     now: Optional[int] = None) -> Optional[ReviewOutcome]:
        """
        Record one review of a stored word.

        The read-modify-write runs under the key's transaction, so two
        reviews of the same word never interleave.

        Returns:
            The applied outcome, or None if the word is not stored
        """
        now = now_ms() if now is None else now
        async with self.store.transaction(key) as record:
            if record is None:
                return None
            outcome = self.scheduler.review(record.level or 0, remembered, now)
            for name, value in outcome.as_updates(record.review_count or 0).items():
                setattr(record, name, value)

        logger.debug(
            "Reviewed %r (%s): level %d, next at %d",
            record.key, "remembered" if remembered else "forgotten",
            outcome.level, outcome.next_review_at,
        )
        return outcome

    async def due_words(self, now: Optional[int] = None) -> List[WordRecord]:
        """Words due for review, earliest first."""
        now = now_ms() if now is None else now
        due = self.scheduler.due_words(await self.store.get_all(), now)
        return sorted(due, key=lambda r: r.next_review_at)

    async def next_due_timestamp(self, now: Optional[int] = None) -> Optional[int]:
        now = now_ms() if now is None else now
        return self.scheduler.next_due_timestamp(await self.store.get_all(), now)

    async def stats(self, now: Optional[int] = None) -> Dict[str, int]:
        now = now_ms() if now is None else now
        return self.scheduler.stats(await self.store.get_all(), now)
