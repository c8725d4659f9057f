"""
Spaced-repetition scheduler following the Ebbinghaus forgetting curve.

Pure functions of (level, remembered, now); no store access. A failed
review resets the word to level 0, with no partial credit. That is
stricter than SM-2 style schedulers and intended.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from ..config import Config
from ..models import WordRecord

DAY_MS = 24 * 60 * 60 * 1000

LEVEL_LABELS = [
    "New",           # Level 0
    "Just learned",  # Level 1
    "Familiar",      # Level 2
    "Known",         # Level 3
    "Fluent",        # Level 4
    "Proficient",    # Level 5
    "Mastered",      # Level 6
]


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of one review transition."""
    level: int
    next_review_at: int
    reviewed_at: int

    def as_updates(self, previous_count: int) -> Dict[str, int]:
        """Field updates to merge into the stored record."""
        return {
            "level": self.level,
            "next_review_at": self.next_review_at,
            "review_count": previous_count + 1,
            "last_reviewed_at": self.reviewed_at,
        }


class SpacedRepetitionScheduler:
    """
    Level/interval state machine.

    Levels run 0..L where L is the number of finite intervals; level L is
    "mastered" and reviews at a fixed long interval. Mastered words never
    appear in due sets.
    """

    def __init__(
        self,
        interval_days: Optional[Sequence[int]] = None,
        mastered_days: Optional[int] = None,
    ):
        """
        Args:
            interval_days: Finite interval table in days (default 1,2,4,7,15,30)
            mastered_days: Interval once mastered (default 60)
        """
        days = list(interval_days if interval_days is not None else Config.REVIEW_INTERVAL_DAYS)
        if not days or any(d <= 0 for d in days):
            raise ValueError(f"Review intervals must be positive, got {days}")
        self.intervals_ms: List[int] = [d * DAY_MS for d in days]
        mastered = mastered_days if mastered_days is not None else Config.MASTERED_INTERVAL_DAYS
        if mastered <= 0:
            raise ValueError(f"Mastered interval must be positive, got {mastered}")
        self.mastered_ms: int = mastered * DAY_MS

    @property
    def max_level(self) -> int:
        """L: the mastered level."""
        return len(self.intervals_ms)

    def is_mastered(self, level: int) -> bool:
        return level >= self.max_level

    def interval(self, level: int) -> int:
        """Interval in milliseconds for a level; every level >= L is mastered."""
        if level < 0:
            raise ValueError(f"Level must be non-negative, got {level}")
        if self.is_mastered(level):
            return self.mastered_ms
        return self.intervals_ms[level]

    def next_review_at(self, level: int, now: int) -> int:
        return now + self.interval(level)

    def review(self, level: int, remembered: bool, now: int) -> ReviewOutcome:
        """
        One review transition.

        Args:
            level: Current level
            remembered: Whether the learner recalled the word
            now: Transition time (ms since epoch)

        Returns:
            New level and next review time
        """
        if remembered:
            new_level = min(level + 1, self.max_level)
        else:
            new_level = 0
        return ReviewOutcome(
            level=new_level,
            next_review_at=self.next_review_at(new_level, now),
            reviewed_at=now,
        )

    def due_words(self, records: Iterable[WordRecord], now: int) -> List[WordRecord]:
        """Records due at ``now``, mastered ones excluded."""
        return [
            r for r in records
            if r.next_review_at is not None
            and r.next_review_at <= now
            and (r.level or 0) < self.max_level
        ]

    def next_due_timestamp(self, records: Iterable[WordRecord], now: int) -> Optional[int]:
        """Earliest future review among unmastered records, or None."""
        upcoming = [
            r.next_review_at for r in records
            if r.next_review_at is not None
            and r.next_review_at > now
            and (r.level or 0) < self.max_level
        ]
        return min(upcoming) if upcoming else None

    def stats(self, records: Iterable[WordRecord], now: int) -> Dict[str, int]:
        """Totals for the history header: total, mastered, due, learning."""
        records = list(records)
        total = len(records)
        mastered = sum(1 for r in records if self.is_mastered(r.level or 0))
        due = len(self.due_words(records, now))
        return {"total": total, "mastered": mastered, "due": due, "learning": total - mastered}

    def label(self, level: int) -> str:
        if self.is_mastered(level):
            return LEVEL_LABELS[-1]
        return LEVEL_LABELS[min(level, len(LEVEL_LABELS) - 2)]
