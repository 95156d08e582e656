"""Service recording completed activities and the daily streak."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol

from quiz_engine.constants.quiz_constants import MAX_RECENT_ACTIVITIES, STREAK_POINTS_PER_DAY
from quiz_engine.utils.clock import utc_now


class ProgressReporter(Protocol):
    """Collaborator notified after a confirmed submission."""

    def add_activity(self, activity_type: str, description: str, points: int = 0) -> None: ...

    def update_streak(self, activity_type: str) -> None: ...


@dataclass(slots=True)
class ActivityRecord:
    activity_type: str
    description: str
    points: int
    recorded_at: datetime


@dataclass(slots=True)
class StreakDay:
    day: date
    activity_types: list[str] = field(default_factory=list)

    @property
    def activity_count(self) -> int:
        return len(self.activity_types)


class ProgressTracker:
    """In-memory activity feed and streak bookkeeping."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._recent: list[ActivityRecord] = []
        self._history: dict[date, StreakDay] = {}
        self._longest_streak: int = 0

    def add_activity(self, activity_type: str, description: str, points: int = 0) -> None:
        record = ActivityRecord(
            activity_type=activity_type,
            description=description,
            points=points,
            recorded_at=self._clock(),
        )
        self._recent = [record, *self._recent][:MAX_RECENT_ACTIVITIES]

    def update_streak(self, activity_type: str) -> None:
        today = self._clock().date()
        entry = self._history.setdefault(today, StreakDay(day=today))
        if activity_type not in entry.activity_types:
            entry.activity_types.append(activity_type)

        current = self.get_current_streak()
        self._longest_streak = max(self._longest_streak, self._compute_longest_streak())
        self.add_activity(
            "streak",
            f"Maintained {current}-day streak with {activity_type}",
            current * STREAK_POINTS_PER_DAY,
        )

    def get_recent_activity(self) -> list[ActivityRecord]:
        return list(self._recent)

    def get_current_streak(self) -> int:
        """Consecutive active days ending today (or yesterday, if today is still open)."""
        day = self._clock().date()
        if day not in self._history:
            day -= timedelta(days=1)
        streak = 0
        while day in self._history:
            streak += 1
            day -= timedelta(days=1)
        return streak

    def get_longest_streak(self) -> int:
        return self._longest_streak

    def get_last_activity_date(self) -> date | None:
        return max(self._history) if self._history else None

    def _compute_longest_streak(self) -> int:
        longest = 0
        run = 0
        previous: date | None = None
        for day in sorted(self._history):
            run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
            longest = max(longest, run)
            previous = day
        return longest
