"""Service for the question cursor and the bookmark set."""

from __future__ import annotations

from datetime import datetime

from quiz_engine.core.ordered_set import OrderedIdSet


class Navigator:
    """Tracks the current question index and the per-question start stamp."""

    def __init__(self) -> None:
        self._current_index: int = 0
        self._question_count: int = 0
        self._bookmarks = OrderedIdSet()
        self._question_started_at: datetime | None = None

    def reset(self, question_count: int) -> None:
        self._current_index = 0
        self._question_count = question_count
        self._bookmarks = OrderedIdSet()
        self._question_started_at = None

    def set_question_count(self, question_count: int) -> None:
        """Update the count after a reshuffle, moving the cursor back to the first question."""
        self._question_count = question_count
        self._current_index = 0

    def get_current_index(self) -> int:
        return self._current_index

    def is_at_last_question(self) -> bool:
        return self._current_index >= self._question_count - 1

    def stamp_question_start(self, now: datetime) -> None:
        self._question_started_at = now

    def get_question_start_time(self) -> datetime | None:
        return self._question_started_at

    def elapsed_ms(self, now: datetime) -> int:
        if self._question_started_at is None:
            return 0
        return max(0, int((now - self._question_started_at).total_seconds() * 1000))

    def move_next(self, now: datetime) -> bool:
        if self._current_index >= self._question_count - 1:
            return False
        self._current_index += 1
        self._question_started_at = now
        return True

    def move_previous(self, now: datetime) -> bool:
        if self._current_index <= 0:
            return False
        self._current_index -= 1
        self._question_started_at = now
        return True

    def go_to(self, index: int, now: datetime) -> bool:
        if not 0 <= index < self._question_count:
            return False
        self._current_index = index
        self._question_started_at = now
        return True

    def bookmark(self, question_id: str) -> bool:
        return self._bookmarks.add(question_id)

    def unbookmark(self, question_id: str) -> bool:
        return self._bookmarks.discard(question_id)

    def get_bookmarks(self) -> OrderedIdSet:
        return self._bookmarks.copy()

    def restore(self, current_index: int, question_count: int, bookmarks: OrderedIdSet) -> None:
        self._question_count = question_count
        self._current_index = current_index if 0 <= current_index < question_count else 0
        self._bookmarks = bookmarks.copy()
        self._question_started_at = None
