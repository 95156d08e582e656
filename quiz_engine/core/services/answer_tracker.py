"""Service recording answers and computing the running score."""

from __future__ import annotations

from datetime import datetime

from quiz_engine.constants.quiz_constants import POINTS_PER_CORRECT_ANSWER
from quiz_engine.core.models import Answer, ShuffledQuestion
from quiz_engine.core.ordered_set import OrderedIdSet


class AnswerTracker:
    """Keeps one answer per question (last write wins) plus review bookkeeping."""

    def __init__(self) -> None:
        self._answers: dict[str, Answer] = {}
        self._wrong_answers = OrderedIdSet()
        self._time_spent_ms: dict[str, int] = {}
        self._score: int = 0
        self._is_submitting: bool = False

    def reset(self) -> None:
        self._answers = {}
        self._wrong_answers = OrderedIdSet()
        self._time_spent_ms = {}
        self._score = 0
        self._is_submitting = False

    def is_submitting(self) -> bool:
        return self._is_submitting

    def record_answer(
        self,
        question: ShuffledQuestion,
        selected_option: int,
        time_spent_ms: int,
        timestamp: datetime,
    ) -> Answer | None:
        """Record an answer, replacing any earlier one for the same question."""
        if self._is_submitting:
            return None
        if not 0 <= selected_option < len(question.options):
            return None

        self._is_submitting = True
        try:
            answer = Answer(
                question_id=question.id,
                selected_option=selected_option,
                time_spent_ms=max(0, int(time_spent_ms)),
                is_correct=selected_option == question.correct_answer,
                timestamp=timestamp,
            )
            # Re-insert so the latest answer sorts last.
            self._answers.pop(question.id, None)
            self._answers[question.id] = answer

            if answer.is_correct:
                self._wrong_answers.discard(question.id)
            else:
                self._wrong_answers.add(question.id)

            self._time_spent_ms[question.id] = answer.time_spent_ms
            self._score = self._compute_score()
            return answer
        finally:
            self._is_submitting = False

    def record_question_time(self, question_id: str, time_spent_ms: int) -> None:
        self._time_spent_ms[question_id] = max(0, int(time_spent_ms))

    def get_answers(self) -> list[Answer]:
        return list(self._answers.values())

    def get_answer(self, question_id: str) -> Answer | None:
        return self._answers.get(question_id)

    def get_answer_count(self) -> int:
        return len(self._answers)

    def get_correct_count(self) -> int:
        return sum(1 for a in self._answers.values() if a.is_correct)

    def get_answer_map(self) -> dict[str, int]:
        """Return ``question_id -> selected_option`` as sent to the results endpoint."""
        return {qid: answer.selected_option for qid, answer in self._answers.items()}

    def get_wrong_answers(self) -> OrderedIdSet:
        return self._wrong_answers.copy()

    def get_time_spent(self) -> dict[str, int]:
        return dict(self._time_spent_ms)

    def get_score(self) -> int:
        return self._score

    def apply_authoritative_score(self, score: int) -> None:
        """Replace the local score with the one computed by the results endpoint."""
        self._score = score

    def restore(
        self,
        answers: list[Answer],
        wrong_answers: OrderedIdSet,
        time_spent_ms: dict[str, int],
        score: int,
    ) -> None:
        self._answers = {answer.question_id: answer for answer in answers}
        self._wrong_answers = wrong_answers.copy()
        self._time_spent_ms = dict(time_spent_ms)
        self._score = score
        self._is_submitting = False

    def _compute_score(self) -> int:
        return POINTS_PER_CORRECT_ANSWER * self.get_correct_count()
