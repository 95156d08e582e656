"""Domain models for the quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from quiz_engine.constants.quiz_constants import (
    CHALLENGE_SECONDS_PER_QUESTION,
    DEFAULT_TIME_LIMIT_SECONDS,
    DEFAULT_TOTAL_QUESTIONS,
)


class QuizMode(Enum):
    PRACTICE = "practice"
    CHALLENGE = "challenge"
    EXAM = "exam"


class QuizPhase(Enum):
    """Coarse lifecycle state derived from the engine flags."""

    EMPTY = "empty"
    READY = "ready"
    ACTIVE = "active"
    PAUSED = "paused"
    FINISHING = "finishing"
    SUBMITTED = "submitted"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Question:
    """Multiple-choice question as supplied by the content provider."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_answer: int
    explanation: str = ""
    difficulty: str = "medium"
    image_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", tuple(self.options))


@dataclass(slots=True, frozen=True)
class ShuffledQuestion(Question):
    """Question with permuted options; ``option_order[i]`` is the original index of ``options[i]``."""

    option_order: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        Question.__post_init__(self)
        order = tuple(self.option_order) or tuple(range(len(self.options)))
        object.__setattr__(self, "option_order", order)

    def original_option_index(self, option_index: int) -> int:
        return self.option_order[option_index]

    def to_original(self) -> Question:
        """Rebuild the question as it was before its options were permuted."""
        options = [""] * len(self.options)
        for shuffled_index, original_index in enumerate(self.option_order):
            options[original_index] = self.options[shuffled_index]
        return Question(
            id=self.id,
            text=self.text,
            options=tuple(options),
            correct_answer=self.original_option_index(self.correct_answer),
            explanation=self.explanation,
            difficulty=self.difficulty,
            image_url=self.image_url,
        )


@dataclass(slots=True, frozen=True)
class Answer:
    """One recorded answer; at most one per question in a session."""

    question_id: str
    selected_option: int
    time_spent_ms: int
    is_correct: bool
    timestamp: datetime


@dataclass(slots=True)
class QuizSession:
    """Descriptor of one attempt. ``end_time`` is set once, when the attempt is submitted."""

    id: str
    mode: QuizMode
    time_limit: int | None
    specialty: str
    total_questions: int
    start_time: datetime
    specialty_id: str | None = None
    quiz_id: str | None = None
    end_time: datetime | None = None


@dataclass(slots=True)
class QuizConfig:
    mode: QuizMode = QuizMode.PRACTICE
    time_limit: int | None = None
    specialty_id: str | None = None
    specialty_name: str = "General"
    total_questions: int = DEFAULT_TOTAL_QUESTIONS
    seed: str | None = None
    session_id: str | None = None
    quiz_id: str | None = None

    @classmethod
    def for_mode(
        cls,
        mode: QuizMode,
        total_questions: int = DEFAULT_TOTAL_QUESTIONS,
        **overrides: object,
    ) -> "QuizConfig":
        """Build a config with the default time limit of ``mode``.

        Practice runs untimed, challenge gets a per-question allowance and
        exam uses the fixed exam duration.
        """
        if mode == QuizMode.PRACTICE:
            time_limit = None
        elif mode == QuizMode.CHALLENGE:
            time_limit = total_questions * CHALLENGE_SECONDS_PER_QUESTION
        else:
            time_limit = DEFAULT_TIME_LIMIT_SECONDS
        values: dict[str, object] = {"time_limit": time_limit}
        values.update(overrides)
        return cls(mode=mode, total_questions=total_questions, **values)  # type: ignore[arg-type]


@dataclass(slots=True, frozen=True)
class QuestionResult:
    question_id: str
    user_answer: int
    correct_answer: int
    is_correct: bool
    explanation: str | None = None


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    """Authoritative scoring returned by the results endpoint."""

    score: int
    correct_answers: int
    total_questions: int
    points_earned: int
    xp_earned: int
    passed: bool | None = None
    time_taken: int | None = None
    results: tuple[QuestionResult, ...] = ()


@dataclass(slots=True, frozen=True)
class FinishSnapshot:
    """Local view of the attempt captured when finishing begins."""

    session_id: str
    answers: dict[str, int]
    time_taken_seconds: int
    local_score: int
    correct_answers: int
    total_questions: int


class SubmissionStatus(Enum):
    SUCCEEDED = "succeeded"
    ALREADY_SUBMITTED = "already_submitted"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class SubmissionOutcome:
    """State-transition message produced when a submission attempt completes."""

    status: SubmissionStatus
    result: SubmissionResult | None = None
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != SubmissionStatus.FAILED


@dataclass(slots=True)
class QuizProgress:
    answered: int
    total: int
    bookmarked: int
    wrong: int
    current_index: int
    time_remaining: int | None = None
    time_spent_ms: dict[str, int] = field(default_factory=dict)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.answered)
