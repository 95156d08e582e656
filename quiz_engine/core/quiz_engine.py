"""Session engine driving one quiz attempt from initialization to submission."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from functools import partial
import logging
from typing import Any
from uuid import uuid4

from quiz_engine.constants.quiz_constants import PROGRESS_STORE_KEY, SNAPSHOT_VERSION
from quiz_engine.core import state_store
from quiz_engine.core.models import (
    Answer,
    FinishSnapshot,
    Question,
    QuizConfig,
    QuizPhase,
    QuizProgress,
    QuizSession,
    ShuffledQuestion,
    SubmissionOutcome,
    SubmissionResult,
    SubmissionStatus,
)
from quiz_engine.core.ordered_set import OrderedIdSet
from quiz_engine.core.services.answer_tracker import AnswerTracker
from quiz_engine.core.services.countdown_timer import CountdownTimer
from quiz_engine.core.services.navigator import Navigator
from quiz_engine.core.services.progress_tracker import ProgressReporter
from quiz_engine.core.services.question_bank import QuestionBank
from quiz_engine.core.services.results_submitter import ResultsSubmitter
from quiz_engine.core.services.submission_coordinator import SubmissionCoordinator
from quiz_engine.core.shuffle import generate_seed, is_valid_seed, shuffle_questions
from quiz_engine.core.state_store import KeyValueStore
from quiz_engine.utils.clock import utc_now

logger = logging.getLogger(__name__)


class QuizEngine:
    """Facade over the quiz services: bank, answers, navigation, timer and submission.

    One instance owns one attempt. All mutation goes through the methods
    below and is expected to happen on a single thread (the event loop that
    also runs the countdown and the submission task). Operations that are
    not valid in the current state are rejected by returning ``False`` or
    ``None`` rather than raising.
    """

    def __init__(
        self,
        submitter: ResultsSubmitter | None = None,
        progress: ProgressReporter | None = None,
        clock: Callable[[], datetime] = utc_now,
        secure_repair: bool = False,
    ) -> None:
        self._clock = clock
        self._secure_repair = secure_repair

        # Services
        self._bank = QuestionBank()
        self._tracker = AnswerTracker()
        self._navigator = Navigator()
        self._timer = CountdownTimer()
        self._coordinator = SubmissionCoordinator(submitter, clock, progress)

        self._session: QuizSession | None = None
        self._shuffled: list[ShuffledQuestion] = []
        self._requested_total: int | None = None
        self._seed: str = ""
        self._is_active: bool = False
        self._started_at: datetime | None = None
        self._submission_task: asyncio.Task[SubmissionOutcome] | None = None

    # --- Session lifecycle ---

    def initialize_quiz(self, questions: list[Question], config: QuizConfig) -> QuizSession:
        """Validate the bank, build the working set and reset all mutable state.

        The session is left inactive; ``start_quiz`` starts the clock.
        """
        if config.total_questions <= 0:
            raise ValueError("Total questions must be a positive integer.")
        if config.time_limit is not None and (
            not isinstance(config.time_limit, int) or config.time_limit <= 0
        ):
            raise ValueError("Time limit must be a positive integer number of seconds.")

        self._bank.load_questions(questions)
        seed = config.seed if is_valid_seed(config.seed) else generate_seed()
        shuffled = shuffle_questions(
            self._bank.get_questions(),
            seed,
            total_questions=config.total_questions,
            secure_repair=self._secure_repair,
        )

        now = self._clock()
        self._session = QuizSession(
            id=config.session_id or f"quiz-{uuid4().hex[:12]}",
            mode=config.mode,
            time_limit=config.time_limit,
            specialty=config.specialty_name,
            total_questions=len(shuffled),
            start_time=now,
            specialty_id=config.specialty_id,
            quiz_id=config.quiz_id,
        )
        self._shuffled = shuffled
        self._requested_total = config.total_questions
        self._seed = seed
        self._is_active = False
        self._started_at = None
        self._submission_task = None

        self._tracker.reset()
        self._navigator.reset(len(shuffled))
        self._timer.reset(config.time_limit)
        self._coordinator.reset()

        logger.info(
            "Initialized %s session %s with %d questions (time limit: %s)",
            config.mode.value,
            self._session.id,
            len(shuffled),
            config.time_limit,
        )
        return self._session

    def start_quiz(self) -> bool:
        """Start the clock. Allowed once per initialized session."""
        if self._session is None:
            logger.debug("Start rejected: no session")
            return False
        if self._started_at is not None or self._coordinator.is_frozen():
            logger.debug("Start rejected: session %s already started", self._session.id)
            return False

        now = self._clock()
        self._is_active = True
        self._started_at = now
        self._session.start_time = now
        self._navigator.stamp_question_start(now)
        logger.info("Started session %s", self._session.id)
        return True

    def pause_quiz(self) -> bool:
        if not self._is_active or self._coordinator.is_frozen():
            return False
        self._is_active = False
        return True

    def resume_quiz(self) -> bool:
        """Resume a paused session; the paused interval is not charged to the current question."""
        if self._session is None or self._started_at is None:
            return False
        if self._is_active or self._coordinator.is_frozen():
            return False
        self._is_active = True
        self._navigator.stamp_question_start(self._clock())
        return True

    def reset_quiz(self) -> None:
        """Discard the session and return to the empty state."""
        self._bank.clear()
        self._tracker.reset()
        self._navigator.reset(0)
        self._timer.reset(None)
        self._coordinator.reset()
        self._session = None
        self._shuffled = []
        self._requested_total = None
        self._seed = ""
        self._is_active = False
        self._started_at = None
        self._submission_task = None

    def shuffle_questions(self, seed: str | None = None) -> bool:
        """Rebuild the working set with ``seed`` (a fresh one when omitted).

        Rejected once answers exist, since recorded option indices refer to
        the current option order.
        """
        if self._session is None or not self._bank.has_questions():
            return False
        if self._coordinator.is_frozen() or self._tracker.get_answer_count():
            logger.debug("Reshuffle rejected for session %s", self._session.id)
            return False

        new_seed = seed if is_valid_seed(seed) else generate_seed()
        self._shuffled = shuffle_questions(
            self._bank.get_questions(),
            new_seed,
            total_questions=self._requested_total,
            secure_repair=self._secure_repair,
        )
        self._seed = new_seed
        self._session.total_questions = len(self._shuffled)
        self._navigator.set_question_count(len(self._shuffled))
        if self._is_active:
            self._navigator.stamp_question_start(self._clock())
        return True

    # --- Answers ---

    def submit_answer(self, question_id: str, selected_option: int) -> Answer | None:
        """Record ``selected_option`` (an index into the shuffled options) for a question."""
        if self._session is None or not self._is_active or self._coordinator.is_frozen():
            logger.debug("Answer for %s rejected: session not accepting answers", question_id)
            return None
        question = self._find_question(question_id)
        if question is None or self._tracker.is_submitting():
            return None

        now = self._clock()
        return self._tracker.record_answer(
            question,
            selected_option,
            self._navigator.elapsed_ms(now),
            now,
        )

    def record_question_time(self, question_id: str, time_spent_ms: int) -> bool:
        if self._coordinator.is_frozen() or self._find_question(question_id) is None:
            return False
        self._tracker.record_question_time(question_id, time_spent_ms)
        return True

    # --- Navigation & bookmarks ---

    def next_question(self) -> bool:
        """Advance the cursor. On the last question this starts finishing instead."""
        if not self._can_navigate():
            return False
        if self._navigator.is_at_last_question():
            self.finish_quiz()
            return False
        return self._navigator.move_next(self._clock())

    def skip_question(self) -> bool:
        return self.next_question()

    def previous_question(self) -> bool:
        if not self._can_navigate():
            return False
        return self._navigator.move_previous(self._clock())

    def go_to_question(self, index: int) -> bool:
        if not self._can_navigate():
            return False
        return self._navigator.go_to(index, self._clock())

    def bookmark_question(self, question_id: str) -> bool:
        if self._coordinator.is_frozen() or self._find_question(question_id) is None:
            return False
        self._navigator.bookmark(question_id)
        return True

    def unbookmark_question(self, question_id: str) -> bool:
        if self._coordinator.is_frozen():
            return False
        self._navigator.unbookmark(question_id)
        return True

    def _can_navigate(self) -> bool:
        return bool(self._shuffled) and not self._coordinator.is_frozen()

    # --- Timer ---

    def update_timer(self) -> asyncio.Task[SubmissionOutcome] | None:
        """One countdown tick; starts finishing when the time runs out."""
        if self._timer.tick(self._is_active):
            logger.info("Time is up for session %s", self._session.id if self._session else None)
            return self.finish_quiz()
        return None

    # --- Finish & submission ---

    def finish_quiz(self) -> asyncio.Task[SubmissionOutcome] | None:
        """Begin the finish transition and schedule the results submission.

        Returns the submission task, or ``None`` when the transition is
        rejected: no session, no running event loop to submit on, a
        submission already in flight, or results already submitted.
        """
        if self._session is None:
            logger.debug("Finish rejected: no session")
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Finish rejected for session %s: no running event loop to submit on",
                self._session.id,
            )
            return None
        token = self._coordinator.begin()
        if token is None:
            return None

        self._is_active = False
        snapshot = self._build_finish_snapshot()
        logger.info(
            "Finishing session %s: %d answered, local score %d",
            snapshot.session_id,
            len(snapshot.answers),
            snapshot.local_score,
        )
        task = loop.create_task(
            self._coordinator.run(
                snapshot,
                token,
                partial(self._apply_submission_outcome, snapshot.session_id),
            ),
            name=f"submit-{snapshot.session_id}",
        )
        self._submission_task = task
        return task

    async def finish_quiz_and_wait(self) -> SubmissionOutcome | None:
        task = self.finish_quiz()
        if task is None:
            return None
        return await task

    async def wait_for_submission(self) -> SubmissionOutcome | None:
        """Await the most recent submission task, if any."""
        if self._submission_task is None:
            return None
        return await self._submission_task

    def _build_finish_snapshot(self) -> FinishSnapshot:
        assert self._session is not None
        started = self._started_at or self._session.start_time
        duration = max(0, int((self._clock() - started).total_seconds()))
        return FinishSnapshot(
            session_id=self._session.id,
            answers=self._tracker.get_answer_map(),
            time_taken_seconds=duration,
            local_score=self._tracker.get_score(),
            correct_answers=self._tracker.get_correct_count(),
            total_questions=len(self._shuffled),
        )

    def _apply_submission_outcome(self, session_id: str, outcome: SubmissionOutcome) -> None:
        if self._session is None or self._session.id != session_id:
            logger.info("Ignoring submission outcome for discarded session %s", session_id)
            return

        self._coordinator.record_outcome(outcome)
        if not outcome.succeeded:
            return

        if self._session.end_time is None:
            self._session.end_time = outcome.finished_at or self._clock()
        if outcome.status == SubmissionStatus.SUCCEEDED and outcome.result is not None:
            self._tracker.apply_authoritative_score(outcome.result.score)
            self._coordinator.notify_progress(outcome.result, self._session.specialty)

    # --- Read access ---

    def get_session(self) -> QuizSession | None:
        return self._session

    def get_seed(self) -> str:
        return self._seed

    def get_questions(self) -> list[Question]:
        return self._bank.get_questions()

    def get_shuffled_questions(self) -> list[ShuffledQuestion]:
        return list(self._shuffled)

    def get_current_index(self) -> int:
        return self._navigator.get_current_index()

    def get_current_question(self) -> ShuffledQuestion | None:
        if not self._shuffled:
            return None
        return self._shuffled[self._navigator.get_current_index()]

    def next_image_url(self) -> str | None:
        """Image of the question after the cursor, for prefetching."""
        next_index = self._navigator.get_current_index() + 1
        if next_index < len(self._shuffled):
            return self._shuffled[next_index].image_url
        return None

    def get_answers(self) -> list[Answer]:
        return self._tracker.get_answers()

    def get_answer(self, question_id: str) -> Answer | None:
        return self._tracker.get_answer(question_id)

    def get_score(self) -> int:
        return self._tracker.get_score()

    def get_time_remaining(self) -> int | None:
        return self._timer.get_time_remaining()

    def get_question_start_time(self) -> datetime | None:
        return self._navigator.get_question_start_time()

    def get_bookmarked_questions(self) -> OrderedIdSet:
        return self._navigator.get_bookmarks()

    def get_wrong_answers(self) -> OrderedIdSet:
        return self._tracker.get_wrong_answers()

    def get_time_spent_per_question(self) -> dict[str, int]:
        return self._tracker.get_time_spent()

    def get_results(self) -> SubmissionResult | None:
        return self._coordinator.get_result()

    def get_last_outcome(self) -> SubmissionOutcome | None:
        return self._coordinator.get_last_outcome()

    def get_submission_attempts(self) -> int:
        return self._coordinator.get_attempt_count()

    def get_progress(self) -> QuizProgress:
        return QuizProgress(
            answered=self._tracker.get_answer_count(),
            total=len(self._shuffled),
            bookmarked=len(self._navigator.get_bookmarks()),
            wrong=len(self._tracker.get_wrong_answers()),
            current_index=self._navigator.get_current_index(),
            time_remaining=self._timer.get_time_remaining(),
            time_spent_ms=self._tracker.get_time_spent(),
        )

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def is_submitting(self) -> bool:
        return self._tracker.is_submitting()

    @property
    def is_finishing(self) -> bool:
        return self._coordinator.is_finishing()

    @property
    def has_submitted_results(self) -> bool:
        return self._coordinator.has_submitted_results()

    @property
    def phase(self) -> QuizPhase:
        if self._session is None:
            return QuizPhase.EMPTY
        if self._coordinator.has_submitted_results():
            return QuizPhase.SUBMITTED
        if self._coordinator.is_finishing():
            return QuizPhase.FINISHING
        outcome = self._coordinator.get_last_outcome()
        if outcome is not None and outcome.status == SubmissionStatus.FAILED:
            return QuizPhase.FAILED
        if self._is_active:
            return QuizPhase.ACTIVE
        if self._started_at is None:
            return QuizPhase.READY
        return QuizPhase.PAUSED

    def _find_question(self, question_id: str) -> ShuffledQuestion | None:
        return next((q for q in self._shuffled if q.id == question_id), None)

    # --- Persistence ---

    def to_snapshot(self) -> dict[str, Any]:
        """Serializable state for resuming after a reload."""
        result = self._coordinator.get_result()
        return {
            "version": SNAPSHOT_VERSION,
            "session": state_store.session_to_dict(self._session) if self._session else None,
            "answers": [state_store.answer_to_dict(a) for a in self._tracker.get_answers()],
            "score": self._tracker.get_score(),
            "current_question_index": self._navigator.get_current_index(),
            "time_remaining": self._timer.get_time_remaining(),
            "bookmarked_questions": self._navigator.get_bookmarks().to_list(),
            "wrong_answers": self._tracker.get_wrong_answers().to_list(),
            "time_spent_per_question": self._tracker.get_time_spent(),
            "shuffled_questions": [state_store.question_to_dict(q) for q in self._shuffled],
            "seed": self._seed,
            "requested_total": self._requested_total,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "has_submitted_results": self._coordinator.has_submitted_results(),
            "results": state_store.result_to_dict(result) if result else None,
        }

    def restore_snapshot(self, data: dict[str, Any]) -> bool:
        """Load state produced by ``to_snapshot``. The session comes back paused."""
        if data.get("version") != SNAPSHOT_VERSION or not data.get("session"):
            logger.warning("Ignoring snapshot with unsupported version or no session")
            return False
        try:
            session = state_store.session_from_dict(data["session"])
            shuffled = [
                state_store.shuffled_question_from_dict(q) for q in data.get("shuffled_questions", [])
            ]
            answers = [state_store.answer_from_dict(a) for a in data.get("answers", [])]
            bookmarks = OrderedIdSet.from_sequence(data.get("bookmarked_questions"))
            wrong_answers = OrderedIdSet.from_sequence(data.get("wrong_answers"))
            time_spent = {str(k): int(v) for k, v in data.get("time_spent_per_question", {}).items()}
            started_at = data.get("started_at")
            started = datetime.fromisoformat(started_at) if started_at else None
            results = state_store.result_from_dict(data["results"]) if data.get("results") else None
            score = int(data.get("score", 0))
            current_index = int(data.get("current_question_index", 0))
            raw_remaining = data.get("time_remaining")
            time_remaining = None if raw_remaining is None else int(raw_remaining)
            raw_total = data.get("requested_total")
            requested_total = None if raw_total is None else int(raw_total)
            bank = QuestionBank()
            if shuffled:
                bank.load_questions([q.to_original() for q in shuffled])
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Could not restore quiz snapshot: %s", exc)
            return False

        self._bank = bank
        self._session = session
        self._shuffled = shuffled
        self._requested_total = requested_total
        self._seed = data.get("seed", "")
        self._is_active = False
        self._started_at = started
        self._submission_task = None
        self._tracker.restore(answers, wrong_answers, time_spent, score)
        self._navigator.restore(current_index, len(shuffled), bookmarks)
        self._timer.restore(time_remaining)
        self._coordinator.restore(bool(data.get("has_submitted_results")), results)
        logger.info("Restored session %s at question %d", session.id, self.get_current_index() + 1)
        return True

    def save_progress(self, store: KeyValueStore, key: str = PROGRESS_STORE_KEY) -> bool:
        if self._session is None:
            return False
        try:
            state_store.write_snapshot(store, key, self.to_snapshot())
        except OSError:
            logger.exception("Failed to save quiz progress under %r", key)
            return False
        return True

    def load_progress(self, store: KeyValueStore, key: str = PROGRESS_STORE_KEY) -> bool:
        try:
            data = state_store.read_snapshot(store, key)
        except OSError:
            logger.exception("Failed to read quiz progress under %r", key)
            return False
        if data is None:
            return False
        return self.restore_snapshot(data)
