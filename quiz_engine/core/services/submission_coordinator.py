"""Service guarding the finish transition and running the results submission.

States::

    Active --finish--> Finishing --+--> Submitted          (success or "already submitted")
                                   +--> Failed-Retryable  (any other failure)

``begin`` is the only way into Finishing and refuses while a submission is
in flight or after one was confirmed, so a timer expiry racing a manual
finish produces a single request. ``run`` always leaves Finishing, whatever
the submitter does, so a failed attempt can be retried. Each ``begin``
hands out a generation token and ``reset`` invalidates it, so a request
still in flight for a discarded session cannot clear the flags of the
session that replaced it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from quiz_engine.constants.quiz_constants import QUIZ_ACTIVITY_TYPE
from quiz_engine.core.models import (
    FinishSnapshot,
    SubmissionOutcome,
    SubmissionResult,
    SubmissionStatus,
)
from quiz_engine.core.services.progress_tracker import ProgressReporter
from quiz_engine.core.services.results_submitter import ResultsSubmitter, SubmissionError

logger = logging.getLogger(__name__)


class SubmissionCoordinator:
    """Owns the finishing/submitted flags and talks to the results submitter."""

    def __init__(
        self,
        submitter: ResultsSubmitter | None,
        clock: Callable[[], datetime],
        progress: ProgressReporter | None = None,
    ) -> None:
        self._submitter = submitter
        self._progress = progress
        self._clock = clock
        self._is_finishing: bool = False
        self._has_submitted_results: bool = False
        self._last_outcome: SubmissionOutcome | None = None
        self._result: SubmissionResult | None = None
        self._attempts: int = 0
        # Bumped by reset and begin; a run only touches state while its token is current.
        self._generation: int = 0

    def reset(self) -> None:
        self._generation += 1
        self._is_finishing = False
        self._has_submitted_results = False
        self._last_outcome = None
        self._result = None
        self._attempts = 0

    def restore(self, has_submitted_results: bool, result: SubmissionResult | None) -> None:
        self.reset()
        self._has_submitted_results = has_submitted_results
        self._result = result

    def is_finishing(self) -> bool:
        return self._is_finishing

    def has_submitted_results(self) -> bool:
        return self._has_submitted_results

    def is_frozen(self) -> bool:
        """True while the attempt may no longer be edited."""
        return self._is_finishing or self._has_submitted_results

    def get_last_outcome(self) -> SubmissionOutcome | None:
        return self._last_outcome

    def get_result(self) -> SubmissionResult | None:
        return self._result

    def get_attempt_count(self) -> int:
        return self._attempts

    def begin(self) -> int | None:
        """Enter Finishing and return the token for ``run``, or None when not allowed."""
        if self._is_finishing:
            logger.debug("Finish rejected: a submission is already in flight")
            return None
        if self._has_submitted_results:
            logger.debug("Finish rejected: results were already submitted")
            return None
        self._is_finishing = True
        self._attempts += 1
        self._generation += 1
        return self._generation

    async def run(
        self,
        snapshot: FinishSnapshot,
        token: int,
        dispatch: Callable[[SubmissionOutcome], None],
    ) -> SubmissionOutcome:
        """Submit ``snapshot`` and hand the resulting outcome to ``dispatch``.

        When the coordinator was reset while the request was in flight the
        outcome is returned but not dispatched, and the flags of the newer
        attempt are left alone.
        """
        try:
            outcome = await self._attempt(snapshot)
            if token == self._generation:
                dispatch(outcome)
            else:
                logger.info(
                    "Discarding %s outcome for superseded session %s",
                    outcome.status.value,
                    snapshot.session_id,
                )
            return outcome
        finally:
            if token == self._generation:
                self._is_finishing = False

    def record_outcome(self, outcome: SubmissionOutcome) -> None:
        self._last_outcome = outcome
        if outcome.status == SubmissionStatus.SUCCEEDED:
            self._result = outcome.result
        if outcome.succeeded:
            self._has_submitted_results = True

    def notify_progress(self, result: SubmissionResult, specialty: str) -> None:
        """Tell the progress collaborator about a completed quiz; failures are only logged."""
        if self._progress is None:
            return
        description = (
            f"Completed {specialty} quiz: {result.correct_answers}/{result.total_questions} correct"
        )
        try:
            self._progress.add_activity(QUIZ_ACTIVITY_TYPE, description, result.points_earned)
            self._progress.update_streak(QUIZ_ACTIVITY_TYPE)
        except Exception:
            logger.exception("Progress update after quiz submission failed")

    async def _attempt(self, snapshot: FinishSnapshot) -> SubmissionOutcome:
        if self._submitter is None:
            logger.error("No results submitter configured; session %s not submitted", snapshot.session_id)
            return SubmissionOutcome(
                status=SubmissionStatus.FAILED,
                error="No results submitter configured.",
            )

        try:
            result = await self._submitter.submit(
                snapshot.session_id,
                snapshot.answers,
                snapshot.time_taken_seconds,
            )
        except SubmissionError as exc:
            if exc.is_already_submitted:
                logger.info(
                    "Session %s was already submitted; treating as submitted", snapshot.session_id
                )
                return SubmissionOutcome(
                    status=SubmissionStatus.ALREADY_SUBMITTED,
                    error=str(exc),
                    finished_at=self._clock(),
                )
            logger.warning("Submitting session %s failed: %s", snapshot.session_id, exc)
            return SubmissionOutcome(status=SubmissionStatus.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while submitting session %s", snapshot.session_id)
            return SubmissionOutcome(status=SubmissionStatus.FAILED, error=str(exc))

        logger.info(
            "Session %s submitted: score=%s correct=%s/%s",
            snapshot.session_id,
            result.score,
            result.correct_answers,
            result.total_questions,
        )
        return SubmissionOutcome(
            status=SubmissionStatus.SUCCEEDED,
            result=result,
            finished_at=self._clock(),
        )
