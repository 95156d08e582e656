"""Client side of the results endpoint that scores a finished attempt."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from quiz_engine.constants.network_constants import (
    DEFAULT_RESULTS_BASE_URL,
    RESULTS_REQUEST_TIMEOUT_SECONDS,
    RESULTS_SUBMIT_PATH,
)
from quiz_engine.constants.quiz_constants import ALREADY_SUBMITTED_MARKER
from quiz_engine.core.models import QuestionResult, SubmissionResult

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Raised when the results endpoint rejects or cannot receive a submission."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def is_already_submitted(self) -> bool:
        """True for the HTTP-level conflict telling us an earlier attempt went through."""
        if self.status_code is None:
            return False
        text = self.detail if self.detail is not None else str(self)
        return ALREADY_SUBMITTED_MARKER in text.lower()


class ResultsSubmitter(Protocol):
    async def submit(
        self,
        session_id: str,
        answers: dict[str, int],
        time_taken_seconds: int,
    ) -> SubmissionResult: ...


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitQuizRequest(_CamelModel):
    """Payload schema posted to the results endpoint."""

    session_id: str
    answers: dict[str, int]
    time_taken: int


class QuestionResultPayload(_CamelModel):
    question_id: str
    user_answer: int
    correct_answer: int
    is_correct: bool
    explanation: str | None = None


class SubmitQuizResponse(_CamelModel):
    """Response schema returned by the results endpoint."""

    session_id: str | None = None
    score: int
    correct_answers: int
    total_questions: int
    points_earned: int = 0
    xp_earned: int = 0
    passed: bool | None = None
    time_taken: int | None = None
    results: list[QuestionResultPayload] = []

    def to_result(self) -> SubmissionResult:
        return SubmissionResult(
            score=self.score,
            correct_answers=self.correct_answers,
            total_questions=self.total_questions,
            points_earned=self.points_earned,
            xp_earned=self.xp_earned,
            passed=self.passed,
            time_taken=self.time_taken,
            results=tuple(
                QuestionResult(
                    question_id=item.question_id,
                    user_answer=item.user_answer,
                    correct_answer=item.correct_answer,
                    is_correct=item.is_correct,
                    explanation=item.explanation,
                )
                for item in self.results
            ),
        )


class HttpResultsSubmitter:
    """Posts finished attempts to the results endpoint with httpx."""

    def __init__(
        self,
        base_url: str = DEFAULT_RESULTS_BASE_URL,
        path: str = RESULTS_SUBMIT_PATH,
        timeout: float = RESULTS_REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._timeout = timeout
        self._client = client
        self._headers = dict(headers or {})

    async def submit(
        self,
        session_id: str,
        answers: dict[str, int],
        time_taken_seconds: int,
    ) -> SubmissionResult:
        payload = SubmitQuizRequest(
            session_id=session_id,
            answers=answers,
            time_taken=time_taken_seconds,
        ).model_dump(by_alias=True)

        if self._client is not None:
            response = await self._post(self._client, payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await self._post(client, payload)

        if response.is_error:
            detail = _error_detail(response)
            raise SubmissionError(
                f"Results endpoint returned {response.status_code}: {detail}",
                status_code=response.status_code,
                detail=detail,
            )

        try:
            parsed = SubmitQuizResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SubmissionError("Results endpoint returned a malformed response.") from exc
        return parsed.to_result()

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, object]) -> httpx.Response:
        url = f"{self._base_url}{self._path}"
        try:
            return await client.post(url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("Results request to %s failed: %s", url, exc)
            raise SubmissionError(f"Could not reach the results endpoint: {exc}") from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])
    return response.text or response.reason_phrase
