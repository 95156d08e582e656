"""FastAPI server exposing one quiz engine session as JSON endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from quiz_engine.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quiz_engine.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_engine.constants.quiz_constants import (
    PROGRESS_STORE_KEY,
    TIMER_PERSIST_EVERY_SECONDS,
    TIMER_TICK_INTERVAL_SECONDS,
)
from quiz_engine.core.markdown_math_renderer import renderer
from quiz_engine.core.quiz_engine import QuizEngine
from quiz_engine.core.services.countdown_timer import CountdownTicker
from quiz_engine.core.state_store import KeyValueStore

logger = logging.getLogger(__name__)


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    question_id: str
    selected_option: int


class GoToPayload(BaseModel):
    index: int


def _get_engine_dependency(engine: QuizEngine):
    def dependency() -> QuizEngine:
        return engine

    return dependency


def _state_payload(engine: QuizEngine) -> dict[str, object]:
    session = engine.get_session()
    progress = engine.get_progress()
    results = engine.get_results()
    outcome = engine.get_last_outcome()
    question_started = engine.get_question_start_time()
    return {
        "phase": engine.phase.value,
        "session_id": session.id if session else None,
        "mode": session.mode.value if session else None,
        "specialty": session.specialty if session else None,
        "time_limit": session.time_limit if session else None,
        "end_time": session.end_time.isoformat() if session and session.end_time else None,
        "current_index": progress.current_index,
        "total_questions": progress.total,
        "answered": progress.answered,
        "remaining": progress.remaining,
        "time_remaining": progress.time_remaining,
        "question_started_at": question_started.isoformat() if question_started else None,
        "score": engine.get_score(),
        "is_active": engine.is_active,
        "is_submitting": engine.is_submitting,
        "is_finishing": engine.is_finishing,
        "has_submitted_results": engine.has_submitted_results,
        "bookmarked_questions": engine.get_bookmarked_questions().to_list(),
        "last_error": outcome.error if outcome and not outcome.succeeded else None,
        "results": None
        if results is None
        else {
            "score": results.score,
            "correct_answers": results.correct_answers,
            "total_questions": results.total_questions,
            "points_earned": results.points_earned,
            "xp_earned": results.xp_earned,
            "passed": results.passed,
        },
    }


def _question_payload(engine: QuizEngine) -> dict[str, object]:
    question = engine.get_current_question()
    if question is None:
        return {"question_id": None, "question_html": None, "options_html": []}
    answer = engine.get_answer(question.id)
    payload: dict[str, object] = {
        "question_id": question.id,
        "index": engine.get_current_index(),
        "difficulty": question.difficulty,
        "image_url": question.image_url,
        "next_image_url": engine.next_image_url(),
        "selected_option": answer.selected_option if answer else None,
        "bookmarked": question.id in engine.get_bookmarked_questions(),
        **renderer.render_question(question),
    }
    # Only reveal the key once the attempt has been submitted.
    if engine.has_submitted_results:
        payload["correct_answer"] = question.correct_answer
        payload["explanation_html"] = renderer.render_fragment(question.explanation)
    return payload


def create_api_app(
    engine: QuizEngine,
    store: KeyValueStore | None = None,
    store_key: str = PROGRESS_STORE_KEY,
    run_timer: bool = True,
    tick_interval: float = TIMER_TICK_INTERVAL_SECONDS,
) -> FastAPI:
    """Create a FastAPI application wired to the provided engine.

    Handlers are ``async`` so every mutation runs on the event loop thread,
    the same thread that drives the countdown and the submission task.
    When ``store`` is given the engine state is saved after each change,
    every few seconds of countdown, and when a timer-driven finish settles.
    """

    def persist() -> None:
        if store is not None:
            engine.save_progress(store, store_key)

    def on_tick() -> None:
        task = engine.update_timer()
        if task is not None:
            persist()
            task.add_done_callback(lambda _: persist())
            return
        remaining = engine.get_time_remaining()
        if engine.is_active and remaining is not None and remaining % TIMER_PERSIST_EVERY_SECONDS == 0:
            persist()

    ticker = CountdownTicker(on_tick, interval=tick_interval)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if run_timer:
            ticker.start()
        try:
            yield
        finally:
            await ticker.stop()
            persist()

    app = FastAPI(
        title=f"{APP_NAME} API",
        description=APP_ABOUT_TEXT,
        version=APP_VERSION,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )
    engine_dep = _get_engine_dependency(engine)

    def require(accepted: bool, detail: str) -> None:
        if not accepted:
            raise HTTPException(status_code=409, detail=detail)
        persist()

    @app.get("/state")
    async def get_state(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        return _state_payload(quiz)

    @app.get("/question")
    async def get_question(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        return _question_payload(quiz)

    @app.post("/start")
    async def start_quiz(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        require(quiz.start_quiz(), "Quiz cannot be started.")
        return _state_payload(quiz)

    @app.post("/answer", status_code=201)
    async def submit_answer(
        payload: AnswerPayload,
        quiz: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        answer = quiz.submit_answer(payload.question_id, payload.selected_option)
        if answer is None:
            raise HTTPException(status_code=409, detail="Answer was not accepted.")
        persist()
        return {
            "question_id": answer.question_id,
            "selected_option": answer.selected_option,
            "time_spent_ms": answer.time_spent_ms,
            "submitted_at": answer.timestamp.isoformat(),
        }

    @app.post("/next")
    async def next_question(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        quiz.next_question()
        persist()
        return _state_payload(quiz)

    @app.post("/skip")
    async def skip_question(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        quiz.skip_question()
        persist()
        return _state_payload(quiz)

    @app.post("/previous")
    async def previous_question(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        require(quiz.previous_question(), "Already at the first question.")
        return _state_payload(quiz)

    @app.post("/goto")
    async def go_to_question(
        payload: GoToPayload,
        quiz: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        if not 0 <= payload.index < quiz.get_progress().total:
            raise HTTPException(status_code=422, detail=f"Question index {payload.index} out of range")
        require(quiz.go_to_question(payload.index), "Navigation is not allowed now.")
        return _state_payload(quiz)

    @app.post("/bookmarks/{question_id}")
    async def bookmark_question(
        question_id: str,
        quiz: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        require(quiz.bookmark_question(question_id), "Question cannot be bookmarked.")
        return {"bookmarked_questions": quiz.get_bookmarked_questions().to_list()}

    @app.delete("/bookmarks/{question_id}")
    async def unbookmark_question(
        question_id: str,
        quiz: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        require(quiz.unbookmark_question(question_id), "Bookmarks are locked.")
        return {"bookmarked_questions": quiz.get_bookmarked_questions().to_list()}

    @app.post("/pause")
    async def pause_quiz(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        require(quiz.pause_quiz(), "Quiz is not running.")
        return _state_payload(quiz)

    @app.post("/resume")
    async def resume_quiz(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        require(quiz.resume_quiz(), "Quiz cannot be resumed.")
        return _state_payload(quiz)

    @app.post("/finish")
    async def finish_quiz(quiz: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        outcome = await quiz.finish_quiz_and_wait()
        if outcome is None:
            raise HTTPException(status_code=409, detail="Quiz is already finishing or submitted.")
        persist()
        state = _state_payload(quiz)
        state["outcome"] = outcome.status.value
        return state

    return app


def run_api_server(
    app: FastAPI,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve ``app`` with uvicorn until interrupted."""
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("Serving quiz session on http://%s:%d/", host, port)
    server.run()
