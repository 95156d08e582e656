"""Persistence boundary for resuming a session after a reload.

The engine turns its state into a plain JSON-compatible snapshot and the
application shell decides where to keep it. Set-valued fields (bookmarks,
wrong answers) are written as lists in insertion order and rebuilt into
``OrderedIdSet`` on load.
"""

from __future__ import annotations

from datetime import datetime
import json
import logging
from pathlib import Path
import re
from typing import Any, Protocol

from quiz_engine.core.models import (
    Answer,
    Question,
    QuestionResult,
    QuizMode,
    QuizSession,
    ShuffledQuestion,
    SubmissionResult,
)

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]+")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dictionary-backed store, handy for tests and single-process shells."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class JsonFileStore:
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        safe = _SAFE_KEY.sub("_", key).strip("._") or "state"
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)
        logger.debug("Saved %s to %s", key, path)

    def delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)


def write_snapshot(store: KeyValueStore, key: str, snapshot: dict[str, Any]) -> None:
    store.set(key, json.dumps(snapshot, indent=2, ensure_ascii=False))


def read_snapshot(store: KeyValueStore, key: str) -> dict[str, Any] | None:
    raw = store.get(key)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored state under %r is not valid JSON; ignoring it", key)
        return None
    if not isinstance(data, dict):
        logger.warning("Stored state under %r is not an object; ignoring it", key)
        return None
    return data


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def question_to_dict(question: Question) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "difficulty": question.difficulty,
        "image_url": question.image_url,
    }
    if isinstance(question, ShuffledQuestion):
        data["option_order"] = list(question.option_order)
    return data


def shuffled_question_from_dict(data: dict[str, Any]) -> ShuffledQuestion:
    return ShuffledQuestion(
        id=str(data["id"]),
        text=data["text"],
        options=tuple(data["options"]),
        correct_answer=int(data["correct_answer"]),
        explanation=data.get("explanation", ""),
        difficulty=data.get("difficulty", "medium"),
        image_url=data.get("image_url"),
        option_order=tuple(data.get("option_order", ())),
    )


def answer_to_dict(answer: Answer) -> dict[str, Any]:
    return {
        "question_id": answer.question_id,
        "selected_option": answer.selected_option,
        "time_spent_ms": answer.time_spent_ms,
        "is_correct": answer.is_correct,
        "timestamp": answer.timestamp.isoformat(),
    }


def answer_from_dict(data: dict[str, Any]) -> Answer:
    return Answer(
        question_id=str(data["question_id"]),
        selected_option=int(data["selected_option"]),
        time_spent_ms=int(data.get("time_spent_ms", 0)),
        is_correct=bool(data["is_correct"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


def session_to_dict(session: QuizSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "quiz_id": session.quiz_id,
        "mode": session.mode.value,
        "time_limit": session.time_limit,
        "specialty": session.specialty,
        "specialty_id": session.specialty_id,
        "total_questions": session.total_questions,
        "start_time": _isoformat(session.start_time),
        "end_time": _isoformat(session.end_time),
    }


def session_from_dict(data: dict[str, Any]) -> QuizSession:
    return QuizSession(
        id=data["id"],
        mode=QuizMode(data["mode"]),
        time_limit=data.get("time_limit"),
        specialty=data.get("specialty", ""),
        total_questions=int(data["total_questions"]),
        start_time=datetime.fromisoformat(data["start_time"]),
        specialty_id=data.get("specialty_id"),
        quiz_id=data.get("quiz_id"),
        end_time=_parse_datetime(data.get("end_time")),
    )


def result_to_dict(result: SubmissionResult) -> dict[str, Any]:
    return {
        "score": result.score,
        "correct_answers": result.correct_answers,
        "total_questions": result.total_questions,
        "points_earned": result.points_earned,
        "xp_earned": result.xp_earned,
        "passed": result.passed,
        "time_taken": result.time_taken,
        "results": [
            {
                "question_id": item.question_id,
                "user_answer": item.user_answer,
                "correct_answer": item.correct_answer,
                "is_correct": item.is_correct,
                "explanation": item.explanation,
            }
            for item in result.results
        ],
    }


def result_from_dict(data: dict[str, Any]) -> SubmissionResult:
    return SubmissionResult(
        score=int(data["score"]),
        correct_answers=int(data["correct_answers"]),
        total_questions=int(data["total_questions"]),
        points_earned=int(data.get("points_earned", 0)),
        xp_earned=int(data.get("xp_earned", 0)),
        passed=data.get("passed"),
        time_taken=data.get("time_taken"),
        results=tuple(QuestionResult(**item) for item in data.get("results", [])),
    )
