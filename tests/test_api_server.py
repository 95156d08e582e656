import json
import time

from fastapi.testclient import TestClient
import pytest

from quiz_engine.core.models import QuizConfig, QuizMode
from quiz_engine.core.quiz_engine import QuizEngine
from quiz_engine.core.state_store import MemoryStore
from quiz_engine.server.api_server import create_api_app


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(engine, questions, config, store):
    engine.initialize_quiz(questions, config)
    app = create_api_app(engine, store=store, store_key="api", run_timer=False)
    with TestClient(app) as test_client:
        yield test_client


def test_start_answer_and_finish(client, engine, store):
    assert client.get("/state").json()["phase"] == "ready"
    assert client.post("/start").json()["phase"] == "active"

    question = client.get("/question").json()
    assert question["index"] == 0
    assert "correct_answer" not in question
    assert question["question_html"].startswith("<p>")

    current = engine.get_current_question()
    response = client.post(
        "/answer",
        json={"question_id": current.id, "selected_option": current.correct_answer},
    )
    assert response.status_code == 201
    assert client.get("/question").json()["selected_option"] == current.correct_answer

    finished = client.post("/finish")
    assert finished.status_code == 200
    body = finished.json()
    assert body["outcome"] == "succeeded"
    assert body["has_submitted_results"] is True
    assert body["results"]["score"] == 100

    revealed = client.get("/question").json()
    assert revealed["correct_answer"] == current.correct_answer
    assert "explanation_html" in revealed

    assert client.post("/finish").status_code == 409
    assert store.get("api") is not None


def test_rejected_operations_return_conflict(client):
    assert client.post("/answer", json={"question_id": "q1", "selected_option": 0}).status_code == 409
    assert client.post("/pause").status_code == 409
    assert client.post("/previous").status_code == 409

    client.post("/start")
    assert client.post("/start").status_code == 409


def test_go_to_out_of_range_is_unprocessable(client):
    client.post("/start")

    assert client.post("/goto", json={"index": 5}).status_code == 422
    assert client.post("/goto", json={"index": 2}).json()["current_index"] == 2


def test_bookmarks(client, engine):
    client.post("/start")
    question_id = engine.get_current_question().id

    assert client.post(f"/bookmarks/{question_id}").json() == {"bookmarked_questions": [question_id]}
    assert client.delete(f"/bookmarks/{question_id}").json() == {"bookmarked_questions": []}
    assert client.post("/bookmarks/unknown").status_code == 409


def test_state_is_persisted_on_shutdown(engine, questions, config, store):
    engine.initialize_quiz(questions, config)
    app = create_api_app(engine, store=store, store_key="api", run_timer=False)

    with TestClient(app):
        pass

    restored = QuizEngine()
    assert restored.load_progress(store, "api")
    assert restored.get_session().id == "session-1"


def _wait_for_snapshot(store, key, predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        raw = store.get(key)
        if raw is not None and predicate(json.loads(raw)):
            return json.loads(raw)
        time.sleep(0.01)
    raise AssertionError("snapshot condition not reached")


def _timed_app(engine, questions, store, seconds):
    engine.initialize_quiz(
        questions,
        QuizConfig(mode=QuizMode.EXAM, time_limit=seconds, total_questions=3, seed="timed"),
    )
    return create_api_app(engine, store=store, store_key="api", tick_interval=0.01)


def test_timer_driven_finish_is_persisted(engine, questions, store, submitter):
    with TestClient(_timed_app(engine, questions, store, 2)) as client:
        client.post("/start")

        snapshot = _wait_for_snapshot(store, "api", lambda data: data["has_submitted_results"])

        assert snapshot["time_remaining"] == 0
        assert snapshot["results"]["score"] == 100
        assert len(submitter.calls) == 1


def test_countdown_is_saved_while_running(engine, questions, store):
    with TestClient(_timed_app(engine, questions, store, 25)) as client:
        client.post("/start")

        snapshot = _wait_for_snapshot(store, "api", lambda data: data["time_remaining"] < 25)

        assert snapshot["time_remaining"] in (20, 10)
        assert snapshot["has_submitted_results"] is False


def test_state_reports_progress_fields(client, engine):
    client.post("/start")

    state = client.get("/state").json()

    assert state["remaining"] == 3
    assert state["is_submitting"] is False
    assert state["question_started_at"] == engine.get_question_start_time().isoformat()
