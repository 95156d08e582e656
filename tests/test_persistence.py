import json

import pytest

from conftest import make_questions
from quiz_engine.constants.quiz_constants import PROGRESS_STORE_KEY
from quiz_engine.core.models import QuizConfig, QuizMode, QuizPhase
from quiz_engine.core.ordered_set import OrderedIdSet
from quiz_engine.core.quiz_engine import QuizEngine
from quiz_engine.core.state_store import JsonFileStore, MemoryStore


def _play_a_little(quiz, clock):
    first, second, _ = quiz.get_shuffled_questions()
    clock.advance(7)
    quiz.submit_answer(first.id, first.correct_answer)
    quiz.next_question()
    clock.advance(3)
    quiz.submit_answer(second.id, (second.correct_answer + 1) % 4)
    quiz.bookmark_question(second.id)
    quiz.bookmark_question(first.id)
    return first, second


def test_round_trip_through_memory_store(started_engine, clock, submitter):
    first, second = _play_a_little(started_engine, clock)
    store = MemoryStore()

    assert started_engine.save_progress(store)
    restored = QuizEngine(submitter=submitter, clock=clock)
    assert restored.load_progress(store)

    assert restored.get_session() == started_engine.get_session()
    assert restored.get_shuffled_questions() == started_engine.get_shuffled_questions()
    assert restored.get_answers() == started_engine.get_answers()
    assert restored.get_score() == 10
    assert restored.get_current_index() == 1
    assert restored.get_seed() == "fixed-seed"

    bookmarks = restored.get_bookmarked_questions()
    assert isinstance(bookmarks, OrderedIdSet)
    assert bookmarks.to_list() == [second.id, first.id]
    wrong = restored.get_wrong_answers()
    assert isinstance(wrong, OrderedIdSet)
    assert wrong == {second.id}
    assert restored.get_time_spent_per_question() == {first.id: 7000, second.id: 3000}


def test_restored_session_is_paused(started_engine, clock):
    store = MemoryStore()
    started_engine.save_progress(store)

    restored = QuizEngine(clock=clock)
    restored.load_progress(store)

    assert not restored.is_active
    assert restored.phase == QuizPhase.PAUSED
    assert restored.resume_quiz()
    assert restored.is_active


def test_set_fields_are_stored_as_lists(started_engine, clock):
    _play_a_little(started_engine, clock)
    store = MemoryStore()
    started_engine.save_progress(store)

    data = json.loads(store.get(PROGRESS_STORE_KEY))

    assert isinstance(data["bookmarked_questions"], list)
    assert isinstance(data["wrong_answers"], list)
    assert data["session"]["mode"] == "practice"
    assert data["has_submitted_results"] is False


def test_round_trip_through_json_files(tmp_path, engine, clock):
    engine.initialize_quiz(
        make_questions(5),
        QuizConfig(mode=QuizMode.EXAM, time_limit=600, total_questions=4, seed="files"),
    )
    engine.start_quiz()
    engine.update_timer()
    store = JsonFileStore(tmp_path / "state")

    assert engine.save_progress(store, "attempt/1")

    restored = QuizEngine(clock=clock)
    assert restored.load_progress(JsonFileStore(tmp_path / "state"), "attempt/1")
    assert restored.get_time_remaining() == 599
    assert len(restored.get_shuffled_questions()) == 4
    assert len(restored.get_questions()) == 4
    assert list((tmp_path / "state").glob("*.json"))


def test_missing_or_corrupt_state_is_ignored(clock):
    store = MemoryStore()
    quiz = QuizEngine(clock=clock)

    assert not quiz.load_progress(store)

    store.set(PROGRESS_STORE_KEY, "{not json")
    assert not quiz.load_progress(store)

    store.set(PROGRESS_STORE_KEY, json.dumps([1, 2, 3]))
    assert not quiz.load_progress(store)

    store.set(PROGRESS_STORE_KEY, json.dumps({"version": 1, "session": {"id": "x"}}))
    assert not quiz.load_progress(store)
    assert quiz.get_session() is None


def test_save_without_session_is_skipped(engine):
    store = MemoryStore()

    assert not engine.save_progress(store)
    assert store.keys() == []


def test_reshuffle_after_restore(engine, clock):
    engine.initialize_quiz(make_questions(6), QuizConfig(total_questions=6, seed="before"))
    store = MemoryStore()
    engine.save_progress(store)

    restored = QuizEngine(clock=clock)
    restored.load_progress(store)

    assert restored.shuffle_questions("after")
    assert sorted(q.id for q in restored.get_shuffled_questions()) == [f"q{i}" for i in range(1, 7)]


@pytest.mark.asyncio
async def test_submitted_flag_survives_reload(started_engine, clock):
    await started_engine.finish_quiz_and_wait()
    store = MemoryStore()
    started_engine.save_progress(store)

    restored = QuizEngine(clock=clock)
    restored.load_progress(store)

    assert restored.has_submitted_results
    assert restored.get_results() == started_engine.get_results()
    assert restored.phase == QuizPhase.SUBMITTED
    assert not restored.resume_quiz()
