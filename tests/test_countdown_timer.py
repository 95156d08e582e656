import asyncio

import pytest

from conftest import make_questions
from quiz_engine.core.models import QuizConfig, QuizMode, SubmissionStatus
from quiz_engine.core.services.countdown_timer import CountdownTicker, CountdownTimer


def _timed_config(seconds):
    return QuizConfig(mode=QuizMode.EXAM, time_limit=seconds, total_questions=3, seed="timed")


def test_untimed_session_never_counts_down(started_engine):
    assert started_engine.get_time_remaining() is None
    assert started_engine.update_timer() is None
    assert started_engine.is_active


def test_timer_only_runs_while_active(engine):
    engine.initialize_quiz(make_questions(3), _timed_config(10))

    engine.update_timer()
    assert engine.get_time_remaining() == 10

    engine.start_quiz()
    engine.update_timer()
    assert engine.get_time_remaining() == 9

    engine.pause_quiz()
    engine.update_timer()
    assert engine.get_time_remaining() == 9

    engine.resume_quiz()
    engine.update_timer()
    assert engine.get_time_remaining() == 8


def test_pause_interval_is_not_charged_to_the_question(engine, clock):
    engine.initialize_quiz(make_questions(3), _timed_config(600))
    engine.start_quiz()
    question = engine.get_current_question()

    clock.advance(3)
    engine.pause_quiz()
    clock.advance(120)
    engine.resume_quiz()
    clock.advance(5)

    assert engine.submit_answer(question.id, 0).time_spent_ms == 5000


def test_timer_tick_reports_zero_crossing_in_same_tick():
    timer = CountdownTimer()
    timer.reset(2)

    assert not timer.tick(True)
    assert timer.tick(True)
    assert timer.get_time_remaining() == 0


@pytest.mark.asyncio
async def test_expiry_finishes_exactly_once(engine, submitter):
    engine.initialize_quiz(make_questions(3), _timed_config(3))
    engine.start_quiz()

    assert engine.update_timer() is None
    assert engine.update_timer() is None
    task = engine.update_timer()

    assert task is not None
    assert engine.get_time_remaining() == 0
    assert engine.is_finishing
    assert engine.update_timer() is None
    assert engine.update_timer() is None

    outcome = await task
    assert outcome.status == SubmissionStatus.SUCCEEDED
    assert len(submitter.calls) == 1
    assert engine.update_timer() is None
    assert len(submitter.calls) == 1


@pytest.mark.asyncio
async def test_timer_expiry_racing_manual_finish(engine, submitter):
    submitter.gate = asyncio.Event()
    engine.initialize_quiz(make_questions(3), _timed_config(1))
    engine.start_quiz()

    manual = engine.finish_quiz()
    assert engine.update_timer() is None

    submitter.gate.set()
    await manual
    assert len(submitter.calls) == 1
    assert engine.has_submitted_results


@pytest.mark.asyncio
async def test_ticker_calls_back_until_stopped():
    ticks = []
    ticker = CountdownTicker(lambda: ticks.append(1), interval=0.01)

    ticker.start()
    assert ticker.is_running()
    await asyncio.sleep(0.1)
    await ticker.stop()
    count = len(ticks)
    await asyncio.sleep(0.05)

    assert count >= 1
    assert len(ticks) == count
    assert not ticker.is_running()


@pytest.mark.asyncio
async def test_ticker_survives_failing_callback():
    calls = []

    def on_tick():
        calls.append(1)
        raise RuntimeError("tick failed")

    ticker = CountdownTicker(on_tick, interval=0.01)
    ticker.start()
    await asyncio.sleep(0.08)
    await ticker.stop()

    assert len(calls) >= 2


def test_expiry_without_event_loop_does_not_raise(engine, submitter):
    engine.initialize_quiz(make_questions(3), _timed_config(1))
    engine.start_quiz()

    assert engine.update_timer() is None
    assert engine.update_timer() is None

    assert engine.get_time_remaining() == 0
    assert engine.is_active
    assert not engine.is_finishing
    assert submitter.calls == []
