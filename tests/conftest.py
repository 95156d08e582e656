from datetime import datetime, timedelta, timezone

import pytest

from quiz_engine.core.models import Question, QuizConfig, QuizMode, SubmissionResult
from quiz_engine.core.quiz_engine import QuizEngine


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds=0.0):
        self.now += timedelta(seconds=seconds)


class FakeSubmitter:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result or SubmissionResult(
            score=100,
            correct_answers=3,
            total_questions=3,
            points_earned=50,
            xp_earned=75,
            passed=True,
        )
        self.error = error
        self.gate = None

    async def submit(self, session_id, answers, time_taken_seconds):
        self.calls.append((session_id, dict(answers), time_taken_seconds))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeProgress:
    def __init__(self, fail=False):
        self.activities = []
        self.streaks = []
        self.fail = fail

    def add_activity(self, activity_type, description, points=0):
        if self.fail:
            raise RuntimeError("progress service down")
        self.activities.append((activity_type, description, points))

    def update_streak(self, activity_type):
        self.streaks.append(activity_type)


def make_questions(count, option_count=4):
    return [
        Question(
            id=f"q{i}",
            text=f"Question {i}?",
            options=tuple(f"q{i}-option-{j}" for j in range(option_count)),
            correct_answer=i % option_count,
            explanation=f"Because of reason {i}.",
            image_url=f"https://img.example/q{i}.png" if i % 2 else None,
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture
def progress():
    return FakeProgress()


@pytest.fixture
def engine(submitter, progress, clock):
    return QuizEngine(submitter=submitter, progress=progress, clock=clock)


@pytest.fixture
def questions():
    return make_questions(3)


@pytest.fixture
def config():
    return QuizConfig(
        mode=QuizMode.PRACTICE,
        time_limit=None,
        specialty_id="perio",
        specialty_name="Periodontics",
        total_questions=3,
        seed="fixed-seed",
        session_id="session-1",
    )


@pytest.fixture
def started_engine(engine, questions, config):
    engine.initialize_quiz(questions, config)
    engine.start_quiz()
    return engine


def answer_all_correctly(quiz):
    for question in quiz.get_shuffled_questions():
        quiz.submit_answer(question.id, question.correct_answer)

