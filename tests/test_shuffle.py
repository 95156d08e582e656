import random

import pytest

from conftest import make_questions
from quiz_engine.core.models import Question, ShuffledQuestion
from quiz_engine.core.shuffle import (
    generate_seed,
    is_valid_seed,
    repair_correct_positions,
    shuffle_options,
    shuffle_questions,
)


def _assert_adjacent_positions_differ(shuffled):
    for previous, current in zip(shuffled, shuffled[1:]):
        if len(current.options) > 1:
            assert previous.correct_answer != current.correct_answer


def test_same_seed_gives_identical_output():
    questions = make_questions(12)

    first = shuffle_questions(questions, "seed-42")
    second = shuffle_questions(questions, "seed-42")

    assert first == second


def test_different_seeds_change_the_order():
    questions = make_questions(12)

    orders = {tuple(q.id for q in shuffle_questions(questions, f"seed-{n}")) for n in range(5)}

    assert len(orders) > 1


def test_correct_option_follows_its_text():
    questions = make_questions(10)
    by_id = {q.id: q for q in questions}

    for shuffled in shuffle_questions(questions, "trace-text"):
        original = by_id[shuffled.id]
        assert 0 <= shuffled.correct_answer < len(shuffled.options)
        assert shuffled.options[shuffled.correct_answer] == original.options[original.correct_answer]
        assert sorted(shuffled.options) == sorted(original.options)


@pytest.mark.parametrize("seed", ["a", "b", "exam-2026", "1700000000000-abc"])
def test_repair_pass_breaks_repeated_positions(seed):
    # Every question has the same correct index, so repairs are needed.
    questions = [
        Question(id=f"q{i}", text=f"Q{i}", options=("w", "x", "y", "z"), correct_answer=0)
        for i in range(20)
    ]

    _assert_adjacent_positions_differ(shuffle_questions(questions, seed))


def test_secure_repair_keeps_invariants():
    questions = make_questions(15)

    shuffled = shuffle_questions(questions, "secure", secure_repair=True)

    _assert_adjacent_positions_differ(shuffled)
    assert {q.id for q in shuffled} == {q.id for q in questions}


def test_single_option_question_is_left_alone():
    first = ShuffledQuestion(id="a", text="A", options=("only",), correct_answer=0)
    second = ShuffledQuestion(id="b", text="B", options=("only",), correct_answer=0)

    repaired = repair_correct_positions([first, second], random.Random(1))

    assert repaired == [first, second]


def test_truncates_to_requested_count_without_padding():
    questions = make_questions(8)

    assert len(shuffle_questions(questions, "s", total_questions=5)) == 5
    assert len(shuffle_questions(questions, "s", total_questions=20)) == 8


def test_shuffled_question_maps_back_to_original():
    question = make_questions(1)[0]

    shuffled = shuffle_options(question, "sub-seed")

    assert shuffled.to_original() == question
    for index, option in enumerate(shuffled.options):
        assert question.options[shuffled.original_option_index(index)] == option


def test_repaired_questions_still_map_back_to_original():
    questions = [
        Question(id=f"q{i}", text=f"Q{i}", options=("w", "x", "y"), correct_answer=1)
        for i in range(6)
    ]

    for shuffled in shuffle_questions(questions, "map-back"):
        assert shuffled.to_original() == questions[int(shuffled.id[1:])]


def test_rejects_empty_seed():
    with pytest.raises(ValueError):
        shuffle_questions(make_questions(2), "")


def test_generated_seeds_are_valid_and_personalised():
    seed = generate_seed("user-7")

    assert is_valid_seed(seed)
    assert seed.endswith("-user-7")
    assert generate_seed() != generate_seed()
    assert not is_valid_seed("")
    assert not is_valid_seed(None)
