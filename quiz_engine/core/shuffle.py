"""Seeded shuffling of questions and answer options.

Every permutation is driven by ``random.Random`` seeded from the session
seed, so identical ``(questions, seed)`` pairs always produce the same
working set and a session can be rebuilt after a reload.

Pipeline:
    1. Each question's options are permuted with a sub-seed derived from the
       session seed and the question id (or its index when the id is empty).
    2. The question order is permuted with the session seed and truncated to
       the requested count.
    3. A repair pass walks the final order and, where a question's correct
       index equals the previous question's, swaps the correct option with
       another one so the answer position does not repeat.

The repair draw is seed-derived by default, which keeps the whole pipeline
reproducible (exam review can rebuild exactly what the candidate saw).
Passing ``secure_repair=True`` takes the draw from ``secrets.SystemRandom``
instead, trading reproducibility for resistance to answer prediction from a
leaked seed.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import random
import secrets
import time

from quiz_engine.core.models import Question, ShuffledQuestion

logger = logging.getLogger(__name__)


def generate_seed(user_id: str | None = None) -> str:
    """Return a fresh time-based seed, optionally personalised with ``user_id``."""
    timestamp = int(time.time() * 1000)
    user_part = f"-{user_id}" if user_id else ""
    return f"{timestamp}-{secrets.token_hex(4)}{user_part}"


def is_valid_seed(seed: object) -> bool:
    return isinstance(seed, str) and len(seed) > 0


def shuffle_options(question: Question, sub_seed: str) -> ShuffledQuestion:
    """Permute the options of ``question`` and remap its correct index."""
    rng = random.Random(sub_seed)
    combined = list(zip(question.options, range(len(question.options))))
    rng.shuffle(combined)

    options = tuple(item[0] for item in combined)
    option_order = tuple(item[1] for item in combined)
    return ShuffledQuestion(
        id=question.id,
        text=question.text,
        options=options,
        correct_answer=option_order.index(question.correct_answer),
        explanation=question.explanation,
        difficulty=question.difficulty,
        image_url=question.image_url,
        option_order=option_order,
    )


def seeded_shuffle(items: Sequence, seed: str) -> list:
    """Fisher-Yates permutation of ``items`` driven by ``seed``."""
    shuffled = list(items)
    random.Random(seed).shuffle(shuffled)
    return shuffled


def repair_correct_positions(
    questions: list[ShuffledQuestion],
    rng: random.Random,
) -> list[ShuffledQuestion]:
    """Break runs where consecutive questions share a correct option index."""
    repaired: list[ShuffledQuestion] = []
    for question in questions:
        previous = repaired[-1] if repaired else None
        if (
            previous is not None
            and len(question.options) > 1
            and question.correct_answer == previous.correct_answer
        ):
            question = _swap_correct_option(question, rng)
        repaired.append(question)
    return repaired


def _swap_correct_option(question: ShuffledQuestion, rng: random.Random) -> ShuffledQuestion:
    correct = question.correct_answer
    candidates = [index for index in range(len(question.options)) if index != correct]
    target = candidates[rng.randrange(len(candidates))]

    options = list(question.options)
    order = list(question.option_order)
    options[correct], options[target] = options[target], options[correct]
    order[correct], order[target] = order[target], order[correct]
    return ShuffledQuestion(
        id=question.id,
        text=question.text,
        options=tuple(options),
        correct_answer=target,
        explanation=question.explanation,
        difficulty=question.difficulty,
        image_url=question.image_url,
        option_order=tuple(order),
    )


def shuffle_questions(
    questions: Sequence[Question],
    seed: str,
    total_questions: int | None = None,
    secure_repair: bool = False,
) -> list[ShuffledQuestion]:
    """Build the working question set for ``seed``.

    ``total_questions`` truncates the permuted list; a shorter bank is
    returned as is, without padding.
    """
    if not is_valid_seed(seed):
        raise ValueError("Seed must be a non-empty string.")

    with_options = [
        shuffle_options(question, f"{seed}{question.id or index}")
        for index, question in enumerate(questions)
    ]
    ordered = seeded_shuffle(with_options, seed)
    if total_questions is not None:
        ordered = ordered[: max(0, total_questions)]

    repair_rng: random.Random = (
        secrets.SystemRandom() if secure_repair else random.Random(f"{seed}:repair")
    )
    repaired = repair_correct_positions(ordered, repair_rng)
    logger.debug("Shuffled %d of %d questions with seed %r", len(repaired), len(questions), seed)
    return repaired
