"""Service holding the validated source questions of a session."""

from __future__ import annotations

from quiz_engine.core.models import Question


class QuestionBank:
    """Validates and stores the questions supplied by the content provider."""

    def __init__(self) -> None:
        self._questions: list[Question] = []

    def load_questions(self, questions: list[Question]) -> None:
        """Replace the bank with a new list of questions."""
        if not questions:
            raise ValueError("Quiz must contain at least one question.")

        prepared = [self._prepare_question(q, index) for index, q in enumerate(questions)]
        seen: set[str] = set()
        for question in prepared:
            if question.id in seen:
                raise ValueError(f"Duplicate question id {question.id!r}.")
            seen.add(question.id)
        self._questions = prepared

    def get_questions(self) -> list[Question]:
        """Return a copy of all loaded questions."""
        return list(self._questions)

    def has_questions(self) -> bool:
        return bool(self._questions)

    def clear(self) -> None:
        self._questions = []

    def _prepare_question(self, question: Question, index: int) -> Question:
        """Validate and normalize a question before storage."""
        options = self._validate_options(question.options)
        if not 0 <= question.correct_answer < len(options):
            raise ValueError(
                f"Correct answer index must be between 0 and {len(options) - 1}."
            )

        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")

        question_id = str(question.id).strip() or str(index)
        if (
            question_id == question.id
            and cleaned_text == question.text
            and options == question.options
        ):
            return question

        return Question(
            id=question_id,
            text=cleaned_text,
            options=options,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            difficulty=question.difficulty,
            image_url=question.image_url,
        )

    @staticmethod
    def _validate_options(options: tuple[str, ...]) -> tuple[str, ...]:
        if not options:
            raise ValueError("Each question must have at least one option.")
        cleaned = tuple(option.strip() for option in options)
        if any(not option for option in cleaned):
            raise ValueError("Option text cannot be empty.")
        return cleaned
