"""Utilities for importing a question bank from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    ID: optional stable id (defaults to the block number)
    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...            (two to eight options, lettered A-H in order)
    CORRECT: A-H
    EXPLANATION: optional explanation shown on review
    DIFFICULTY: optional, e.g. easy | medium | hard
    IMAGE: optional image URL

Example:

    ID: perio-001
    Q: Which instrument is used to measure pocket depth?
    A: Explorer
    B: Periodontal gauge
    C: Curette
    D: Scaler
    CORRECT: B
    EXPLANATION: The periodontal gauge is graduated in millimetres.
    DIFFICULTY: easy
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from quiz_engine.core.models import Question


class QuizImportError(Exception):
    """Raised when a question bank cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    questions: list[Question]


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F", "G", "H")
_MIN_OPTIONS = 2
_FIELD_MARKERS = ("CORRECT:", "EXPLANATION:", "DIFFICULTY:", "IMAGE:", "ID:")


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_quiz_text(text)
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return ImportedQuiz(source_path=file_path, questions=questions)


def parse_quiz_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    questions: list[Question] = []
    for number, block in enumerate(blocks, start=1):
        if block:
            questions.append(_parse_block(block, number))
    return questions


def _parse_block(block: str, number: int) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    fields: dict[str, str] = {}
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        marker = next((m for m in _FIELD_MARKERS if upper.startswith(m)), None)
        if marker is not None:
            name = marker[:-1]
            fields[name] = line.split(":", 1)[1].strip()
            current_section = name if name == "EXPLANATION" else None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            fields["EXPLANATION"] = f"{fields['EXPLANATION']}\n{line}"
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = OPTION_LETTERS[: len(options)]
    if len(options) < _MIN_OPTIONS or set(options) != set(letters):
        raise QuizImportError(
            f"Each question needs at least {_MIN_OPTIONS} options lettered in order from A."
        )
    option_list = [options[letter].strip() for letter in letters]
    if any(not opt for opt in option_list):
        raise QuizImportError("Option text cannot be empty.")

    correct_letter = fields.get("CORRECT", "").upper()
    if not correct_letter:
        raise QuizImportError("CORRECT is required for every question.")
    if correct_letter not in letters:
        raise QuizImportError(f"CORRECT must be one of {', '.join(letters)}.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text cannot be empty.")

    return Question(
        id=fields.get("ID") or str(number),
        text=question_text,
        options=tuple(option_list),
        correct_answer=letters.index(correct_letter),
        explanation=fields.get("EXPLANATION", ""),
        difficulty=(fields.get("DIFFICULTY") or "medium").lower(),
        image_url=fields.get("IMAGE") or None,
    )
