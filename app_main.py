"""Application entry point: load a question bank and serve one quiz session."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from quiz_engine.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_RESULTS_BASE_URL,
)
from quiz_engine.constants.quiz_constants import DEFAULT_TOTAL_QUESTIONS
from quiz_engine.core.models import QuizConfig, QuizMode
from quiz_engine.core.quiz_engine import QuizEngine
from quiz_engine.core.quiz_importer import QuizImportError, load_quiz_from_file
from quiz_engine.core.services.progress_tracker import ProgressTracker
from quiz_engine.core.services.results_submitter import HttpResultsSubmitter
from quiz_engine.core.state_store import JsonFileStore
from quiz_engine.server.api_server import create_api_app, run_api_server
from quiz_engine.utils.logging_config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve a timed or untimed quiz session")
    parser.add_argument("questions", type=Path, help="Question bank in the text import format")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in QuizMode],
        default=QuizMode.PRACTICE.value,
    )
    parser.add_argument("--count", "-n", type=int, default=DEFAULT_TOTAL_QUESTIONS, help="Questions per session")
    parser.add_argument("--time-limit", type=int, help="Seconds; overrides the mode default")
    parser.add_argument("--untimed", action="store_true", help="Disable the countdown")
    parser.add_argument("--seed", help="Seed for reproducible shuffling")
    parser.add_argument("--specialty", default="General", help="Specialty name shown in results")
    parser.add_argument("--specialty-id")
    parser.add_argument("--session-id", help="Session id issued by the results service")
    parser.add_argument("--results-url", default=DEFAULT_RESULTS_BASE_URL)
    parser.add_argument("--state-dir", type=Path, help="Directory for resume-after-restart state")
    parser.add_argument("--secure-repair", action="store_true", help="Unseeded answer-position repair")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def build_config(args: argparse.Namespace) -> QuizConfig:
    config = QuizConfig.for_mode(
        QuizMode(args.mode),
        total_questions=args.count,
        specialty_name=args.specialty,
        specialty_id=args.specialty_id,
        seed=args.seed,
        session_id=args.session_id,
    )
    if args.untimed:
        config.time_limit = None
    elif args.time_limit is not None:
        config.time_limit = args.time_limit
    return config


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, prepare the session and serve the API."""
    args = build_parser().parse_args(argv)
    logger = configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    engine = QuizEngine(
        submitter=HttpResultsSubmitter(base_url=args.results_url),
        progress=ProgressTracker(),
        secure_repair=args.secure_repair,
    )
    store = JsonFileStore(args.state_dir) if args.state_dir else None

    if store is not None and engine.load_progress(store):
        logger.info("Resumed saved session %s", engine.get_session().id)
    else:
        try:
            imported = load_quiz_from_file(args.questions)
            engine.initialize_quiz(imported.questions, build_config(args))
        except (OSError, QuizImportError, ValueError) as exc:
            logger.error("Could not prepare quiz from %s: %s", args.questions, exc)
            sys.exit(1)

    app = create_api_app(engine, store=store)
    run_api_server(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
