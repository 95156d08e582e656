"""Quiz-related constants shared across the engine, server and CLI."""

POINTS_PER_CORRECT_ANSWER: int = 10
DEFAULT_TOTAL_QUESTIONS: int = 20
DEFAULT_TIME_LIMIT_SECONDS: int = 30 * 60
CHALLENGE_SECONDS_PER_QUESTION: int = 45
TIMER_TICK_INTERVAL_SECONDS: float = 1.0
TIMER_PERSIST_EVERY_SECONDS: int = 10

PROGRESS_STORE_KEY: str = "quiz-engine-store"
SNAPSHOT_VERSION: int = 1
MAX_RECENT_ACTIVITIES: int = 20
QUIZ_ACTIVITY_TYPE: str = "quiz"
STREAK_POINTS_PER_DAY: int = 5
ALREADY_SUBMITTED_MARKER: str = "already submitted"
