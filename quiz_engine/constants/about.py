"""Static metadata describing the quiz engine."""

APP_NAME = "QuizEngine"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizEngine drives a single timed or untimed assessment session: seeded question "
    "and option shuffling, answer tracking, a countdown timer, bookmarks and an "
    "idempotent finish/submit protocol against a results endpoint."
)
