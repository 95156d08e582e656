"""Network configuration constants for the quiz engine."""

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 8000
DEFAULT_RESULTS_BASE_URL: str = "http://127.0.0.1:3000"
RESULTS_SUBMIT_PATH: str = "/api/quiz/submit"
RESULTS_REQUEST_TIMEOUT_SECONDS: float = 15.0
