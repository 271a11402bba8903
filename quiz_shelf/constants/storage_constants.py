"""Storage keys and limits shared by the repository and session layers."""

from pathlib import Path

QUIZZES_KEY: str = "quiz-engine-data-v2"
RESULTS_KEY_PREFIX: str = "quiz-engine-results-v2"
RECENT_KEY: str = "quiz-recent-v2"
SESSION_PROGRESS_KEY: str = "quiz-progress"

SCHEMA_VERSION: int = 2
RECENT_LIMIT: int = 20
RESULTS_HISTORY_LIMIT: int = 20
QUIZ_ID_SLUG_LENGTH: int = 20

DEFAULT_QUOTA_BYTES: int = 5 * 1024 * 1024
DATA_DIR_ENV_VAR: str = "QUIZSHELF_DATA_DIR"
DEFAULT_DATA_DIR: Path = Path.home() / ".quizshelf"
