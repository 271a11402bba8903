"""Quiz-related constants shared across UI and core layers."""

MIN_OPTIONS: int = 2
MAX_OPTIONS: int = 6
UNDO_WINDOW_SECONDS: float = 5.0

# Lower bounds (percent) for the result bands shown after submission.
SCORE_BAND_GOOD: int = 80
SCORE_BAND_FAIR: int = 60

OPTION_LETTERS: str = "ABCDEF"
