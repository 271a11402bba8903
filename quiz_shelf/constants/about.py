"""Static metadata describing QuizShelf."""

APP_NAME = "QuizShelf"
APP_VERSION = "0.2"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizShelf keeps a personal library of multiple-choice quizzes on this machine. "
    "Import a JSON quiz, take it in order or shuffled, study with instant feedback, "
    "and look back at your last attempts."
)
