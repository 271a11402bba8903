"""Terminal UI strings used across the command-line front end."""

PROMPT: str = "> "
ATTEMPT_HELP: str = (
    "Answer with a letter (A-F) or number (1-6). "
    "n = next, p = previous, g <number> = go to question, s = submit, q = leave and resume later"
)
ATTEMPT_SAVED_MESSAGE: str = "Progress saved. Run 'quizshelf resume' to continue."
NO_SAVED_ATTEMPT_MESSAGE: str = "There is no attempt to resume."
LAST_QUESTION_MESSAGE: str = "This is the last question. Type 's' to submit."
FIRST_QUESTION_MESSAGE: str = "This is the first question."
UNANSWERED_TEMPLATE: str = "Question {number} is not answered. Submit anyway?"
DUPLICATE_TEMPLATE: str = '"{title}" already exists in your library as {quiz_id}. Use --force to import it again.'
EMPTY_LIBRARY_MESSAGE: str = "Your library is empty. Import a quiz first."
QUIZ_NOT_FOUND_TEMPLATE: str = "Quiz {quiz_id} not found."
UNDO_PROMPT_TEMPLATE: str = "Deleted {count} {noun}. Type 'u' within {seconds:g} seconds to undo"
UNDO_DONE_MESSAGE: str = "Restored."
UNDO_EXPIRED_MESSAGE: str = "Too late, the undo window has closed."
CLEAR_CONFIRM_MESSAGE: str = "This will permanently delete all quizzes and results. Continue?"
NOT_ANSWERED_LABEL: str = "Not answered"
