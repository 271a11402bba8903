"""Plain-text rendering of questions, feedback and results."""

from __future__ import annotations

from quiz_shelf.constants.quiz_constants import OPTION_LETTERS, SCORE_BAND_FAIR, SCORE_BAND_GOOD
from quiz_shelf.constants.ui_constants import NOT_ANSWERED_LABEL
from quiz_shelf.core.models import AnswerFeedback, QuizQuestion, QuizResult, RecentQuizSummary


def option_letter(index: int) -> str:
    return OPTION_LETTERS[index] if 0 <= index < len(OPTION_LETTERS) else str(index + 1)


def render_question_with_options(
    question: QuizQuestion,
    position: int,
    total: int,
    selected_index: int | None,
) -> str:
    """Render a question with lettered options; the chosen option is marked."""
    lines = [f"Question {position + 1} of {total}", "", question.question.strip(), ""]
    for idx, option in enumerate(question.options):
        marker = "*" if idx == selected_index else " "
        lines.append(f" {marker} {option_letter(idx)}. {option}")
    lines.append("")
    if selected_index is None:
        lines.append(NOT_ANSWERED_LABEL)
    else:
        lines.append(f"Selected: {option_letter(selected_index)}")
    return "\n".join(lines)


def render_feedback(feedback: AnswerFeedback) -> str:
    if feedback.is_correct:
        headline = "Correct!"
    else:
        headline = f"Incorrect. The answer was {option_letter(feedback.correct_option_index)}"
    return f"{headline}\nExplanation: {feedback.explanation}"


def score_band(percentage: int) -> str:
    if percentage >= SCORE_BAND_GOOD:
        return "good"
    if percentage >= SCORE_BAND_FAIR:
        return "fair"
    return "needs review"


def render_result_summary(result: QuizResult, title: str, subject: str) -> str:
    modes = ""
    if result.shuffle_enabled:
        modes += " • Shuffled"
    if result.study_mode:
        modes += " • Study Mode"

    lines = [
        f"{title} • {subject} • {result.total} questions{modes}",
        f"Score: {result.percentage}% ({result.score}, {score_band(result.percentage)})",
        f"Correct: {result.correct}  Incorrect: {result.total - result.correct}",
        f"Time: {_format_duration(result.time_spent_ms)}",
        "",
    ]
    for number, item in enumerate(result.results, start=1):
        status = "✓" if item.is_correct else "✗"
        if item.user_answer is None:
            yours = NOT_ANSWERED_LABEL
        else:
            yours = f"{option_letter(item.user_answer)}. {item.options[item.user_answer]}"
        correct = f"{option_letter(item.correct_answer)}. {item.options[item.correct_answer]}"
        lines.extend(
            [
                f"{status} Q{number}: {item.question}",
                f"    Your answer:    {yours}",
                f"    Correct answer: {correct}",
                f"    {item.explanation}",
            ]
        )
    return "\n".join(lines)


def render_library_row(summary: RecentQuizSummary) -> str:
    created = summary.created_at.strftime("%Y-%m-%d %H:%M")
    return f"{summary.id}  {summary.title} ({summary.subject}, {summary.question_count} questions, added {created})"


def render_history_row(result: QuizResult) -> str:
    when = result.date.strftime("%Y-%m-%d %H:%M") if result.date else "unknown date"
    flags = [name for name, on in (("shuffled", result.shuffle_enabled), ("study", result.study_mode)) if on]
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"{when}  {result.score} ({result.percentage}%) in {_format_duration(result.time_spent_ms)}{suffix}"


def _format_duration(milliseconds: int) -> str:
    minutes, seconds = divmod(milliseconds // 1000, 60)
    return f"{minutes}m {seconds:02d}s"
