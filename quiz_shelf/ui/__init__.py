"""Terminal UI components for the quiz library."""

from .dialog_helpers import ask, confirm
from .question_renderer import (
    render_feedback,
    render_history_row,
    render_library_row,
    render_question_with_options,
    render_result_summary,
)
from .terminal_app import TerminalApp, build_manager, build_parser, main

__all__ = [
    "TerminalApp",
    "ask",
    "build_manager",
    "build_parser",
    "confirm",
    "main",
    "render_feedback",
    "render_history_row",
    "render_library_row",
    "render_question_with_options",
    "render_result_summary",
]
