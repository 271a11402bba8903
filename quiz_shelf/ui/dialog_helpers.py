"""Helper functions for common prompt patterns in the terminal UI."""

from __future__ import annotations

from typing import Callable

InputFunc = Callable[[str], str]


def ask(input_func: InputFunc, prompt: str) -> str | None:
    """Read one line; returns None when input is closed."""
    try:
        return input_func(prompt).strip()
    except EOFError:
        return None


def confirm(input_func: InputFunc, message: str, default: bool = False) -> bool:
    """Ask a yes/no question; an empty or closed input picks ``default``."""
    suffix = " [Y/n] " if default else " [y/N] "
    reply = ask(input_func, message + suffix)
    if not reply:
        return default
    return reply.lower() in {"y", "yes"}
