"""Application entry point for the QuizShelf command-line tool."""

from __future__ import annotations

import sys

from quiz_shelf.ui.terminal_app import main

if __name__ == "__main__":
    sys.exit(main())
