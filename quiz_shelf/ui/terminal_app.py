"""Command-line front end for the quiz library."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Callable, Sequence

from quiz_shelf.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from quiz_shelf.constants.quiz_constants import OPTION_LETTERS, UNDO_WINDOW_SECONDS
from quiz_shelf.constants.storage_constants import DATA_DIR_ENV_VAR, DEFAULT_DATA_DIR, DEFAULT_QUOTA_BYTES
from quiz_shelf.constants.ui_constants import (
    ATTEMPT_HELP,
    ATTEMPT_SAVED_MESSAGE,
    CLEAR_CONFIRM_MESSAGE,
    DUPLICATE_TEMPLATE,
    EMPTY_LIBRARY_MESSAGE,
    FIRST_QUESTION_MESSAGE,
    LAST_QUESTION_MESSAGE,
    NO_SAVED_ATTEMPT_MESSAGE,
    PROMPT,
    QUIZ_NOT_FOUND_TEMPLATE,
    UNANSWERED_TEMPLATE,
    UNDO_DONE_MESSAGE,
    UNDO_EXPIRED_MESSAGE,
    UNDO_PROMPT_TEMPLATE,
)
from quiz_shelf.core.errors import QuizShelfError, QuizValidationError
from quiz_shelf.core.quiz_exporter import default_library_export_name, save_export_to_file
from quiz_shelf.core.quiz_importer import load_quiz_from_file
from quiz_shelf.core.quiz_manager import QuizManager
from quiz_shelf.core.services.key_value_store import JsonDirectoryStore
from quiz_shelf.ui.dialog_helpers import InputFunc, ask, confirm
from quiz_shelf.ui.question_renderer import (
    render_feedback,
    render_history_row,
    render_library_row,
    render_question_with_options,
    render_result_summary,
)
from quiz_shelf.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def resolve_data_dir(cli_value: str | None) -> Path:
    if cli_value:
        return Path(cli_value).expanduser()
    env_value = os.environ.get(DATA_DIR_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_DATA_DIR


def build_manager(data_dir: Path) -> QuizManager:
    """Library files live in ``data_dir``; the resumable attempt in ``data_dir/session``."""
    return QuizManager(
        store=JsonDirectoryStore(data_dir / "library", quota_bytes=DEFAULT_QUOTA_BYTES),
        session_store=JsonDirectoryStore(data_dir / "session"),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quizshelf", description=APP_ABOUT_TEXT)
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--data-dir", help=f"library location (default: ${DATA_DIR_ENV_VAR} or {DEFAULT_DATA_DIR})")
    parser.add_argument("-v", "--verbose", action="store_true", help="show debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="add a quiz from a JSON file")
    import_cmd.add_argument("file", type=Path)
    import_cmd.add_argument("--force", action="store_true", help="import even if the quiz is already stored")
    import_cmd.add_argument("--library", action="store_true", help="the file is a library export or backup")

    commands.add_parser("list", help="show recently added quizzes")

    take_cmd = commands.add_parser("take", help="take a stored quiz")
    take_cmd.add_argument("quiz_id")
    take_cmd.add_argument("--shuffle", action="store_true", help="present questions in random order")
    take_cmd.add_argument("--study", action="store_true", help="show the answer right after each choice")
    take_cmd.add_argument("--seed", type=int, help="seed for a reproducible shuffle")
    take_cmd.add_argument("--results-file", type=Path, help="write the scored attempt to this file")

    resume_cmd = commands.add_parser("resume", help="continue an interrupted attempt")
    resume_cmd.add_argument("--results-file", type=Path, help="write the scored attempt to this file")

    results_cmd = commands.add_parser("results", help="show past attempts of a quiz")
    results_cmd.add_argument("quiz_id")

    delete_cmd = commands.add_parser("delete", help="delete quizzes and their results")
    delete_cmd.add_argument("quiz_ids", nargs="+")
    delete_cmd.add_argument("--undo-window", type=float, default=UNDO_WINDOW_SECONDS, help="seconds to offer undo")

    export_cmd = commands.add_parser("export", help="export quizzes for sharing or backup")
    export_cmd.add_argument("quiz_ids", nargs="*", help="quizzes to export (default: all)")
    export_cmd.add_argument("-o", "--output", type=Path, help="output file")
    export_cmd.add_argument("--backup", action="store_true", help="full backup including results")

    commands.add_parser("stats", help="show storage usage")

    clear_cmd = commands.add_parser("clear", help="delete every quiz and result")
    clear_cmd.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    return parser


class TerminalApp:
    """Runs one command against a ``QuizManager``."""

    def __init__(
        self,
        manager: QuizManager,
        input_func: InputFunc = input,
        output: Callable[[str], None] = print,
    ) -> None:
        self._manager = manager
        self._input = input_func
        self._out = output

    def run(self, args: argparse.Namespace) -> int:
        handler = getattr(self, f"_cmd_{args.command}")
        try:
            return handler(args)
        except QuizValidationError as exc:
            self._out(str(exc))
            for message in exc.errors:
                self._out(f"  - {message}")
            return 1
        except QuizShelfError as exc:
            self._out(f"Error: {exc}")
            return 1

    # --- Library commands ---

    def _cmd_import(self, args: argparse.Namespace) -> int:
        if args.library:
            outcomes = self._manager.import_library_file(args.file)
            added = sum(1 for outcome in outcomes if outcome.success)
            self._out(f"Imported {added} of {len(outcomes)} quizzes ({len(outcomes) - added} already stored).")
            return 0

        document = load_quiz_from_file(args.file).document
        duplicate = self._manager.check_duplicate(document)
        if duplicate.is_duplicate and not args.force:
            self._out(DUPLICATE_TEMPLATE.format(title=duplicate.existing_title, quiz_id=duplicate.existing_id))
            return 1

        outcome = self._manager.import_document(document, force=args.force)
        self._out(f'Imported "{document.metadata.title}" as {outcome.quiz_id}')
        return 0

    def _cmd_list(self, args: argparse.Namespace) -> int:
        summaries = self._manager.list_recent_quizzes()
        if not summaries:
            self._out(EMPTY_LIBRARY_MESSAGE)
            return 0
        for summary in summaries:
            self._out(render_library_row(summary))
        return 0

    def _cmd_results(self, args: argparse.Namespace) -> int:
        if self._manager.get_quiz(args.quiz_id) is None:
            self._out(QUIZ_NOT_FOUND_TEMPLATE.format(quiz_id=args.quiz_id))
            return 1
        history = self._manager.list_results(args.quiz_id)
        if not history:
            self._out("No attempts yet.")
        for result in reversed(history):
            self._out(render_history_row(result))
        return 0

    def _cmd_delete(self, args: argparse.Namespace) -> int:
        ticket = self._manager.delete_quizzes_with_undo(args.quiz_ids, window_seconds=args.undo_window)
        for quiz_id in ticket.failed_ids:
            self._out(QUIZ_NOT_FOUND_TEMPLATE.format(quiz_id=quiz_id))
        if ticket.envelope_id is None:
            return 1

        count = len(ticket.deleted_ids)
        noun = "quiz" if count == 1 else "quizzes"
        reply = ask(self._input, UNDO_PROMPT_TEMPLATE.format(count=count, noun=noun, seconds=args.undo_window) + ": ")
        if reply and reply.lower() in {"u", "undo"}:
            self._out(UNDO_DONE_MESSAGE if self._manager.undo(ticket.envelope_id) else UNDO_EXPIRED_MESSAGE)
        else:
            self._manager.dismiss_undo(ticket.envelope_id)
        return 0

    def _cmd_export(self, args: argparse.Namespace) -> int:
        if args.backup:
            document = self._manager.export_all()
            count = len(document.quizzes)
        else:
            quiz_ids = args.quiz_ids or [record.id for record in self._manager.list_all_quizzes()]
            document = self._manager.export_quizzes(quiz_ids)
            count = document.metadata.count
            for quiz_id in quiz_ids:
                if quiz_id not in document.quizzes:
                    self._out(QUIZ_NOT_FOUND_TEMPLATE.format(quiz_id=quiz_id))

        output = args.output or Path(default_library_export_name(count, self._manager.now()))
        path = save_export_to_file(output, document)
        self._out(f"Exported {count} {'quiz' if count == 1 else 'quizzes'} to {path}")
        return 0

    def _cmd_stats(self, args: argparse.Namespace) -> int:
        footprint = self._manager.get_storage_footprint()
        self._out(
            f"{footprint.record_count} quizzes, about {footprint.estimated_mb:.2f} MB "
            f"({footprint.estimated_bytes} bytes)"
        )
        return 0

    def _cmd_clear(self, args: argparse.Namespace) -> int:
        if not args.yes and not confirm(self._input, CLEAR_CONFIRM_MESSAGE):
            self._out("Nothing was deleted.")
            return 0
        self._manager.clear_all_data()
        self._out("All quizzes and results deleted.")
        return 0

    # --- Attempt commands ---

    def _cmd_take(self, args: argparse.Namespace) -> int:
        if args.seed is not None:
            self._manager.set_shuffle_seed(args.seed)
        record = self._manager.start_quiz(args.quiz_id, shuffle=args.shuffle, study=args.study)
        if record is None:
            self._out(QUIZ_NOT_FOUND_TEMPLATE.format(quiz_id=args.quiz_id))
            return 1
        self._out(f"{record.metadata.title} • {record.metadata.subject}")
        return self._run_attempt(args.results_file)

    def _cmd_resume(self, args: argparse.Namespace) -> int:
        saved = self._manager.get_saved_attempt()
        if saved is None:
            self._out(NO_SAVED_ATTEMPT_MESSAGE)
            return 1
        self._out(
            f'Resuming "{saved.record.metadata.title}": answered '
            f"{saved.snapshot.get_answered_count()} of {len(saved.record.questions)} questions."
        )
        if self._manager.resume_saved_attempt() is None:
            self._out("The saved attempt no longer matches the stored quiz and was discarded.")
            return 1
        return self._run_attempt(args.results_file)

    def _run_attempt(self, results_file: Path | None) -> int:
        session = self._manager.get_session()
        self._out(ATTEMPT_HELP)
        while session.is_in_progress():
            position = session.get_current_position()
            self._out("")
            self._out(
                render_question_with_options(
                    session.get_current_question(),
                    position,
                    session.get_question_count(),
                    session.get_answer_at(position),
                )
            )
            feedback = session.feedback_for(position)
            if feedback is not None:
                self._out(render_feedback(feedback))

            command = ask(self._input, PROMPT)
            if command is None or command.lower() in {"q", "quit"}:
                self._out(ATTEMPT_SAVED_MESSAGE)
                return 0
            self._handle_attempt_command(command.lower())

        return self._finish_attempt(results_file)

    def _handle_attempt_command(self, command: str) -> None:
        session = self._manager.get_session()
        position = session.get_current_position()

        if command in {"", "n", "next"}:
            if not session.next():
                self._out(LAST_QUESTION_MESSAGE)
        elif command in {"p", "prev", "previous"}:
            if not session.previous():
                self._out(FIRST_QUESTION_MESSAGE)
        elif command.startswith("g"):
            target = command[1:].strip()
            if target.isdigit() and 1 <= int(target) <= session.get_question_count():
                self._manager.navigate(int(target) - 1)
            else:
                self._out(f"Choose a question between 1 and {session.get_question_count()}.")
        elif command in {"s", "submit"}:
            self._submit()
        else:
            option_index = self._parse_option(command)
            options = session.get_current_question().options
            if option_index is None or option_index >= len(options):
                self._out(ATTEMPT_HELP)
                return
            feedback = self._manager.select_answer(position, option_index)
            if feedback is not None:
                # Study mode: feedback is shown on the next redraw of this question.
                return
            session.next()

    def _submit(self) -> None:
        gap = self._manager.first_unanswered_position()
        if gap is not None and not confirm(self._input, UNANSWERED_TEMPLATE.format(number=gap + 1)):
            self._manager.navigate(gap)
            return
        self._manager.submit_quiz()

    def _finish_attempt(self, results_file: Path | None) -> int:
        session = self._manager.get_session()
        record = session.get_record()
        result = session.get_last_result()
        self._out("")
        self._out(render_result_summary(result, record.metadata.title, record.metadata.subject))
        if results_file is not None:
            path = save_export_to_file(results_file, self._manager.export_last_attempt())
            self._out(f"Results written to {path}")
        return 0

    @staticmethod
    def _parse_option(command: str) -> int | None:
        if len(command) == 1 and command.upper() in OPTION_LETTERS:
            return OPTION_LETTERS.index(command.upper())
        if command.isdigit() and int(command) >= 1:
            return int(command) - 1
        return None


def main(argv: Sequence[str] | None = None, input_func: InputFunc = input) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    data_dir = resolve_data_dir(args.data_dir)
    logger.debug("Using data directory %s", data_dir)
    return TerminalApp(build_manager(data_dir), input_func=input_func).run(args)
