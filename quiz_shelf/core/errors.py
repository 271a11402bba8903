"""Exception types raised by the quiz library core."""

from __future__ import annotations


class QuizShelfError(Exception):
    """Base class for all quiz library errors."""


class QuizImportError(QuizShelfError):
    """Raised when an import source cannot be read or is not JSON."""


class QuizValidationError(QuizShelfError):
    """Raised when a quiz document violates the schema.

    ``errors`` holds every violation found, in the order the rules ran.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        noun = "error" if len(self.errors) == 1 else "errors"
        super().__init__(f"Quiz failed validation with {len(self.errors)} {noun}.")


class StorageFailure(QuizShelfError):
    """Raised when a write to a key-value store fails."""


class StorageQuotaExceeded(StorageFailure):
    """Raised when a write would push a store past its byte quota."""

    def __init__(self, key: str, required_bytes: int, quota_bytes: int) -> None:
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Writing '{key}' needs {required_bytes} bytes but the store quota is {quota_bytes} bytes."
        )


class SessionStateError(QuizShelfError):
    """Raised when a session operation is called in the wrong state."""


class StaleSessionError(QuizShelfError):
    """Raised when a saved session no longer matches the stored quiz."""
