"""
Error taxonomy for the scoring core.

Each class subclasses the built-in category routers already translate
(ValueError -> 400, LookupError -> 404), so callers that only know the
built-ins keep working.
"""


class ScoringError(Exception):
    """Base exception for scoring and event-identity failures."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(ScoringError, ValueError):
    """Malformed identifier or tie-breaker selection. Not retried."""


class NotFoundError(ScoringError, LookupError):
    """An expected row never became visible within the retry budget."""

    def __init__(self, what: str, attempts: int | None = None):
        detail = f"{what} not found"
        if attempts is not None:
            detail = f"{detail} after {attempts} attempts"
        super().__init__(detail, f"{what} not found. Please try again.")
        self.attempts = attempts


class DuplicateStateError(ScoringError, RuntimeError):
    """More than one row exists for a key that must be unique (e.g. one event
    per tournament and category). Never healed by picking a row."""

    def __init__(self, what: str, key: str, row_ids: list[str]):
        super().__init__(
            f"Found {len(row_ids)} {what} rows for {key}: {', '.join(sorted(row_ids))}",
            f"Duplicate {what} records detected. An administrator must merge them.",
        )
        self.what = what
        self.key = key
        self.row_ids = sorted(row_ids)


class PersistenceError(ScoringError, RuntimeError):
    """A write failed for a reason other than a uniqueness conflict."""

    def __init__(self, operation: str, details: str | None = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "Database error occurred. Please try again later.",
        )
        self.operation = operation
