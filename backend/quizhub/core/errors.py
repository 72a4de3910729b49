from __future__ import annotations

import uuid


class QuizHubError(Exception):
    """Base for errors that map onto an API error payload."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "request failed"):
        super().__init__(message)
        self.message = message


class InvalidInput(QuizHubError):
    status_code = 400
    error_code = "invalid_input"


class NotFound(QuizHubError):
    status_code = 404
    error_code = "not_found"


class StorageUnavailable(QuizHubError):
    """A fetch or write against the database failed.

    Raised with the driver error chained as ``__cause__``. The core never
    retries; reconnecting is the connection supervisor's job.
    """

    status_code = 500
    error_code = "storage_unavailable"


def parse_uuid(value, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise InvalidInput(f"invalid {field}") from e
