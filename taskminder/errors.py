from __future__ import annotations


class TaskminderError(Exception):
    """Base error carrying the HTTP status the gateway maps it to."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaskminderError):
    """Bad or missing input, including date-ordering violations."""

    status_code = 400


class NotFoundError(TaskminderError):
    status_code = 404


class ForbiddenError(TaskminderError):
    """The requesting owner does not own the task."""

    status_code = 403


class SendFailedError(TaskminderError):
    """Outbound reminder transport failed for one task."""


__all__ = [
    "TaskminderError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "SendFailedError",
]
