"""Exceptions raised by the session engine and its adapters."""


class SessionError(Exception):
    """Base class for session engine errors."""


class SessionStateError(SessionError):
    """An operation was attempted in a session state that does not allow it."""


class EmptyQuestionSetError(SessionError):
    """The question set resolved to nothing; there is nothing to attempt."""


class GradingServiceError(SessionError):
    """External grading failed. Always retryable; message is user-facing."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = True
