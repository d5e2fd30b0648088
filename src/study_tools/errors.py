"""Exceptions raised by the study tools."""


class StudyToolsError(Exception):
    """Base class for study tools errors."""


class IllegalTransition(StudyToolsError):
    """An operation was invoked that the current state does not permit."""

    def __init__(self, message: str, state: str | None = None):
        super().__init__(message)
        self.message = message
        self.state = state


class UnknownStrategy(StudyToolsError):
    """No registered strategy could handle the request."""


class AIClientError(StudyToolsError):
    """The AI question backend is misconfigured or returned something unusable."""
