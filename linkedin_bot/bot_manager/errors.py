"""Bot exceptions."""

from __future__ import annotations

from .messages import UNKNOWN_ERROR


class BotError(Exception):
    """Base class for bot errors."""


class BotStateError(BotError):
    """A command is not allowed in the current phase. No state was changed."""


class AlreadyRunningError(BotStateError):
    pass


class NotRunningError(BotStateError):
    pass


class BotBusyError(BotStateError):
    pass


class BotFailedError(BotStateError):
    pass


class StepFailedError(BotError):
    """A pipeline step raised; ``cause`` holds the original exception."""

    def __init__(self, step_name: str, cause: BaseException):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"{step_name}: {extract_error_message(cause)}")


def extract_error_message(error: BaseException) -> str:
    if isinstance(error, StepFailedError):
        return extract_error_message(error.cause)
    return str(error) or UNKNOWN_ERROR.message


class LoginButtonNotFoundError(BotError):
    """Neither the Google Sign-In frame nor any fallback selector was found."""
