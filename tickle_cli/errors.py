from typing import Optional

from .schemas import ErrorKind, SubStep


class TickleError(Exception):
    """Base class for errors surfaced to the operator."""

    kind: ErrorKind

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion


class NoTargetFoundError(TickleError):
    kind = ErrorKind.NO_TARGET_FOUND


class UnitNotFoundError(TickleError):
    kind = ErrorKind.UNIT_NOT_FOUND


class BackendUnavailableError(TickleError):
    kind = ErrorKind.BACKEND_UNAVAILABLE


class ComposeFileUnreadableError(TickleError):
    kind = ErrorKind.COMPOSE_FILE_UNREADABLE


class SubStepFailedError(TickleError):
    kind = ErrorKind.SUB_STEP_FAILED

    def __init__(self, step: SubStep, message: str, suggestion: Optional[str] = None):
        super().__init__(message, suggestion)
        self.step = step


class HistoryWriteFailedError(TickleError):
    kind = ErrorKind.HISTORY_WRITE_FAILED
