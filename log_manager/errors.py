"""Exception types and the default error sink."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ErrorSink = Callable[[BaseException], None]


class LogManagerError(Exception):
    """Base class for log manager failures."""


class ConfigError(LogManagerError):
    """Invalid or missing configuration. Raised before the manager is armed."""


class RotationError(LogManagerError):
    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class RetentionError(LogManagerError):
    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


def log_error(err: BaseException) -> None:
    """Default sink: log the error with its traceback and carry on."""
    if isinstance(err, BaseException):
        logger.error("%s", err, exc_info=err)


def report(on_error: ErrorSink, err: LogManagerError, cause: BaseException) -> None:
    """Chain *cause* onto *err* and hand it to the sink."""
    err.__cause__ = cause
    on_error(err)
