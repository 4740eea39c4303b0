"""
Error taxonomy for the deployer.

NotFound is not modelled here: a 404 ApiException drives state transitions
and never leaves the deployer. Everything else that can end a wait is a
RetryError, and API failures outside the polling loops propagate unchanged.
"""
from typing import Optional

from kubernetes.client import ApiException


def is_not_found(err: BaseException) -> bool:
    return isinstance(err, ApiException) and err.status == 404


class RetryError(Exception):
    """Base for failures that end a polling loop.

    ``details`` holds optional diagnostics appended to the message after a
    blank line.
    """

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n\n{self.details}"
        return self.message


class RetryTimeoutError(RetryError):
    """The deadline passed while only minor (recoverable) errors occurred."""

    def __init__(self, timeout: float, last_error: Optional[BaseException] = None):
        message = f"retry failed with timeout after {timeout:g}s"
        if last_error is not None:
            message += f", last error: {last_error}"
        super().__init__(message)
        self.timeout = timeout
        self.last_error = last_error


class SevereRetryError(RetryError):
    """A non-recoverable error aborted the polling loop."""

    def __init__(self, cause: BaseException):
        super().__init__(str(cause))
        self.cause = cause
        self.__cause__ = cause


class OperationCancelledError(RetryError):
    """The caller's stop signal was set before the operation finished."""

    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)
