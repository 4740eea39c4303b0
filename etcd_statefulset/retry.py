"""
Polling loop with minor / severe error classification.

A poll function returns one of:
  ok()              condition met, stop successfully
  minor_error(err)  not there yet, poll again after the interval
  severe_error(err) give up immediately

The loop runs the first attempt right away and then sleeps ``interval``
between attempts until ``timeout`` has elapsed since the call started.
Sleeping happens on the caller's stop event when one is given, so a
cancellation wakes the loop up immediately.
"""
import threading
import time
from typing import Callable, NamedTuple, Optional

from .errors import OperationCancelledError, RetryTimeoutError, SevereRetryError


class Result(NamedTuple):
    done: bool
    error: Optional[BaseException] = None
    severe: bool = False


def ok() -> Result:
    return Result(done=True)


def minor_error(err: Optional[BaseException] = None) -> Result:
    return Result(done=False, error=err)


def severe_error(err: BaseException) -> Result:
    return Result(done=False, error=err, severe=True)


def raise_if_stopped(stopped: Optional[threading.Event]):
    if stopped is not None and stopped.is_set():
        raise OperationCancelledError()


def _sleep(seconds: float, stopped: Optional[threading.Event]) -> bool:
    """Sleep for ``seconds``; returns True if woken by the stop event."""
    if stopped is None:
        time.sleep(seconds)
        return False
    return stopped.wait(seconds)


def until_timeout(
    poll: Callable[[], Result],
    interval: float,
    timeout: float,
    stopped: Optional[threading.Event] = None,
) -> None:
    """Run ``poll`` until it succeeds, fails severely, times out or is cancelled."""
    deadline = time.monotonic() + timeout
    last_error: Optional[BaseException] = None

    while True:
        raise_if_stopped(stopped)
        result = poll()
        if result.done:
            return
        if result.severe:
            raise SevereRetryError(result.error)
        last_error = result.error

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise RetryTimeoutError(timeout, last_error)
        if _sleep(min(interval, remaining), stopped):
            raise OperationCancelledError()
