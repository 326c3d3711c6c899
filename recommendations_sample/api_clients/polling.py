"""
Polling of long-running remote operations.

Builds and batch jobs run asynchronously on the service. This module waits
for such an operation to reach a terminal status, backing off exponentially
between polls, giving up after a timeout and stopping early when the caller
sets a cancellation event.
"""

import logging
import threading
import time
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_delay,
    stop_when_event_set,
    wait_exponential
)

from .schemas import OperationInfo

logger = logging.getLogger(__name__)


class OperationTimeoutError(Exception):
    """Raised when an operation does not finish within the allowed time."""
    pass


class OperationCancelledError(Exception):
    """Raised when polling is cancelled before the operation finishes."""
    pass


def _log_progress(retry_state: RetryCallState) -> None:
    operation = retry_state.outcome.result()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.info(
        f"Operation status: {operation.status} "
        f"({operation.percent_complete or 0}% complete), next poll in {wait:.0f}s"
    )


def wait_for_operation(
    fetch: Callable[[], OperationInfo],
    timeout: float = 3600,
    initial_interval: float = 5,
    max_interval: float = 60,
    multiplier: float = 2,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None
) -> OperationInfo:
    """
    Poll an operation until it reaches a terminal status.

    Args:
        fetch: Callable returning the current OperationInfo
        timeout: Seconds after which polling gives up
        initial_interval: Seconds to wait after the first poll
        max_interval: Upper bound for the wait between polls
        multiplier: Growth factor of the wait between polls
        cancel_event: Event that stops polling when set
        sleep: Sleep function; defaults to waiting on cancel_event, or time.sleep

    Returns:
        The OperationInfo carrying the terminal status. A "Failed" or
        "Cancelled" operation is returned, not raised.

    Raises:
        OperationTimeoutError: If no terminal status is observed within timeout
        OperationCancelledError: If cancel_event is set while polling
    """
    stop = stop_after_delay(timeout)
    if cancel_event is not None:
        stop = stop | stop_when_event_set(cancel_event)
        if sleep is None:
            # Waking on the event lets cancellation interrupt a long back-off.
            sleep = cancel_event.wait
    if sleep is None:
        sleep = time.sleep

    retrying = Retrying(
        retry=retry_if_result(lambda operation: not operation.is_terminal),
        wait=wait_exponential(
            multiplier=initial_interval,
            exp_base=multiplier,
            min=initial_interval,
            max=max_interval
        ),
        stop=stop,
        sleep=sleep,
        before_sleep=_log_progress
    )

    try:
        operation = retrying(fetch)
    except RetryError as e:
        last = e.last_attempt.result()
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(
                f"Polling cancelled while operation was {last.status}"
            ) from None
        raise OperationTimeoutError(
            f"Operation did not finish within {timeout}s (last status: {last.status})"
        ) from None

    logger.info(f"Operation finished with status {operation.status}")
    return operation
