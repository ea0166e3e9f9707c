"""Run an execution to completion by polling its status.

A trigger call starts a job, ad-hoc command or ad-hoc script and returns at
once. The execution is then re-fetched at a fixed interval until it leaves
the RUNNING state.
"""

import threading
import time
from collections.abc import Callable
from enum import Enum

import structlog

from .types import Execution

logger = structlog.get_logger(__name__)


class TimeUnit(str, Enum):
    """Unit of a polling interval."""

    MILLISECONDS = "MILLISECONDS"
    SECONDS = "SECONDS"
    MINUTES = "MINUTES"
    HOURS = "HOURS"

    def to_seconds(self, amount: float) -> float:
        factors = {
            TimeUnit.MILLISECONDS: 0.001,
            TimeUnit.SECONDS: 1.0,
            TimeUnit.MINUTES: 60.0,
            TimeUnit.HOURS: 3600.0,
        }
        return amount * factors[self]


DEFAULT_POLL_INTERVAL = 5
DEFAULT_POLL_UNIT = TimeUnit.SECONDS


def run_to_completion(
    trigger: Callable[[], Execution],
    refresh: Callable[[int], Execution],
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    poll_unit: TimeUnit | None = DEFAULT_POLL_UNIT,
    *,
    cancel: threading.Event | None = None,
    deadline: float | None = None,
) -> Execution:
    """Trigger an execution and wait until it is finished.

    Polls until the execution is no longer RUNNING. There is no limit on the
    number of polls unless ``cancel`` or ``deadline`` is given: setting the
    event, or running out of time, stops the polling and returns the last
    known (possibly still RUNNING) execution. That is an early exit, not an
    error. Errors raised by ``trigger`` or ``refresh`` propagate.

    Args:
        trigger: Starts the execution and returns its first state.
        refresh: Fetches the current state of an execution, by id.
        poll_interval: Delay between two polls. Values <= 0 mean 5 seconds.
        poll_unit: Unit of ``poll_interval`` (default: seconds).
        cancel: Event interrupting the wait between two polls.
        deadline: Maximum time to wait in seconds, counted from the trigger.

    Returns:
        The finished execution, or the last known one if interrupted.
    """
    if poll_interval <= 0:
        poll_interval = DEFAULT_POLL_INTERVAL
        poll_unit = DEFAULT_POLL_UNIT
    if poll_unit is None:
        poll_unit = DEFAULT_POLL_UNIT
    interval = poll_unit.to_seconds(poll_interval)
    event = cancel if cancel is not None else threading.Event()

    execution = trigger()
    start_time = time.monotonic()
    logger.debug(
        "Execution triggered",
        execution_id=execution.id,
        status=execution.status,
        poll_interval_seconds=interval,
    )

    polls = 0
    while execution.is_running:
        if deadline is not None:
            remaining = deadline - (time.monotonic() - start_time)
            if remaining < interval:
                logger.warning(
                    "Deadline reached, stop polling",
                    execution_id=execution.id,
                    polls=polls,
                )
                break
        if event.wait(interval):
            logger.info("Polling interrupted", execution_id=execution.id, polls=polls)
            break
        execution = refresh(execution.id)
        polls += 1

    logger.debug(
        "Polling finished",
        execution_id=execution.id,
        status=execution.status,
        polls=polls,
    )
    return execution
