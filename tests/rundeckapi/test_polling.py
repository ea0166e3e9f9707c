"""Tests for run_to_completion: termination, interruption and deadlines."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from rundeck_client.rundeckapi import polling
from rundeck_client.rundeckapi.exceptions import RundeckApiError
from rundeck_client.rundeckapi.polling import TimeUnit
from rundeck_client.rundeckapi.types import Execution, ExecutionStatus


def _execution(status: ExecutionStatus, execution_id: int = 7) -> Execution:
    return Execution(id=execution_id, status=status)


RUNNING = _execution(ExecutionStatus.RUNNING)
SUCCEEDED = _execution(ExecutionStatus.SUCCEEDED)

# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


def test_polls_until_execution_is_finished():
    """RUNNING, RUNNING, SUCCEEDED: two re-fetches, SUCCEEDED returned."""
    trigger = MagicMock(return_value=RUNNING)
    refresh = MagicMock(side_effect=[RUNNING, SUCCEEDED])

    actual = polling.run_to_completion(trigger, refresh, 1, TimeUnit.MILLISECONDS)

    assert actual is SUCCEEDED
    trigger.assert_called_once_with()
    assert refresh.call_count == 2
    refresh.assert_called_with(7)


def test_finished_at_trigger_means_no_poll():
    """An execution already finished when triggered is returned as-is."""
    refresh = MagicMock()

    actual = polling.run_to_completion(MagicMock(return_value=SUCCEEDED), refresh)

    assert actual is SUCCEEDED
    refresh.assert_not_called()


@pytest.mark.parametrize("interval", [0, -3])
def test_non_positive_interval_falls_back_to_five_seconds(interval):
    """Intervals <= 0 mean the default of 5 seconds."""
    cancel = MagicMock(spec=threading.Event)
    cancel.wait.return_value = False
    refresh = MagicMock(return_value=SUCCEEDED)

    polling.run_to_completion(
        MagicMock(return_value=RUNNING),
        refresh,
        interval,
        TimeUnit.MILLISECONDS,
        cancel=cancel,
    )

    cancel.wait.assert_called_once_with(5.0)


def test_none_unit_means_seconds():
    """A missing unit is treated as seconds."""
    cancel = MagicMock(spec=threading.Event)
    cancel.wait.return_value = False

    polling.run_to_completion(
        MagicMock(return_value=RUNNING),
        MagicMock(return_value=SUCCEEDED),
        2,
        None,
        cancel=cancel,
    )

    cancel.wait.assert_called_once_with(2.0)


@pytest.mark.parametrize(
    ("unit", "expected_seconds"),
    [
        (TimeUnit.MILLISECONDS, 0.25),
        (TimeUnit.SECONDS, 250),
        (TimeUnit.MINUTES, 15000),
        (TimeUnit.HOURS, 900000),
    ],
)
def test_time_unit_to_seconds(unit, expected_seconds):
    """Each unit converts to seconds."""
    assert unit.to_seconds(250) == pytest.approx(expected_seconds)


# ---------------------------------------------------------------------------
# Interruption and deadline
# ---------------------------------------------------------------------------


def test_cancel_returns_last_running_execution():
    """Setting the cancel event returns the last fetched handle, no error."""
    cancel = threading.Event()
    last_running = _execution(ExecutionStatus.RUNNING)

    def refresh(_execution_id):
        cancel.set()
        return last_running

    actual = polling.run_to_completion(
        MagicMock(return_value=RUNNING),
        refresh,
        1,
        TimeUnit.MILLISECONDS,
        cancel=cancel,
    )

    assert actual is last_running
    assert actual.is_running


def test_cancel_already_set_means_no_refresh():
    """A cancel event set before the first wait stops at once."""
    cancel = threading.Event()
    cancel.set()
    refresh = MagicMock()

    actual = polling.run_to_completion(MagicMock(return_value=RUNNING), refresh, cancel=cancel)

    assert actual is RUNNING
    refresh.assert_not_called()


def test_deadline_stops_polling():
    """Polling stops once the next wait would go past the deadline."""
    refresh = MagicMock(return_value=RUNNING)

    with patch("rundeck_client.rundeckapi.polling.time") as mock_time:
        mock_time.monotonic.side_effect = [0.0, 0.0, 4.0, 8.0]
        actual = polling.run_to_completion(
            MagicMock(return_value=RUNNING),
            refresh,
            1,
            TimeUnit.MILLISECONDS,
            deadline=5.0,
        )

    assert actual is RUNNING
    assert refresh.call_count == 2


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def test_trigger_error_propagates():
    """Errors from the trigger are raised, nothing is polled."""
    refresh = MagicMock()
    trigger = MagicMock(side_effect=RundeckApiError("Bad job ID"))

    with pytest.raises(RundeckApiError, match="Bad job ID"):
        polling.run_to_completion(trigger, refresh)
    refresh.assert_not_called()


def test_refresh_error_propagates():
    """Errors while polling are raised to the caller."""
    refresh = MagicMock(side_effect=RundeckApiError("Empty response"))

    with pytest.raises(RundeckApiError, match="Empty response"):
        polling.run_to_completion(
            MagicMock(return_value=RUNNING),
            refresh,
            1,
            TimeUnit.MILLISECONDS,
        )
