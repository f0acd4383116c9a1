"""Tests for structured error panels."""

from io import StringIO

from rich.console import Console

from enrollment_forecast.display.error_display import ErrorDisplay
from enrollment_forecast.errors import (
    AccrualStalledError,
    IterationFailedError,
    PercentileOutOfRangeError,
    SimulationCancelled,
)


def _display() -> tuple[ErrorDisplay, StringIO]:
    buffer = StringIO()
    return ErrorDisplay(Console(file=buffer, width=120)), buffer


class TestFormatSimulationError:
    def test_configuration_error(self):
        context, error_class, message, suggestion = ErrorDisplay.format_simulation_error(
            PercentileOutOfRangeError(80)
        )
        assert context == "configuration"
        assert error_class == "PercentileOutOfRangeError"
        assert "80" in message
        assert "fractions" in suggestion

    def test_cancellation(self):
        context, error_class, _, _ = ErrorDisplay.format_simulation_error(SimulationCancelled(4))
        assert context == "stage 4"
        assert error_class == "cancelled"

    def test_iteration_failure(self):
        context, _, message, _ = ErrorDisplay.format_simulation_error(
            IterationFailedError(3, {2: "bad", 0: "worse"})
        )
        assert context == "stage 3"
        assert "iteration 0" in message

    def test_unexpected_error_truncated(self):
        context, error_class, message, suggestion = ErrorDisplay.format_simulation_error(
            RuntimeError("x" * 1000)
        )
        assert context == "unknown"
        assert error_class == "RuntimeError"
        assert len(message) == 500
        assert suggestion == "Check simulation logs for the full stack trace"


class TestShow:
    def test_error_panel(self):
        display, buffer = _display()
        display.show(AccrualStalledError("DE", 7, 10950))
        out = buffer.getvalue()
        assert "Simulation Error" in out
        assert "AccrualStalledError" in out
        assert "screen-failure rate" in out

    def test_iteration_failure_table_truncated(self):
        display, buffer = _display()
        failures = {i: f"failure {i}" for i in range(15)}
        display.show(IterationFailedError(3, failures))
        out = buffer.getvalue()
        assert "Iteration Failures" in out
        assert "failure 9" in out
        assert "failure 12" not in out
        assert "and 5 more" in out
