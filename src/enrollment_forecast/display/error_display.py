"""Structured error display using Rich panels.

Renders simulation errors as formatted Rich panels with stage context, error
type, human-readable messages and actionable fix suggestions.  Iteration
failures additionally get a per-iteration table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from enrollment_forecast.errors import (
    ConfigurationError,
    IterationFailedError,
    SimulationCancelled,
    suggestion_for,
)

if TYPE_CHECKING:
    from rich.console import Console

# Rows shown in the iteration failure table before truncating.
_MAX_FAILURE_ROWS = 10


class ErrorDisplay:
    """Renders structured error panels for simulation failures.

    All output goes through the shared ``Console`` instance (typically
    ``stderr=True``) so it does not interfere with stdout or the Rich Live
    display.
    """

    def __init__(self, console: Console) -> None:
        self.console = console

    def show_error(
        self,
        context: str,
        error_class: str,
        message: str,
        suggestion: str,
    ) -> None:
        """Render a structured error panel.

        Args:
            context: Where the error surfaced (stage or component).
            error_class: Error type name.
            message: Human-readable error description (truncated to 500 chars).
            suggestion: Actionable fix suggestion.
        """
        body = Text()
        body.append("Context:     ", style="bold")
        body.append(f"{context}\n")
        body.append("Error Class: ", style="bold")
        body.append(f"{error_class}\n")
        body.append("Message:     ", style="bold")
        body.append(f"{message[:500]}\n")
        body.append("Suggestion:  ", style="bold")
        body.append(suggestion)

        self.console.print(Panel(body, border_style="red", title="Simulation Error"))

    def show_iteration_failures(self, error: IterationFailedError) -> None:
        """Render a panel listing failed iterations.

        Args:
            error: The ``IterationFailedError`` raised by the engine.
        """
        table = Table(title=f"Failed iterations (stage {error.stage})", expand=True)
        table.add_column("Iteration", justify="right", style="bold")
        table.add_column("Error")

        for iteration in sorted(error.failures)[:_MAX_FAILURE_ROWS]:
            table.add_row(str(iteration), error.failures[iteration][:200])

        footer = Text()
        hidden = len(error.failures) - _MAX_FAILURE_ROWS
        if hidden > 0:
            footer.append(f"\n... and {hidden} more\n", style="dim")
        footer.append("\nSuggestion: ", style="bold")
        footer.append(suggestion_for(error))

        self.console.print(
            Panel(Group(table, footer), border_style="red", title="Iteration Failures")
        )

    def show(self, error: Exception) -> None:
        """Render the most specific panel for *error*."""
        if isinstance(error, IterationFailedError):
            self.show_iteration_failures(error)
            return
        self.show_error(*self.format_simulation_error(error))

    @staticmethod
    def format_simulation_error(
        error: Exception,
    ) -> tuple[str, str, str, str]:
        """Inspect an exception and return structured error fields.

        Returns:
            Tuple of ``(context, error_class, message, suggestion)``.
        """
        if isinstance(error, SimulationCancelled):
            return (
                f"stage {error.stage}",
                "cancelled",
                str(error),
                "Re-run the simulation to obtain results",
            )

        if isinstance(error, IterationFailedError):
            return (
                f"stage {error.stage}",
                type(error).__name__,
                str(error),
                suggestion_for(error),
            )

        if isinstance(error, ConfigurationError):
            return (
                "configuration",
                type(error).__name__,
                str(error),
                suggestion_for(error),
            )

        return (
            "unknown",
            type(error).__name__,
            str(error)[:500],
            suggestion_for(error),
        )
