"""Rich-based simulation display with Live layout, stage table and progress bar.

``SimulationDisplay`` implements the ``ProgressCallback`` protocol, providing
an interactive terminal view while the eight pipeline stages run.  In non-TTY
environments (CI, piped output) it falls back to plain text status lines.

All Rich output is routed through a shared ``Console(stderr=True)`` instance
so stdout remains clean for programmatic consumers.
"""

from __future__ import annotations

import threading

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from enrollment_forecast.display.callbacks import ProgressCallback
from enrollment_forecast.models.pipeline import STAGE_NAMES


class SimulationDisplay(ProgressCallback):
    """Interactive Rich display for simulation progress.

    When running in a terminal, renders a Live layout with a status table
    (eight stages) and a progress bar for the running stage.  Otherwise falls
    back to plain ``console.print`` calls.

    Hooks arrive from worker threads, so state updates are serialised with a
    lock.

    Args:
        console: Shared console; a ``Console(stderr=True)`` is created when
            omitted.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self._interactive: bool = self.console.is_terminal
        self._lock = threading.Lock()

        self._stages: dict[int, dict] = {
            index: {"name": name, "status": "pending", "duration": 0.0, "message": ""}
            for index, name in STAGE_NAMES.items()
        }

        self._live = None
        self._progress: Progress | None = None
        self._task = None
        self.cancelled_stage: int | None = None
        self.failed_stage: int | None = None

    # ------------------------------------------------------------------
    # Rich renderable builders
    # ------------------------------------------------------------------

    def _build_table(self) -> Table:
        """Build the status table showing all eight stages."""
        table = Table(title="Simulation Stages", expand=True)
        table.add_column("#", justify="right")
        table.add_column("Stage", style="bold")
        table.add_column("Status")
        table.add_column("Last message")
        table.add_column("Duration", justify="right")

        status_styles = {
            "done": "[green]done[/green]",
            "running": "[yellow]running[/yellow]",
            "failed": "[red]failed[/red]",
            "cancelled": "[magenta]cancelled[/magenta]",
            "pending": "[dim]pending[/dim]",
        }

        for index, stage in self._stages.items():
            duration_str = f'{stage["duration"]:.2f}s' if stage["duration"] > 0 else "-"
            table.add_row(
                str(index),
                stage["name"],
                status_styles.get(stage["status"], stage["status"]),
                stage["message"] or "-",
                duration_str,
            )
        return table

    def _build_progress(self) -> Progress:
        """Create the progress bar widget for the running stage."""
        return Progress(
            SpinnerColumn(spinner_name="dots"),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            disable=not self._interactive,
        )

    def _build_renderable(self) -> Group:
        """Compose the status table panel and progress bar into a single renderable."""
        panel = Panel(self._build_table(), border_style="blue", title="enrollment-forecast")
        return Group(panel, self._progress)

    # ------------------------------------------------------------------
    # Lifecycle methods
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Live display (interactive mode only)."""
        if self._progress is None:
            self._progress = self._build_progress()
            self._task = self._progress.add_task("Waiting", total=None)

        if self._interactive:
            from rich.live import Live

            self._live = Live(
                self._build_renderable(), console=self.console, refresh_per_second=4
            )
            self._live.start()

    def stop(self) -> None:
        """Stop the Live display if active."""
        if self._live is not None:
            self._live.stop()
            self._live = None

    # ------------------------------------------------------------------
    # ProgressCallback implementation
    # ------------------------------------------------------------------

    def on_progress(self, message: str, stage: int, iteration: int | None) -> None:
        with self._lock:
            if stage in self._stages:
                suffix = f" ({iteration})" if iteration is not None else ""
                self._stages[stage]["message"] = f"{message}{suffix}"
            if self._progress is not None and self._task is not None and iteration is not None:
                self._progress.update(self._task, completed=iteration)
            self._refresh()

        if not self._interactive:
            counter = f" {iteration}" if iteration is not None else ""
            self.console.print(f"[stage {stage}] {message}{counter}")

    def on_stage_start(self, stage: int, name: str, total: int) -> None:
        with self._lock:
            if stage in self._stages:
                self._stages[stage]["status"] = "running"
            if self._progress is not None and self._task is not None:
                self._progress.reset(self._task, total=total, description=name)
            self._refresh()

        if not self._interactive:
            self.console.print(f"[stage {stage}] {name} ({total} unit(s))")

    def on_stage_complete(self, stage: int, duration_seconds: float) -> None:
        with self._lock:
            if stage in self._stages:
                self._stages[stage]["status"] = "done"
                self._stages[stage]["duration"] = duration_seconds
            self._refresh()

        if not self._interactive:
            self.console.print(f"[stage {stage}] Complete ({duration_seconds:.2f}s)")

    def on_simulation_complete(self, iterations: int, total_seconds: float) -> None:
        self.stop()
        summary = Text.assemble(
            ("Simulated ", ""),
            (str(iterations), "bold"),
            (" iteration(s) in ", ""),
            (f"{total_seconds:.1f}s", "bold"),
        )
        self.console.print(Panel(summary, border_style="green", title="Success"))

    def on_simulation_fail(self, stage: int, error: str, suggestion: str) -> None:
        with self._lock:
            self.failed_stage = stage
            if stage in self._stages:
                self._stages[stage]["status"] = "failed"
            self._refresh()
        self.stop()

    def on_simulation_cancelled(self, stage: int) -> None:
        with self._lock:
            self.cancelled_stage = stage
            if stage in self._stages:
                self._stages[stage]["status"] = "cancelled"
            self._refresh()
        self.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def stage_status(self, stage: int) -> str:
        """Current status label of *stage*."""
        return self._stages[stage]["status"]

    def _refresh(self) -> None:
        """Rebuild and update the Live renderable if in interactive mode."""
        if self._interactive and self._live is not None:
            self._live.update(self._build_renderable())
