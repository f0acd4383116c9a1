"""Progress callback protocol for simulation lifecycle events.

Defines the ``ProgressCallback`` Protocol that display implementations must
satisfy.  All hooks return nothing and are purely observational; the engine
never changes behaviour based on a callback.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for simulation progress callbacks.

    Hooks are invoked from worker threads during parallel stages, so
    implementations must be thread-safe.
    """

    def on_progress(self, message: str, stage: int, iteration: int | None) -> None:
        """Called at every reporting interval inside a stage.

        Args:
            message: Human-readable progress label.
            stage: Stage index (1-8).
            iteration: Units completed so far, or ``None`` for stage-level
                messages.
        """
        ...

    def on_stage_start(self, stage: int, name: str, total: int) -> None:
        """Called when a stage begins.

        Args:
            stage: Stage index (1-8).
            name: Human-readable stage name.
            total: Number of work units in the stage.
        """
        ...

    def on_stage_complete(self, stage: int, duration_seconds: float) -> None:
        """Called when a stage finishes successfully.

        Args:
            stage: Stage index (1-8).
            duration_seconds: Wall-clock time in seconds.
        """
        ...

    def on_simulation_complete(self, iterations: int, total_seconds: float) -> None:
        """Called when all eight stages finish.

        Args:
            iterations: Number of simulated iterations.
            total_seconds: Total wall-clock time.
        """
        ...

    def on_simulation_fail(self, stage: int, error: str, suggestion: str) -> None:
        """Called when the run terminates with an error.

        Args:
            stage: Stage index in which the error surfaced.
            error: Human-readable error description.
            suggestion: Actionable fix suggestion.
        """
        ...

    def on_simulation_cancelled(self, stage: int) -> None:
        """Called when a cancellation request stopped the run.

        Args:
            stage: Stage index that observed the request.
        """
        ...
