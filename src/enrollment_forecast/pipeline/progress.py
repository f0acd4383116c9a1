"""Thread-safe progress counting and cooperative cancellation."""

import threading

from enrollment_forecast.display.callbacks import ProgressCallback
from enrollment_forecast.errors import SimulationCancelled


class CancellationToken:
    """A thread-safe stop flag shared between the caller and worker threads."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressTracker:
    """Counts completed work units of one stage and reports every Nth.

    ``tick`` is called from worker threads; the counter is lock-protected so
    every count between 1 and the total is observed exactly once.  At each
    report point the cancellation token is checked first.

    Args:
        stage: Stage index (1-8).
        message: Progress label sent to the callback.
        interval: Report after every *interval*-th unit.
        callback: Optional observer.
        cancel: Optional cancellation token.
    """

    def __init__(
        self,
        stage: int,
        message: str,
        interval: int,
        callback: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        self.stage = stage
        self.message = message
        self.interval = max(1, interval)
        self.callback = callback
        self.cancel = cancel
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def tick(self) -> None:
        """Record one finished unit; report and check cancellation on interval.

        Raises:
            SimulationCancelled: If cancellation was requested.
        """
        with self._lock:
            self._count += 1
            count = self._count
        if count % self.interval == 0:
            self.report(count)

    def report(self, iteration: int | None = None, message: str | None = None) -> None:
        """Check cancellation and forward a progress message.

        Raises:
            SimulationCancelled: If cancellation was requested.
        """
        self.check_cancelled()
        if self.callback:
            self.callback.on_progress(message or self.message, self.stage, iteration)

    def check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.cancelled:
            raise SimulationCancelled(self.stage)
