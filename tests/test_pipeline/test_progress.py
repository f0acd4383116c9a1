"""Tests for thread-safe progress counting and cancellation."""

import threading

import pytest

from enrollment_forecast.errors import SimulationCancelled
from enrollment_forecast.pipeline.progress import CancellationToken, ProgressTracker


class _Collector:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int | None]] = []
        self._lock = threading.Lock()

    def on_progress(self, message: str, stage: int, iteration: int | None) -> None:
        with self._lock:
            self.calls.append((message, stage, iteration))


class TestCancellationToken:
    def test_starts_clear(self) -> None:
        assert not CancellationToken().cancelled

    def test_cancel_sets_flag(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.cancelled


class TestProgressTracker:
    def test_reports_every_interval(self) -> None:
        collector = _Collector()
        tracker = ProgressTracker(2, "Generating patient accrual", 3, callback=collector)
        for _ in range(10):
            tracker.tick()

        assert tracker.count == 10
        assert collector.calls == [
            ("Generating patient accrual", 2, 3),
            ("Generating patient accrual", 2, 6),
            ("Generating patient accrual", 2, 9),
        ]

    def test_concurrent_ticks_observe_each_count_once(self) -> None:
        collector = _Collector()
        tracker = ProgressTracker(6, "Building SSU matrix", 1, callback=collector)

        def work() -> None:
            for _ in range(250):
                tracker.tick()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.count == 1000
        assert sorted(call[2] for call in collector.calls) == list(range(1, 1001))

    def test_interval_below_one_reports_every_unit(self) -> None:
        collector = _Collector()
        tracker = ProgressTracker(1, "x", 0, callback=collector)
        tracker.tick()
        assert len(collector.calls) == 1

    def test_report_with_custom_message(self) -> None:
        collector = _Collector()
        tracker = ProgressTracker(8, "Generating country accrual summary", 2, callback=collector)
        tracker.report(None, "Generating trial accrual summary")
        assert collector.calls == [("Generating trial accrual summary", 8, None)]

    def test_cancellation_checked_at_report_points(self) -> None:
        token = CancellationToken()
        tracker = ProgressTracker(4, "Calculating SSU accrual", 2, cancel=token)
        tracker.tick()
        token.cancel()
        with pytest.raises(SimulationCancelled) as exc_info:
            tracker.tick()
        assert exc_info.value.stage == 4

    def test_ticks_between_report_points_do_not_check(self) -> None:
        token = CancellationToken()
        token.cancel()
        tracker = ProgressTracker(3, "Setting patient caps", 5, cancel=token)
        for _ in range(4):
            tracker.tick()
        with pytest.raises(SimulationCancelled):
            tracker.tick()

    def test_without_callback(self) -> None:
        tracker = ProgressTracker(1, "x", 1)
        tracker.tick()
        assert tracker.count == 1
