"""Simulation pipeline: logging, progress tracking and the Monte Carlo engine."""

from enrollment_forecast.pipeline.logging import (
    log_iteration_failure,
    log_query,
    log_stage_complete,
    log_stage_start,
    setup_logging,
)
from enrollment_forecast.pipeline.progress import CancellationToken, ProgressTracker

__all__ = [
    "CancellationToken",
    "ProgressTracker",
    "log_iteration_failure",
    "log_query",
    "log_stage_complete",
    "log_stage_start",
    "setup_logging",
]
