"""Display infrastructure for simulation progress and error reporting."""

from enrollment_forecast.display.callbacks import ProgressCallback
from enrollment_forecast.display.error_display import ErrorDisplay
from enrollment_forecast.display.simulation_display import SimulationDisplay

__all__ = ["ErrorDisplay", "ProgressCallback", "SimulationDisplay"]
