"""Per-iteration simulation building blocks: strategies, accrual, caps and date matrices."""

from enrollment_forecast.simulation.accrual import (
    DEFAULT_HORIZON_DAYS,
    continue_enrolling,
    days_open,
    estimate_enrollment_days,
    populate_enrollment,
    simulate_patient_accrual,
)
from enrollment_forecast.simulation.allocator import apply_caps
from enrollment_forecast.simulation.matrix import (
    build_accrual_matrix,
    build_ssu_matrix,
    count_accrued,
    get_or_extrapolate,
)
from enrollment_forecast.simulation.strategy import (
    BaselineStrategy,
    ReprojectionStrategy,
    SimulationMode,
    SimulationStrategy,
    get_strategy,
)

__all__ = [
    "BaselineStrategy",
    "DEFAULT_HORIZON_DAYS",
    "ReprojectionStrategy",
    "SimulationMode",
    "SimulationStrategy",
    "apply_caps",
    "build_accrual_matrix",
    "build_ssu_matrix",
    "continue_enrolling",
    "count_accrued",
    "days_open",
    "estimate_enrollment_days",
    "get_or_extrapolate",
    "get_strategy",
    "populate_enrollment",
    "simulate_patient_accrual",
]
