"""Data models for trials, simulation results, summaries and run state."""

from enrollment_forecast.models.distributions import (
    DistributionKind,
    DistributionParameter,
)
from enrollment_forecast.models.pipeline import (
    STAGE_NAMES,
    SimulationRunState,
    StageState,
    StageStatus,
)
from enrollment_forecast.models.simulation import (
    CapOutcome,
    PatientAccrualInformation,
    Series,
    SimulationValues,
    SSUAccrualInformation,
)
from enrollment_forecast.models.summary import (
    AccrualValueByDate,
    DateSpan,
    MeanAndErrorEstimates,
    MeanAndErrorEstimatesDates,
    Percentiles,
    SummarizedAccrualResults,
    SummarizedSSUResults,
)
from enrollment_forecast.models.trial import (
    AccrualConstraint,
    Country,
    SimulationResults,
    Site,
    Trial,
)

__all__ = [
    "AccrualConstraint",
    "AccrualValueByDate",
    "CapOutcome",
    "Country",
    "DateSpan",
    "DistributionKind",
    "DistributionParameter",
    "MeanAndErrorEstimates",
    "MeanAndErrorEstimatesDates",
    "PatientAccrualInformation",
    "Percentiles",
    "STAGE_NAMES",
    "SSUAccrualInformation",
    "Series",
    "SimulationResults",
    "SimulationRunState",
    "SimulationValues",
    "Site",
    "StageState",
    "StageStatus",
    "SummarizedAccrualResults",
    "SummarizedSSUResults",
    "Trial",
]
