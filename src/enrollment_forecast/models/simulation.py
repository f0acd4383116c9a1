"""Per-iteration simulation result models.

One :class:`SimulationValues` exists per iteration at every granularity
(site, country, trial).  Site-level slots hold the pre-generated random draws;
country- and trial-level slots hold patient accrual, start-up accrual and the
cumulative date-indexed series the risk engine queries.
"""

from collections.abc import Callable
from datetime import date
from enum import StrEnum

from pydantic import BaseModel


class PatientAccrualInformation(BaseModel):
    """One simulated virtual patient.

    ``enrollment_date`` is ``None`` for a screen failure.  ``randomized_date``
    is ``None`` unless the trial defines a randomization delay.
    """

    country: str
    site: str
    screening_day: int
    screening_date: date
    enrollment_day: int | None = None
    enrollment_date: date | None = None
    randomized_day: int | None = None
    randomized_date: date | None = None

    @property
    def is_screen_failure(self) -> bool:
        return self.enrollment_date is None


class SSUAccrualInformation(BaseModel):
    """Start-up outcome of one site in one iteration."""

    country: str
    site: str
    ssu_time: float
    siv_date: date
    ssv_date: date


class SimulationValues(BaseModel):
    """Results of one iteration at one granularity.

    Cumulative maps are insertion-ordered ``dict[date, int]`` built in
    ascending date order with no gaps between the first and last key.
    """

    initial_screening_rate: float = 0.0
    ssu_value: float = 0.0
    siv_date: date | None = None
    ssv_date: date | None = None
    screening_values: list[int] = []

    patient_accrual: list[PatientAccrualInformation] = []
    ssu_accrual: list[SSUAccrualInformation] = []

    earliest_accrual_date: date | None = None
    latest_accrual_date: date | None = None
    earliest_siv_date: date | None = None
    latest_siv_date: date | None = None
    earliest_ssv_date: date | None = None
    latest_ssv_date: date | None = None

    cumulated_screened: dict[date, int] = {}
    cumulated_enrolled: dict[date, int] = {}
    cumulated_randomized: dict[date, int] = {}
    cumulated_siv: dict[date, int] = {}
    cumulated_ssv: dict[date, int] = {}

    @property
    def enrolled_count(self) -> int:
        """Number of simulated patients with an enrollment date."""
        return sum(1 for p in self.patient_accrual if p.enrollment_date is not None)


SeriesAccessor = Callable[[SimulationValues], dict[date, int]]


class Series(StrEnum):
    """Named cumulative series a risk query can target."""

    SCREENED = "screened"
    ENROLLED = "enrolled"
    RANDOMIZED = "randomized"
    SIV = "siv"
    SSV = "ssv"

    def of(self, values: SimulationValues) -> dict[date, int]:
        """Return this series' cumulative map from *values*."""
        return getattr(values, f"cumulated_{self.value}")


def resolve_series(series: "Series | SeriesAccessor") -> SeriesAccessor:
    """Normalise a :class:`Series` member or accessor callable to a callable."""
    if isinstance(series, Series):
        return series.of
    return series


class CapOutcome(BaseModel):
    """Result of applying enrollment caps to one iteration.

    ``success`` is False when cap application raised; ``error`` then holds
    the message.  The aggregation stage refuses to continue past a failure.
    """

    iteration: int
    success: bool
    error: str | None = None
