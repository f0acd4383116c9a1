"""Trial, country and site models.

The structural graph (trial -> countries -> sites) is read-only while a
simulation runs.  Only the per-iteration result slots in each ``results``
container and the summary lists are written by the pipeline.
"""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from enrollment_forecast.models.distributions import DistributionParameter
from enrollment_forecast.models.simulation import SimulationValues
from enrollment_forecast.models.summary import (
    SummarizedAccrualResults,
    SummarizedSSUResults,
)


class AccrualConstraint(StrEnum):
    """Enrollment constraint applied to a country."""

    NONE = "none"
    MINIMUM_PATIENT = "minimum_patient"
    MAXIMUM_PATIENT = "maximum_patient"
    EXACT_PATIENT = "exact_patient"
    BETWEEN = "between"

    @property
    def has_maximum(self) -> bool:
        return self in (
            AccrualConstraint.MAXIMUM_PATIENT,
            AccrualConstraint.EXACT_PATIENT,
            AccrualConstraint.BETWEEN,
        )

    @classmethod
    def infer(cls, min_enrollment: int, max_enrollment: int) -> "AccrualConstraint":
        """Infer a constraint from a country's configured min/max enrollment.

        Args:
            min_enrollment: Configured minimum (0 when unset).
            max_enrollment: Configured maximum (0 when unset).

        Returns:
            The matching constraint; NONE when neither bound is meaningful.
        """
        if min_enrollment == 0 and max_enrollment == 0:
            return cls.NONE
        if min_enrollment == max_enrollment:
            return cls.EXACT_PATIENT
        if min_enrollment > 1 and max_enrollment > 1:
            return cls.BETWEEN
        if min_enrollment > 1:
            return cls.MINIMUM_PATIENT
        if max_enrollment > 1:
            return cls.MAXIMUM_PATIENT
        return cls.NONE


class SimulationResults(BaseModel):
    """Per-iteration result slots, addressed by iteration index."""

    simulation_values_list: list[SimulationValues] = []

    def reset(self, iterations: int) -> None:
        """Replace the slots with *iterations* fresh, independent containers."""
        self.simulation_values_list = [SimulationValues() for _ in range(iterations)]


class Site(BaseModel):
    """An investigational site.

    Attributes:
        name: Site identifier, unique within the trial.
        country: Name of the owning country.
        ssv_date: Site selection visit date, if one has happened.
        siv_date: Site initiation visit date; present for already-active sites.
        site_initiation_delay: Extra days between start-up and initiation.
        enrollment_stop_date: Date the site stops screening (``None`` = never).
        baseline_ssu: Start-up duration distribution in days.
        baseline_screening: Daily screening rate distribution.
        reprojection_screening: Screening rate distribution for reprojection runs.
        current_enrollment: Patients already enrolled at this site; updates
            the screening rate of reprojection runs.
    """

    name: str
    country: str = ""
    ssv_date: date | None = None
    siv_date: date | None = None
    site_initiation_delay: int = 0
    enrollment_stop_date: date | None = None
    baseline_ssu: DistributionParameter
    baseline_screening: DistributionParameter
    reprojection_screening: DistributionParameter | None = None
    current_enrollment: int = 0
    results: SimulationResults = Field(default_factory=SimulationResults)

    def is_open(self, siv_date: date, current: date) -> bool:
        """Whether the site screens patients on *current* given its SIV date."""
        if current < siv_date:
            return False
        return self.enrollment_stop_date is None or current < self.enrollment_stop_date


class Country(BaseModel):
    """A participating country and its enrollment constraint."""

    name: str
    accrual_constraint: AccrualConstraint = AccrualConstraint.NONE
    min_patient_enrollment: int = 0
    max_patient_enrollment: int = 0
    current_actual_enrollment: int = 0
    sites: list[Site] = []
    results: SimulationResults = Field(default_factory=SimulationResults)
    accrual_summary: list[SummarizedAccrualResults] = []
    ssu_summary: list[SummarizedSSUResults] = []

    @model_validator(mode="before")
    @classmethod
    def _infer_constraint(cls, data: object) -> object:
        # A constraint left out of the input is inferred from min/max.
        if isinstance(data, dict) and data.get("accrual_constraint") is None:
            inferred = AccrualConstraint.infer(
                int(data.get("min_patient_enrollment") or 0),
                int(data.get("max_patient_enrollment") or 0),
            )
            data = {**data, "accrual_constraint": inferred}
        return data

    @model_validator(mode="after")
    def _link_sites(self) -> "Country":
        for site in self.sites:
            if not site.country:
                site.country = self.name
        return self


class Trial(BaseModel):
    """A clinical trial to forecast.

    Attributes:
        enrollment_target: Total patients the trial must enroll.
        number_of_iterations: Monte Carlo iterations to run.
        study_start_date: Planned first day of the study.
        screening_period_lower: Minimum days from screening to enrollment.
        screening_period_upper: Maximum days from screening to enrollment.
        screen_fail_rate: Probability a screened patient fails screening.
        estimated_enrollment_days: Length of the pre-generated screening arrays.
            Estimated from the inputs when unset.
        randomization_delay_days: Days from enrollment to randomization.
            Randomized dates stay unset when this is ``None``.
    """

    name: str = "trial"
    enrollment_target: int = Field(ge=0)
    number_of_iterations: int = Field(default=1000, gt=0)
    study_start_date: date
    screening_period_lower: int = Field(default=0, ge=0)
    screening_period_upper: int = Field(default=0, ge=0)
    screen_fail_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    estimated_enrollment_days: int | None = Field(default=None, gt=0)
    randomization_delay_days: int | None = Field(default=None, ge=0)
    countries: list[Country] = []
    results: SimulationResults = Field(default_factory=SimulationResults)
    accrual_summary: list[SummarizedAccrualResults] = []
    ssu_summary: list[SummarizedSSUResults] = []

    @model_validator(mode="after")
    def _check_screening_period(self) -> "Trial":
        if self.screening_period_upper < self.screening_period_lower:
            msg = (
                f"screening_period_upper {self.screening_period_upper} is below "
                f"screening_period_lower {self.screening_period_lower}"
            )
            raise ValueError(msg)
        names = [country.name for country in self.countries]
        if len(names) != len(set(names)):
            msg = f"country names must be unique, got {names}"
            raise ValueError(msg)
        return self

    @property
    def sites(self) -> list[Site]:
        """All sites across every country, in country order."""
        return [site for country in self.countries for site in country.sites]

    @property
    def current_actual_enrollment(self) -> int:
        return sum(country.current_actual_enrollment for country in self.countries)

    def country(self, name: str) -> Country:
        """Look up a country by name.

        Raises:
            KeyError: If no country has that name.
        """
        for country in self.countries:
            if country.name == name:
                return country
        raise KeyError(name)
