"""Forecast report assembled from a simulated trial."""

from datetime import date
from pathlib import Path

from loguru import logger
from pydantic import BaseModel

from enrollment_forecast.errors import TargetExceedsObservedError
from enrollment_forecast.models.simulation import Series
from enrollment_forecast.models.summary import MeanAndErrorEstimatesDates
from enrollment_forecast.models.trial import Trial
from enrollment_forecast.summary.risk import RiskEngine
from enrollment_forecast.summary.statistics import observed_max, percentile, values_on


class RiskDates(BaseModel):
    """Dates reached at one confidence level (``None`` = not reached)."""

    risk: float
    enrollment_target_date: date | None
    all_sites_initiated_date: date | None


class CountryForecast(BaseModel):
    """Median and extreme total enrollment (actual plus simulated) of one country."""

    name: str
    accrual_constraint: str
    already_enrolled: int = 0
    median_enrolled: float
    max_enrolled: int


class ForecastReport(BaseModel):
    """Serializable answer to the configured forecast questions.

    ``target`` counts every patient, including the ``already_enrolled`` ones
    recorded before the run; simulated series are queried for the
    ``remaining_target``.
    """

    trial_name: str
    iterations: int
    target: int
    already_enrolled: int = 0
    remaining_target: int
    risk_dates: list[RiskDates]
    target_date: date | None = None
    probability_by_target_date: float | None = None
    enrollment_mean_and_error: dict[int, MeanAndErrorEstimatesDates] | None = None
    countries: list[CountryForecast] = []

    def save(self, path: Path) -> None:
        """Write the report as indented JSON."""
        path.write_text(self.model_dump_json(indent=2))


def build_forecast_report(
    trial: Trial,
    risk_levels: list[float],
    target: int | None = None,
    target_date: date | None = None,
) -> ForecastReport:
    """Answer the standard forecast questions for a simulated *trial*.

    Simulated series only count new patients, so every enrollment query asks
    for *target* minus the trial's current actual enrollment.  A target that
    is already met has no attainment dates and a probability of 1.

    Args:
        trial: Trial returned by the engine.
        risk_levels: Confidence levels for target-attainment dates.
        target: Total enrollment target; defaults to the trial target.
        target_date: Optional date for a probability-of-success figure.

    Raises:
        TargetExceedsObservedError: If no iteration reached the remaining target.
    """
    target = target or trial.enrollment_target
    already_enrolled = trial.current_actual_enrollment
    remaining = max(0, target - already_enrolled)
    values = trial.results.simulation_values_list
    accrual = RiskEngine.for_accrual()
    start_up = RiskEngine.for_start_up()
    site_count = len(trial.sites)

    if remaining:
        enrollment_dates = accrual.calculate_probability_of_success_dates(
            risk_levels, remaining, values, Series.ENROLLED
        )
    else:
        logger.info(
            "Target {target} already met by {actual} enrolled patient(s)",
            target=target,
            actual=already_enrolled,
        )
        enrollment_dates = dict.fromkeys(risk_levels)
    if site_count:
        siv_dates = start_up.calculate_probability_of_success_dates(
            risk_levels, site_count, values, Series.SIV
        )
    else:
        siv_dates = dict.fromkeys(risk_levels)

    report = ForecastReport(
        trial_name=trial.name,
        iterations=trial.number_of_iterations,
        target=target,
        already_enrolled=already_enrolled,
        remaining_target=remaining,
        risk_dates=[
            RiskDates(
                risk=risk,
                enrollment_target_date=enrollment_dates[risk],
                all_sites_initiated_date=siv_dates[risk],
            )
            for risk in risk_levels
        ],
    )

    if target_date is not None:
        report.target_date = target_date
        report.probability_by_target_date = (
            accrual.calculate_probability_of_success(
                target_date, remaining, values, Series.ENROLLED
            )
            if remaining
            else 1.0
        )

    if remaining:
        try:
            report.enrollment_mean_and_error = accrual.get_mean_and_error_based_off_risk(
                remaining, values, Series.ENROLLED
            )
        except TargetExceedsObservedError as e:
            logger.warning("Mean and error dates unavailable: {error}", error=e)

    for country in trial.countries:
        country_values = country.results.simulation_values_list
        span = accrual.date_span(country_values)
        finals = (
            values_on(span.end, country_values, Series.ENROLLED.of, accrual.span_of)
            if not span.is_empty
            else []
        )
        actual = country.current_actual_enrollment
        report.countries.append(
            CountryForecast(
                name=country.name,
                accrual_constraint=str(country.accrual_constraint),
                already_enrolled=actual,
                median_enrolled=actual + percentile(finals, 50),
                max_enrolled=actual
                + observed_max(country_values, Series.ENROLLED.of, accrual.span_of),
            )
        )
    return report
