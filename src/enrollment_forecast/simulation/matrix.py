"""Date-matrix construction: aligning iterations on a common calendar.

Iterations end on different dates.  For per-day statistics every iteration
must answer "how many by day d?" for any d, so each iteration gets gap-free
cumulative maps over its own span and :func:`get_or_extrapolate` extends them
(0 before the span, the final value after it).
"""

from bisect import bisect_right
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from typing import TypeVar

from enrollment_forecast.models.simulation import (
    PatientAccrualInformation,
    SimulationValues,
    SSUAccrualInformation,
)
from enrollment_forecast.models.summary import DateSpan
from enrollment_forecast.models.trial import Trial

T = TypeVar("T")


def get_or_extrapolate(cumulative: dict[date, int], day: date, span: DateSpan) -> int:
    """Read *cumulative* at *day*, extrapolating outside *span*.

    Args:
        cumulative: Gap-free cumulative map of one iteration.
        day: Requested date.
        span: The iteration's span for this series.

    Returns:
        The in-span value; 0 before the span or for an empty map; the value
        at the end of the span after it.
    """
    if day in cumulative:
        return cumulative[day]
    if not cumulative or span.is_empty or day < span.start:
        return 0
    if day > span.end and span.end in cumulative:
        return cumulative[span.end]
    return next(reversed(cumulative.values()))


def count_accrued(
    records: Iterable[T], field: Callable[[T], date | None], day: date
) -> int:
    """Count records whose *field* date is set and on or before *day*."""
    count = 0
    for record in records:
        value = field(record)
        if value is not None and value <= day:
            count += 1
    return count


def cumulate(
    records: Iterable[T], field: Callable[[T], date | None], span: DateSpan
) -> dict[date, int]:
    """Gap-free cumulative map of *field* over *span*.

    Equivalent to :func:`count_accrued` for every day of the span, computed
    with one sort instead of a scan per day.
    """
    dates = sorted(d for d in map(field, records) if d is not None)
    cumulative: dict[date, int] = {}
    for day in date_range(span.start, span.end):
        cumulative[day] = bisect_right(dates, day)
    return cumulative


def date_range(start: date, end: date) -> Iterable[date]:
    """Yield every date from *start* to *end* inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def accrual_dates(
    patients: list[PatientAccrualInformation], fallback: date | None = None
) -> tuple[date | None, date | None]:
    """Earliest screening date and latest enrollment/randomization date.

    When nobody enrolled the latest screening date closes the span.  An empty
    list yields ``(fallback, fallback)``.
    """
    if not patients:
        return fallback, fallback
    earliest = min(p.screening_date for p in patients)
    closing = [
        d for p in patients for d in (p.enrollment_date, p.randomized_date) if d is not None
    ]
    latest = max(closing) if closing else max(p.screening_date for p in patients)
    return earliest, latest


def accrual_span(values: SimulationValues) -> DateSpan:
    return DateSpan(start=values.earliest_accrual_date, end=values.latest_accrual_date)


def start_up_span(values: SimulationValues) -> DateSpan:
    """Span from the first selection visit to the last initiation visit.

    Recorded initiation visits can predate a defaulted selection visit, so
    both ends consider both series.
    """
    starts = [d for d in (values.earliest_ssv_date, values.earliest_siv_date) if d is not None]
    ends = [d for d in (values.latest_siv_date, values.latest_ssv_date) if d is not None]
    if not starts or not ends:
        return DateSpan()
    return DateSpan(start=min(starts), end=max(ends))


def _add_into(trial_map: dict[date, int], country_map: dict[date, int]) -> None:
    for day, value in country_map.items():
        trial_map[day] = trial_map.get(day, 0) + value


def build_ssu_matrix(trial: Trial, iteration: int) -> None:
    """Fill start-up cumulative maps of one iteration at country and trial level.

    Expects the trial slot to carry the rolled-up SSU accrual and the country
    slots to be prepared.
    """
    current = trial.results.simulation_values_list[iteration]
    span = start_up_span(current)
    trial_siv: dict[date, int] = {}
    trial_ssv: dict[date, int] = {}

    if not span.is_empty:
        for country in trial.countries:
            records = [r for r in current.ssu_accrual if r.country == country.name]
            if not records:
                continue
            country_values = country.results.simulation_values_list[iteration]
            country_values.earliest_siv_date = min(r.siv_date for r in records)
            country_values.latest_siv_date = max(r.siv_date for r in records)
            country_values.earliest_ssv_date = min(r.ssv_date for r in records)
            country_values.latest_ssv_date = max(r.ssv_date for r in records)

            country_values.cumulated_siv = cumulate(records, _siv_of, span)
            country_values.cumulated_ssv = cumulate(records, _ssv_of, span)
            _add_into(trial_siv, country_values.cumulated_siv)
            _add_into(trial_ssv, country_values.cumulated_ssv)

    current.cumulated_siv = trial_siv
    current.cumulated_ssv = trial_ssv


def build_accrual_matrix(trial: Trial, iteration: int) -> None:
    """Fill patient cumulative maps of one iteration at country and trial level.

    Country maps cover the iteration's trial-level span so that their sum is
    the trial map on every date of that span.
    """
    current = trial.results.simulation_values_list[iteration]
    span = accrual_span(current)
    trial_screened: dict[date, int] = {}
    trial_enrolled: dict[date, int] = {}
    trial_randomized: dict[date, int] = {}

    if not span.is_empty:
        for country in trial.countries:
            patients = [p for p in current.patient_accrual if p.country == country.name]
            if not patients:
                continue
            country_values = country.results.simulation_values_list[iteration]
            country_values.patient_accrual = patients
            (
                country_values.earliest_accrual_date,
                country_values.latest_accrual_date,
            ) = accrual_dates(patients)

            country_values.cumulated_screened = cumulate(patients, _screening_of, span)
            country_values.cumulated_enrolled = cumulate(patients, _enrollment_of, span)
            country_values.cumulated_randomized = cumulate(patients, _randomized_of, span)
            _add_into(trial_screened, country_values.cumulated_screened)
            _add_into(trial_enrolled, country_values.cumulated_enrolled)
            _add_into(trial_randomized, country_values.cumulated_randomized)

    if not span.is_empty and not trial_screened:
        # No country had patients: keep the span gap-free with zeros.
        for day in date_range(span.start, span.end):
            trial_screened[day] = trial_enrolled[day] = trial_randomized[day] = 0

    current.cumulated_screened = trial_screened
    current.cumulated_enrolled = trial_enrolled
    current.cumulated_randomized = trial_randomized


def _siv_of(record: SSUAccrualInformation) -> date:
    return record.siv_date


def _ssv_of(record: SSUAccrualInformation) -> date:
    return record.ssv_date


def _screening_of(patient: PatientAccrualInformation) -> date:
    return patient.screening_date


def _enrollment_of(patient: PatientAccrualInformation) -> date | None:
    return patient.enrollment_date


def _randomized_of(patient: PatientAccrualInformation) -> date | None:
    return patient.randomized_date
