"""Day-by-day virtual patient accrual for one iteration."""

import math
from datetime import date, timedelta

from numpy.random import Generator

from enrollment_forecast.errors import AccrualStalledError, UnknownAccrualConstraintError
from enrollment_forecast.models.distributions import DistributionParameter
from enrollment_forecast.models.simulation import PatientAccrualInformation
from enrollment_forecast.models.trial import AccrualConstraint, Country, Site, Trial

# Roughly thirty years of simulated days.
DEFAULT_HORIZON_DAYS = 10950


def continue_enrolling(country: Country, enrolled_so_far: int, target: int) -> bool:
    """Whether *country* should simulate another day.

    Args:
        country: Country being simulated.
        enrolled_so_far: Actual plus simulated enrollment so far.
        target: Trial-wide enrollment target.

    Raises:
        UnknownAccrualConstraintError: If the country's constraint is unknown.
    """
    match country.accrual_constraint:
        case AccrualConstraint.MINIMUM_PATIENT | AccrualConstraint.EXACT_PATIENT:
            return enrolled_so_far < country.min_patient_enrollment
        case AccrualConstraint.MAXIMUM_PATIENT | AccrualConstraint.BETWEEN:
            return enrolled_so_far < country.max_patient_enrollment
        case AccrualConstraint.NONE:
            return enrolled_so_far < target
        case _:
            raise UnknownAccrualConstraintError(country.name, country.accrual_constraint)


def populate_enrollment(
    day: int,
    current: date,
    number_screened: int,
    site: Site,
    trial: Trial,
    rng: Generator,
) -> tuple[list[PatientAccrualInformation], int]:
    """Decide screening outcome and enrollment timing for one site-day.

    Each screened patient passes screening with probability
    ``1 - screen_fail_rate``.  A passing patient enrolls after a whole number
    of days drawn uniformly from the trial's screening period (inclusive).

    Returns:
        The patient records and how many of them enrolled.
    """
    patients: list[PatientAccrualInformation] = []
    enrolled = 0
    for _ in range(number_screened):
        patient = PatientAccrualInformation(
            country=site.country,
            site=site.name,
            screening_day=day,
            screening_date=current,
        )
        if rng.random() < 1 - trial.screen_fail_rate:
            offset = int(
                rng.integers(trial.screening_period_lower, trial.screening_period_upper + 1)
            )
            patient.enrollment_day = day + offset
            patient.enrollment_date = current + timedelta(days=offset)
            if trial.randomization_delay_days is not None:
                patient.randomized_day = patient.enrollment_day + trial.randomization_delay_days
                patient.randomized_date = patient.enrollment_date + timedelta(
                    days=trial.randomization_delay_days
                )
            enrolled += 1
        patients.append(patient)
    return patients, enrolled


def _all_sites_closed(country: Country, current: date) -> bool:
    return all(
        site.enrollment_stop_date is not None and current >= site.enrollment_stop_date
        for site in country.sites
    )


def simulate_patient_accrual(
    trial: Trial,
    iteration: int,
    start_date: date,
    rng: Generator,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> list[PatientAccrualInformation]:
    """Simulate every country of *trial* for one iteration.

    Each country walks forward from *start_date* until its stopping condition
    (:func:`continue_enrolling`) is met.  The first day is always simulated.
    Site draws come from the slot ``site.results.simulation_values_list[iteration]``
    filled by the pre-generation stage.

    Args:
        trial: Trial with pre-generated site draws.
        iteration: Iteration index.
        start_date: First simulated day.
        rng: Generator owned by this iteration.
        horizon_days: Maximum simulated days per country.

    Returns:
        Concatenated patient records of all countries.

    Raises:
        AccrualStalledError: If a country with open sites does not meet its
            stopping condition within *horizon_days*.
    """
    trial_enrollment: list[PatientAccrualInformation] = []
    for country in trial.countries:
        if not country.sites:
            continue
        enrolled_so_far = country.current_actual_enrollment
        day = -1
        while True:
            day += 1
            if day >= horizon_days:
                raise AccrualStalledError(country.name, iteration, horizon_days)
            current = start_date + timedelta(days=day)
            if _all_sites_closed(country, current):
                break
            for site in country.sites:
                draws = site.results.simulation_values_list[iteration]
                if not site.is_open(draws.siv_date, current):
                    continue
                if day < len(draws.screening_values):
                    number_screened = draws.screening_values[day]
                else:
                    number_screened = int(rng.poisson(draws.initial_screening_rate))
                if number_screened <= 0:
                    continue
                patients, enrolled = populate_enrollment(
                    day, current, number_screened, site, trial, rng
                )
                trial_enrollment.extend(patients)
                enrolled_so_far += enrolled
            if not continue_enrolling(country, enrolled_so_far, trial.enrollment_target):
                break
    return trial_enrollment


def _finite_upper(distribution: DistributionParameter) -> float:
    if distribution.upper_bound is not None and math.isfinite(distribution.upper_bound):
        return distribution.upper_bound
    return distribution.mean + 3 * distribution.standard_deviation


def estimate_enrollment_days(trial: Trial, multiplier: float = 1.5) -> int:
    """Estimate a worst-case enrollment length used to size screening arrays.

    Assumes every site takes the longest start-up time, every patient the
    longest screening period, and every site screens at the slowest mean
    rate.  Sampling randomness and caps are not accounted for, hence the
    *multiplier*.

    Args:
        trial: Trial to estimate.
        multiplier: Safety factor applied to the worst-case length.

    Returns:
        Estimated number of days, at least 1.
    """
    sites = trial.sites
    if not sites:
        return 1
    max_ssu = max(_finite_upper(site.baseline_ssu) for site in sites)
    lowest_rate = min(site.baseline_screening.mean for site in sites)
    if lowest_rate > 0:
        worst_case_enrollment = round(trial.enrollment_target / (len(sites) * lowest_rate))
    else:
        worst_case_enrollment = trial.enrollment_target
    days = (max_ssu + trial.screening_period_upper + worst_case_enrollment) * multiplier
    return max(1, round(days))


def days_open(siv_date: date | None, as_of: date) -> int:
    """Days a site has been open for enrollment as of *as_of* (0 if not yet open)."""
    if siv_date is None:
        return 0
    return max(0, (as_of - siv_date).days)
