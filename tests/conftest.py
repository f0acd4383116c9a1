"""Shared pytest fixtures for the enrollment-forecast test suite."""

from datetime import date, timedelta

import pytest

from enrollment_forecast.models.distributions import DistributionParameter
from enrollment_forecast.models.simulation import PatientAccrualInformation, SimulationValues
from enrollment_forecast.models.trial import AccrualConstraint, Country, Site, Trial
from enrollment_forecast.simulation.strategy import BaselineStrategy

START = date(2024, 1, 1)


def make_site(
    name: str,
    country: str = "",
    ssu: DistributionParameter | None = None,
    screening: DistributionParameter | None = None,
    **kwargs,
) -> Site:
    """Site with a constant 10-day start-up and 5 screened per day by default."""
    return Site(
        name=name,
        country=country,
        ssv_date=kwargs.pop("ssv_date", START),
        baseline_ssu=ssu or DistributionParameter.constant(10),
        baseline_screening=screening or DistributionParameter.constant(5),
        **kwargs,
    )


def make_country(
    name: str,
    constraint: AccrualConstraint = AccrualConstraint.NONE,
    min_enrollment: int = 0,
    max_enrollment: int = 0,
    sites: int = 1,
    **kwargs,
) -> Country:
    site_kwargs = kwargs.pop("site_kwargs", {})
    return Country(
        name=name,
        accrual_constraint=constraint,
        min_patient_enrollment=min_enrollment,
        max_patient_enrollment=max_enrollment,
        sites=[make_site(f"{name}-{i + 1}", name, **site_kwargs) for i in range(sites)],
        **kwargs,
    )


def make_patient(
    country: str,
    enrolled_on: date | None,
    screened_on: date | None = None,
    site: str = "S1",
) -> PatientAccrualInformation:
    """Patient record; ``enrolled_on=None`` makes a screen failure."""
    screened_on = screened_on or enrolled_on or START
    return PatientAccrualInformation(
        country=country,
        site=site,
        screening_day=(screened_on - START).days,
        screening_date=screened_on,
        enrollment_day=(enrolled_on - START).days if enrolled_on else None,
        enrollment_date=enrolled_on,
    )


def make_values(
    enrolled: list[int],
    start: date = START,
    screened: list[int] | None = None,
) -> SimulationValues:
    """Iteration whose accrual span starts on *start* with the given cumulative counts."""
    days = [start + timedelta(days=i) for i in range(len(enrolled))]
    return SimulationValues(
        earliest_accrual_date=days[0],
        latest_accrual_date=days[-1],
        cumulated_enrolled=dict(zip(days, enrolled)),
        cumulated_screened=dict(zip(days, screened or enrolled)),
        cumulated_randomized=dict.fromkeys(days, 0),
    )


@pytest.fixture
def start() -> date:
    return START


@pytest.fixture
def baseline() -> BaselineStrategy:
    """Baseline strategy pinned to the test start date."""
    return BaselineStrategy(today=START)


@pytest.fixture
def single_country_trial() -> Trial:
    """One unconstrained country, one site opening on day 10, five patients a day."""
    return Trial(
        name="single",
        enrollment_target=50,
        number_of_iterations=20,
        study_start_date=START,
        countries=[make_country("US")],
    )


@pytest.fixture
def gamma_trial() -> Trial:
    """The reference scenario: gamma start-up (mean 10 days) and screening (mean 5/day)."""
    return Trial(
        name="gamma",
        enrollment_target=50,
        number_of_iterations=100,
        study_start_date=START,
        screening_period_lower=0,
        screening_period_upper=7,
        screen_fail_rate=0.2,
        countries=[
            make_country(
                "US",
                site_kwargs={
                    "ssu": DistributionParameter.gamma_from_mean_and_sd(10, 2),
                    "screening": DistributionParameter.gamma_from_mean_and_sd(5, 1),
                },
            )
        ],
    )


@pytest.fixture
def two_country_trial() -> Trial:
    """Country A capped at 20 patients, country B unconstrained, target 100."""
    return Trial(
        name="two",
        enrollment_target=100,
        number_of_iterations=30,
        study_start_date=START,
        screening_period_upper=3,
        screen_fail_rate=0.1,
        countries=[
            make_country("A", AccrualConstraint.MAXIMUM_PATIENT, max_enrollment=20, sites=2),
            make_country("B", sites=3),
        ],
    )
