"""Simulation strategies: how a run draws start-up and screening values.

A strategy is selected once per run and injected into
:class:`~enrollment_forecast.pipeline.orchestrator.MonteCarloEngine`.

- :class:`BaselineStrategy` plans a trial from scratch: every site draws its
  start-up time and screening rate from the baseline distributions.
- :class:`ReprojectionStrategy` re-forecasts a running trial: sites with a
  recorded initiation visit keep it, screening rates come from the
  reprojection distribution (or the gamma posterior of the observed
  enrollment) and the simulation never starts in the past.
"""

from datetime import date, timedelta
from enum import StrEnum
from typing import Protocol, runtime_checkable

from numpy.random import Generator

from enrollment_forecast.models.distributions import DistributionKind, DistributionParameter
from enrollment_forecast.models.trial import Site
from enrollment_forecast.simulation.accrual import days_open


class SimulationMode(StrEnum):
    """Available simulation strategies."""

    BASELINE = "baseline"
    REPROJECTION = "reprojection"


@runtime_checkable
class SimulationStrategy(Protocol):
    """The four operations the engine delegates to a strategy.

    ``today`` is the date used wherever a site has no recorded visit yet.
    """

    today: date

    def generate_start_up_value(self, site: Site, rng: Generator) -> float:
        """Draw the site start-up (SSU) duration in days."""
        ...

    def generate_screening_rate(self, site: Site, rng: Generator) -> float:
        """Draw the site's mean daily screening rate."""
        ...

    def generate_initiation_date(self, site: Site, start_up_value: float) -> date:
        """Return the site initiation visit (SIV) date for a drawn SSU value."""
        ...

    def get_simulation_start_date(self, trial_start_date: date) -> date:
        """Return the first simulated day."""
        ...


class BaselineStrategy:
    """Plan enrollment from the baseline distributions.

    Args:
        today: Date used when a site has no selection visit yet.  Defaults to
            :func:`datetime.date.today` at construction.
    """

    def __init__(self, today: date | None = None) -> None:
        self.today = today or date.today()

    def generate_start_up_value(self, site: Site, rng: Generator) -> float:
        return site.baseline_ssu.sample(rng)

    def generate_screening_rate(self, site: Site, rng: Generator) -> float:
        return site.baseline_screening.sample(rng)

    def generate_initiation_date(self, site: Site, start_up_value: float) -> date:
        if site.ssv_date is None:
            return self.today
        return site.ssv_date + timedelta(days=round(start_up_value) + site.site_initiation_delay)

    def get_simulation_start_date(self, trial_start_date: date) -> date:
        return trial_start_date


class ReprojectionStrategy(BaselineStrategy):
    """Re-forecast a running trial.

    Sites that already had their initiation visit contribute a start-up value
    of 0 and keep their recorded SIV date.  Screening rates come from
    :meth:`reprojection_screening`.
    """

    def generate_start_up_value(self, site: Site, rng: Generator) -> float:
        if site.siv_date is not None:
            return 0.0
        return super().generate_start_up_value(site, rng)

    def generate_screening_rate(self, site: Site, rng: Generator) -> float:
        return self.reprojection_screening(site).sample(rng)

    def reprojection_screening(self, site: Site) -> DistributionParameter:
        """Screening distribution sampled for *site* in a reprojection run.

        An explicit ``reprojection_screening`` wins.  An initiated site with a
        gamma baseline gets the posterior after its ``current_enrollment``
        over the days it has been open as of ``today``.  Any other site keeps
        its baseline distribution.
        """
        if site.reprojection_screening is not None:
            return site.reprojection_screening
        baseline = site.baseline_screening
        if site.siv_date is None or baseline.kind != DistributionKind.GAMMA:
            return baseline
        return baseline.updated_for_reprojection(
            site.current_enrollment, days_open(site.siv_date, self.today)
        )

    def generate_initiation_date(self, site: Site, start_up_value: float) -> date:
        if site.siv_date is not None:
            return site.siv_date
        selection = site.ssv_date or self.today
        return selection + timedelta(days=round(start_up_value) + site.site_initiation_delay)

    def get_simulation_start_date(self, trial_start_date: date) -> date:
        return max(trial_start_date, self.today)


def get_strategy(mode: SimulationMode | str, today: date | None = None) -> SimulationStrategy:
    """Build the strategy for *mode*.

    Raises:
        ValueError: If *mode* is not a known simulation mode.
    """
    mode = SimulationMode(mode)
    if mode == SimulationMode.REPROJECTION:
        return ReprojectionStrategy(today)
    return BaselineStrategy(today)
