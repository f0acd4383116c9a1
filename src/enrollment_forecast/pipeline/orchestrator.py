"""Monte Carlo engine running the eight-stage simulation pipeline.

Stages, each a barrier before the next:

1. Pre-generate per-site random draws (parallel over sites).
2. Simulate patient accrual (parallel over iterations).
3. Apply enrollment caps (parallel over iterations).
4. Roll up site start-up accrual (sequential).
5. Prepare per-country result slots (parallel over countries).
6. Build the start-up date matrix (parallel over iterations).
7. Build the accrual date matrix (parallel over iterations).
8. Generate per-day summaries (sequential).

Parallel stages fan out with ``asyncio.gather()`` over ``asyncio.to_thread``
tasks.  Every iteration owns its result slot, so workers never share mutable
state within a stage.  Random streams are spawned from a single
``SeedSequence``: one per site for stage 1 and one per iteration for stage 2,
so a seeded run is reproducible regardless of thread scheduling.
"""

import asyncio
import time
import uuid
from collections.abc import Callable, Sequence
from typing import TypeVar

import numpy as np
from loguru import logger

from enrollment_forecast.display.callbacks import ProgressCallback
from enrollment_forecast.errors import (
    IterationFailedError,
    SimulationCancelled,
    suggestion_for,
)
from enrollment_forecast.models.pipeline import (
    STAGE_NAMES,
    SimulationRunState,
    StageStatus,
)
from enrollment_forecast.models.simulation import (
    CapOutcome,
    SimulationValues,
    SSUAccrualInformation,
)
from enrollment_forecast.models.trial import Country, Site, Trial
from enrollment_forecast.pipeline.logging import (
    log_iteration_failure,
    log_stage_complete,
    log_stage_start,
)
from enrollment_forecast.pipeline.progress import CancellationToken, ProgressTracker
from enrollment_forecast.simulation.accrual import (
    DEFAULT_HORIZON_DAYS,
    estimate_enrollment_days,
    simulate_patient_accrual,
)
from enrollment_forecast.simulation.allocator import apply_caps
from enrollment_forecast.simulation.matrix import (
    accrual_dates,
    build_accrual_matrix,
    build_ssu_matrix,
)
from enrollment_forecast.simulation.strategy import SimulationStrategy
from enrollment_forecast.summary.statistics import (
    generate_accrual_summary,
    generate_ssu_summary,
)

T = TypeVar("T")
R = TypeVar("R")


class MonteCarloEngine:
    """Runs the enrollment simulation for a trial.

    The input trial is never modified: :meth:`simulate` deep-copies it and
    returns the copy carrying results and summaries, so concurrent runs over
    the same source trial are isolated.

    Args:
        strategy: Baseline or reprojection strategy.
        callback: Optional progress observer.
        reporting_interval: Report progress after every Nth unit of work.
        horizon_days: Maximum simulated days per country and iteration.
        seed: Seed for reproducible runs; ``None`` draws fresh entropy.
        run_id: Identifier recorded in :attr:`state`.
    """

    def __init__(
        self,
        strategy: SimulationStrategy,
        callback: ProgressCallback | None = None,
        reporting_interval: int = 50,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        seed: int | None = None,
        run_id: str | None = None,
    ) -> None:
        self.strategy = strategy
        self.callback = callback
        self.reporting_interval = max(1, reporting_interval)
        self.horizon_days = horizon_days
        self.seed = seed
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.state: SimulationRunState | None = None

    def run(
        self,
        trial: Trial,
        iterations: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> Trial:
        """Synchronous wrapper around :meth:`simulate`."""
        return asyncio.run(self.simulate(trial, iterations=iterations, cancel=cancel))

    async def simulate(
        self,
        trial: Trial,
        iterations: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> Trial:
        """Simulate *trial* and return a copy carrying the results.

        Args:
            trial: Fully populated trial graph (not modified).
            iterations: Overrides ``trial.number_of_iterations`` when given.
            cancel: Token checked at every progress report point.

        Returns:
            The simulated copy of *trial*.

        Raises:
            SimulationCancelled: If *cancel* was set during the run.
            IterationFailedError: If cap application failed for any iteration.
            ConfigurationError: If the inputs violate an invariant.
        """
        trial = trial.model_copy(deep=True)
        if iterations is not None:
            trial.number_of_iterations = iterations
        if trial.estimated_enrollment_days is None:
            trial.estimated_enrollment_days = estimate_enrollment_days(trial)

        n = trial.number_of_iterations
        self.state = SimulationRunState.new(
            self.run_id, n, type(self.strategy).__name__, self.seed
        )
        logger.info(
            "Simulating '{name}': {n} iteration(s), {countries} country(ies), "
            "{sites} site(s), {days} pre-generated day(s)",
            name=trial.name,
            n=n,
            countries=len(trial.countries),
            sites=len(trial.sites),
            days=trial.estimated_enrollment_days,
        )

        root = np.random.SeedSequence(self.seed)
        site_seeds, iteration_seeds = root.spawn(2)
        site_rngs = [np.random.default_rng(s) for s in site_seeds.spawn(len(trial.sites))]
        iteration_rngs = [np.random.default_rng(s) for s in iteration_seeds.spawn(n)]

        t_start = time.monotonic()
        stage = 1
        try:
            await self._stage1_generate_values(trial, site_rngs, cancel)
            stage = 2
            await self._stage2_patient_accrual(trial, iteration_rngs, cancel)
            stage = 3
            await self._stage3_apply_caps(trial, cancel)
            stage = 4
            await self._stage4_ssu_accrual(trial, cancel)
            stage = 5
            await self._stage5_prepare_countries(trial, cancel)
            stage = 6
            await self._stage6_ssu_matrix(trial, cancel)
            stage = 7
            await self._stage7_accrual_matrix(trial, cancel)
            stage = 8
            await self._stage8_summaries(trial, cancel)
        except SimulationCancelled as e:
            logger.warning("Simulation cancelled during stage {stage}", stage=e.stage)
            self._mark(e.stage, StageStatus.CANCELLED)
            self.state.status = "cancelled"
            if self.callback:
                self.callback.on_simulation_cancelled(e.stage)
            raise
        except Exception as e:
            logger.error("Simulation failed in stage {stage}: {error}", stage=stage, error=e)
            self._mark(stage, StageStatus.FAILED, error=str(e))
            self.state.status = "failed"
            if self.callback:
                self.callback.on_simulation_fail(stage, str(e)[:500], suggestion_for(e))
            raise

        total = time.monotonic() - t_start
        self.state.status = "completed"
        self.state.current_stage = None
        logger.info("Simulation completed in {total:.2f}s", total=total)
        if self.callback:
            self.callback.on_simulation_complete(n, total)
        return trial

    # ------------------------------------------------------------------
    # Stage plumbing
    # ------------------------------------------------------------------

    def _begin(self, stage: int, total: int) -> float:
        name = STAGE_NAMES[stage]
        log_stage_start(stage, name, total)
        self._mark(stage, StageStatus.RUNNING)
        if self.callback:
            self.callback.on_stage_start(stage, name, total)
        return time.monotonic()

    def _end(self, stage: int, t0: float) -> None:
        duration = time.monotonic() - t0
        log_stage_complete(stage, STAGE_NAMES[stage], duration)
        self._mark(stage, StageStatus.COMPLETED, duration=duration)
        if self.callback:
            self.callback.on_stage_complete(stage, duration)

    def _mark(
        self,
        stage: int,
        status: StageStatus,
        duration: float | None = None,
        error: str | None = None,
    ) -> None:
        if self.state is None:
            return
        stage_state = self.state.stages[stage]
        stage_state.status = status
        if duration is not None:
            stage_state.duration_seconds = duration
        if error is not None:
            stage_state.error = error
        self.state.current_stage = stage

    def _tracker(
        self,
        stage: int,
        message: str,
        cancel: CancellationToken | None,
        interval: int | None = None,
    ) -> ProgressTracker:
        return ProgressTracker(
            stage,
            message,
            interval or self.reporting_interval,
            callback=self.callback,
            cancel=cancel,
        )

    @staticmethod
    async def _fan_out(fn: Callable[[T], R], items: Sequence[T]) -> list[R]:
        """Run *fn* over *items* in worker threads and wait for all of them."""
        return await asyncio.gather(*(asyncio.to_thread(fn, item) for item in items))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _stage1_generate_values(
        self,
        trial: Trial,
        site_rngs: list[np.random.Generator],
        cancel: CancellationToken | None,
    ) -> None:
        sites = trial.sites
        n = trial.number_of_iterations
        days = trial.estimated_enrollment_days
        # One progress unit per site and iteration.
        t0 = self._begin(1, len(sites) * n)
        tracker = self._tracker(1, "Generating values for simulation", cancel)

        def generate(index: int) -> None:
            site, rng = sites[index], site_rngs[index]
            slots = []
            for _ in range(n):
                ssu_value = self.strategy.generate_start_up_value(site, rng)
                rate = max(0.0, self.strategy.generate_screening_rate(site, rng))
                slots.append(
                    SimulationValues(
                        initial_screening_rate=rate,
                        ssu_value=ssu_value,
                        siv_date=self.strategy.generate_initiation_date(site, ssu_value),
                        ssv_date=site.ssv_date or self.strategy.today,
                        screening_values=rng.poisson(rate, size=days).tolist(),
                    )
                )
                tracker.tick()
            site.results.simulation_values_list = slots

        await self._fan_out(generate, range(len(sites)))
        self._end(1, t0)

    async def _stage2_patient_accrual(
        self,
        trial: Trial,
        iteration_rngs: list[np.random.Generator],
        cancel: CancellationToken | None,
    ) -> None:
        n = trial.number_of_iterations
        t0 = self._begin(2, n)
        tracker = self._tracker(2, "Generating patient accrual", cancel)
        start_date = self.strategy.get_simulation_start_date(trial.study_start_date)
        trial.results.reset(n)

        def accrue(i: int) -> None:
            patients = simulate_patient_accrual(
                trial, i, start_date, iteration_rngs[i], self.horizon_days
            )
            trial.results.simulation_values_list[i] = SimulationValues(patient_accrual=patients)
            tracker.tick()

        await self._fan_out(accrue, range(n))
        self._end(2, t0)

    async def _stage3_apply_caps(self, trial: Trial, cancel: CancellationToken | None) -> None:
        n = trial.number_of_iterations
        t0 = self._begin(3, n)
        tracker = self._tracker(3, "Setting patient caps", cancel)
        start_date = self.strategy.get_simulation_start_date(trial.study_start_date)

        def cap(i: int) -> CapOutcome:
            current = trial.results.simulation_values_list[i]
            try:
                current.patient_accrual = apply_caps(
                    current.patient_accrual, trial.countries, trial.enrollment_target
                )
                current.earliest_accrual_date, current.latest_accrual_date = accrual_dates(
                    current.patient_accrual, fallback=start_date
                )
                outcome = CapOutcome(iteration=i, success=True)
            except Exception as e:  # noqa: BLE001
                log_iteration_failure(3, i, str(e))
                outcome = CapOutcome(iteration=i, success=False, error=str(e))
            tracker.tick()
            return outcome

        outcomes = await self._fan_out(cap, range(n))
        failures = {o.iteration: o.error or "unknown error" for o in outcomes if not o.success}
        if failures:
            raise IterationFailedError(3, failures)
        self._end(3, t0)

    async def _stage4_ssu_accrual(self, trial: Trial, cancel: CancellationToken | None) -> None:
        n = trial.number_of_iterations
        t0 = self._begin(4, n)
        tracker = self._tracker(4, "Calculating SSU accrual", cancel)
        sites = trial.sites

        for i in range(n):
            current = trial.results.simulation_values_list[i]
            draws: list[tuple[Site, SimulationValues]] = [
                (site, site.results.simulation_values_list[i]) for site in sites
            ]
            if draws:
                current.earliest_siv_date = min(d.siv_date for _, d in draws)
                current.latest_siv_date = max(d.siv_date for _, d in draws)
                current.earliest_ssv_date = min(d.ssv_date for _, d in draws)
                current.latest_ssv_date = max(d.ssv_date for _, d in draws)
            current.ssu_accrual = [
                SSUAccrualInformation(
                    country=site.country,
                    site=site.name,
                    ssu_time=d.ssu_value,
                    siv_date=d.siv_date,
                    ssv_date=d.ssv_date,
                )
                for site, d in draws
            ]
            tracker.tick()
        self._end(4, t0)

    async def _stage5_prepare_countries(
        self, trial: Trial, cancel: CancellationToken | None
    ) -> None:
        t0 = self._begin(5, len(trial.countries))
        tracker = self._tracker(5, "Preparing for summarization", cancel, interval=1)
        n = trial.number_of_iterations

        def prepare(country: Country) -> None:
            country.results.reset(n)
            tracker.tick()

        await self._fan_out(prepare, trial.countries)
        self._end(5, t0)

    async def _stage6_ssu_matrix(self, trial: Trial, cancel: CancellationToken | None) -> None:
        n = trial.number_of_iterations
        t0 = self._begin(6, n)
        tracker = self._tracker(6, "Building SSU matrix", cancel)

        def build(i: int) -> None:
            build_ssu_matrix(trial, i)
            tracker.tick()

        await self._fan_out(build, range(n))
        self._end(6, t0)

    async def _stage7_accrual_matrix(
        self, trial: Trial, cancel: CancellationToken | None
    ) -> None:
        n = trial.number_of_iterations
        t0 = self._begin(7, n)
        tracker = self._tracker(7, "Building accrual matrix", cancel)

        def build(i: int) -> None:
            build_accrual_matrix(trial, i)
            tracker.tick()

        await self._fan_out(build, range(n))
        self._end(7, t0)

    async def _stage8_summaries(self, trial: Trial, cancel: CancellationToken | None) -> None:
        t0 = self._begin(8, len(trial.countries) + 1)
        tracker = self._tracker(8, "Generating country accrual summary", cancel, interval=2)

        for country in trial.countries:
            values = country.results.simulation_values_list
            country.ssu_summary = generate_ssu_summary(values)
            country.accrual_summary = generate_accrual_summary(values)
            tracker.tick()

        tracker.report(None, "Generating trial accrual summary")
        values = trial.results.simulation_values_list
        trial.ssu_summary = generate_ssu_summary(values)
        trial.accrual_summary = generate_accrual_summary(values)
        self._end(8, t0)
