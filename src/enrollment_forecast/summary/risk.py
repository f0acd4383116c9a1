"""Risk-quantified queries over simulated iterations.

A :class:`RiskEngine` answers questions such as "by what date will we reach
200 patients with 80% confidence?" or "how sure are we of 10 active sites by
31 December?".  It is bound to a span policy that decides which dates of an
iteration are covered by data: accrual queries use the first screening to the
last enrollment, start-up queries the first selection visit to the last
initiation visit.

Risk levels are fractions in ``[0, 1]``: a risk of 0.8 reads the 20th
percentile of the simulated values, so 80% of iterations did at least as
well.
"""

import math
from datetime import date, timedelta

import numpy as np

from enrollment_forecast.errors import (
    DateOutOfRangeError,
    PercentileOutOfRangeError,
    TargetExceedsObservedError,
)
from enrollment_forecast.models.simulation import (
    Series,
    SeriesAccessor,
    SimulationValues,
    resolve_series,
)
from enrollment_forecast.models.summary import (
    AccrualValueByDate,
    DateSpan,
    MeanAndErrorEstimatesDates,
)
from enrollment_forecast.pipeline.logging import log_query
from enrollment_forecast.simulation.matrix import (
    accrual_span,
    date_range,
    start_up_span,
)
from enrollment_forecast.summary.statistics import (
    SpanPolicy,
    aligned_span,
    percentile,
    values_on,
)

# Fractions of the target reported by get_mean_and_error_based_off_risk.
MEAN_AND_ERROR_FRACTIONS: tuple[int, ...] = (1, 25, 50, 75, 100)


class RiskEngine:
    """Percentile, probability and mean/error queries for one span policy.

    Args:
        span_of: Returns the covered date span of one iteration.
    """

    def __init__(self, span_of: SpanPolicy) -> None:
        self.span_of = span_of

    @classmethod
    def for_accrual(cls) -> "RiskEngine":
        """Engine for screening, enrollment and randomization series."""
        return cls(accrual_span)

    @classmethod
    def for_start_up(cls) -> "RiskEngine":
        """Engine for site selection and initiation series."""
        return cls(start_up_span)

    def date_span(self, values: list[SimulationValues]) -> DateSpan:
        """Aligned span across all iterations."""
        return aligned_span(values, self.span_of)

    def calculate_probability_of_success(
        self,
        on_date: date,
        target: int,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> float:
        """Probability that *target* has been reached by *on_date*.

        Returns:
            0 before the aligned span, 1 after it, otherwise ``(100 - p) / 100``
            for the smallest percentile ``p`` whose value reaches *target*.

        Raises:
            TargetExceedsObservedError: If no iteration ever reaches *target*.
        """
        log_query("calculate_probability_of_success", on_date=on_date, target=target)
        accessor = resolve_series(series)
        self._check_target(target, values, accessor)

        span = self.date_span(values)
        if span.is_empty or on_date < span.start:
            return 0.0
        if on_date > span.end:
            return 1.0

        day_values = values_on(on_date, values, accessor, self.span_of)
        for p in range(101):
            if percentile(day_values, p) >= target:
                return (100 - p) / 100
        return 0.0

    def get_accrued_based_on_date_and_risk(
        self,
        on_date: date,
        risk: float,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> int:
        """Accrual reached by *on_date* at confidence *risk*.

        Raises:
            PercentileOutOfRangeError: If *risk* is outside ``[0, 1]``.
            DateOutOfRangeError: If *on_date* is outside the aligned span.
        """
        log_query("get_accrued_based_on_date_and_risk", on_date=on_date, risk=risk)
        cut = _percentile_cut(risk)
        accessor = resolve_series(series)

        span = self.date_span(values)
        if span.is_empty or not span.start <= on_date <= span.end:
            raise DateOutOfRangeError(on_date, span.start, span.end)

        day_values = values_on(on_date, values, accessor, self.span_of)
        return round(percentile(day_values, cut))

    def get_date_based_off_risk(
        self,
        risk: float,
        target: int,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> date | None:
        """First date on which *target* is reached at confidence *risk*.

        Returns:
            The date, or ``None`` when the target is not reached at that
            confidence inside the aligned span.

        Raises:
            PercentileOutOfRangeError: If *risk* is outside ``[0, 1]``.
            TargetExceedsObservedError: If no iteration ever reaches *target*.
        """
        log_query("get_date_based_off_risk", risk=risk, target=target)
        cut = _percentile_cut(risk)
        accessor = resolve_series(series)
        self._check_target(target, values, accessor)

        span = self.date_span(values)
        if span.is_empty:
            return None
        for day in date_range(span.start, span.end):
            if percentile(values_on(day, values, accessor, self.span_of), cut) >= target:
                return day
        return None

    def calculate_probability_of_success_dates(
        self,
        risks: list[float],
        target: int,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> dict[float, date | None]:
        """:meth:`get_date_based_off_risk` for several risk levels."""
        return {risk: self.get_date_based_off_risk(risk, target, values, series) for risk in risks}

    def get_mean_and_error_based_off_risk(
        self,
        target: int,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> dict[int, MeanAndErrorEstimatesDates]:
        """Mean date and one-sigma band for reaching fractions of *target*.

        Keys are 1 (first patient), 25, 50, 75 and 100 (percent of target).
        The band is the floor of the sample standard deviation, in days, of
        each iteration's reaching date.

        Raises:
            TargetExceedsObservedError: If some iteration never reaches one
                of the fractional targets.
        """
        log_query("get_mean_and_error_based_off_risk", target=target)
        accessor = resolve_series(series)
        estimates: dict[int, MeanAndErrorEstimatesDates] = {}

        for fraction in MEAN_AND_ERROR_FRACTIONS:
            if fraction == 1:
                fraction_target = 1
            else:
                fraction_target = math.ceil(target * fraction / 100)
            reached = [self._first_date_reaching(v, accessor, fraction_target) for v in values]
            if not reached or any(d is None for d in reached):
                observed = max(
                    (max(accessor(v).values(), default=0) for v in values), default=0
                )
                raise TargetExceedsObservedError(
                    fraction_target,
                    observed,
                    detail=f"{sum(d is None for d in reached)} iteration(s) never reach it",
                )

            latest = max(reached)
            offsets = np.array([(latest - d).days for d in reached], dtype=float)
            std_days = math.floor(offsets.std(ddof=1)) if offsets.size > 1 else 0
            mean_date = date.fromordinal(round(np.mean([d.toordinal() for d in reached])))
            estimates[fraction] = MeanAndErrorEstimatesDates(
                mean_date=mean_date,
                std_dev_in_days=std_days,
                plus_one_std_dev_date=mean_date + timedelta(days=std_days),
                minus_one_std_dev_date=mean_date - timedelta(days=std_days),
            )
        return estimates

    def get_projected_accrual_line_values(
        self,
        risk: float,
        values: list[SimulationValues],
        series: Series | SeriesAccessor,
    ) -> list[AccrualValueByDate]:
        """Per-day accrual at confidence *risk* over the aligned span.

        Raises:
            PercentileOutOfRangeError: If *risk* is outside ``[0, 1]``.
        """
        log_query("get_projected_accrual_line_values", risk=risk)
        cut = _percentile_cut(risk)
        accessor = resolve_series(series)

        span = self.date_span(values)
        if span.is_empty:
            return []
        return [
            AccrualValueByDate(
                accrual_date=day,
                accrual_day=offset,
                accrual_value=percentile(values_on(day, values, accessor, self.span_of), cut),
            )
            for offset, day in enumerate(date_range(span.start, span.end))
        ]

    def _check_target(
        self, target: int, values: list[SimulationValues], accessor: SeriesAccessor
    ) -> None:
        observed = max((max(accessor(v).values(), default=0) for v in values), default=0)
        if target > observed:
            raise TargetExceedsObservedError(target, observed)

    @staticmethod
    def _first_date_reaching(
        values: SimulationValues, accessor: SeriesAccessor, target: int
    ) -> date | None:
        for day, count in accessor(values).items():
            if count >= target:
                return day
        return None


def _percentile_cut(risk: float) -> int:
    if not 0 <= risk <= 1:
        raise PercentileOutOfRangeError(risk)
    return 100 - round(risk * 100)
