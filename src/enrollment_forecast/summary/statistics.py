"""Cross-iteration statistics: percentiles, mean/error bands and per-day summaries."""

from collections.abc import Callable, Sequence
from datetime import date

import numpy as np

from enrollment_forecast.models.simulation import Series, SimulationValues
from enrollment_forecast.models.summary import (
    PERCENTILE_CUTS,
    DateSpan,
    MeanAndErrorEstimates,
    Percentiles,
    SummarizedAccrualResults,
    SummarizedSSUResults,
)
from enrollment_forecast.simulation.matrix import (
    accrual_span,
    date_range,
    get_or_extrapolate,
    start_up_span,
)

SpanPolicy = Callable[[SimulationValues], DateSpan]


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of *values* (no interpolation).

    Args:
        values: Sample values, in any order.
        p: Percentile in ``[0, 100]``.
    """
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p, method="inverted_cdf"))


def calculate_percentiles(values: Sequence[float]) -> Percentiles:
    """Compute the reported percentile cut points of *values*."""
    return Percentiles(**{name: percentile(values, p) for name, p in PERCENTILE_CUTS.items()})


def calculate_mean_and_std_dev(values: Sequence[float], max_value: float) -> MeanAndErrorEstimates:
    """Mean, sample standard deviation and a one-sigma band clamped to ``[0, max_value]``.

    The standard deviation of fewer than two values is 0.
    """
    array = np.asarray(values, dtype=float)
    mean = float(array.mean()) if array.size else 0.0
    std_dev = float(array.std(ddof=1)) if array.size > 1 else 0.0
    return MeanAndErrorEstimates(
        mean=mean,
        standard_deviation=std_dev,
        plus_one_std_dev=min(max_value, mean + std_dev),
        minus_one_std_dev=max(0.0, mean - std_dev),
    )


def aligned_span(values_list: list[SimulationValues], span_of: SpanPolicy) -> DateSpan:
    """Union of the per-iteration spans; empty when no iteration has one."""
    spans = [span_of(values) for values in values_list]
    spans = [span for span in spans if not span.is_empty]
    if not spans:
        return DateSpan()
    return DateSpan(start=min(s.start for s in spans), end=max(s.end for s in spans))


def values_on(
    day: date,
    values_list: list[SimulationValues],
    series: Callable[[SimulationValues], dict[date, int]],
    span_of: SpanPolicy,
) -> list[float]:
    """Sorted per-iteration values of *series* on *day* under extrapolation."""
    return sorted(
        float(get_or_extrapolate(series(values), day, span_of(values)))
        for values in values_list
    )


def observed_max(
    values_list: list[SimulationValues],
    series: Callable[[SimulationValues], dict[date, int]],
    span_of: SpanPolicy,
) -> int:
    """Largest final value of *series* across iterations."""
    finals = [
        get_or_extrapolate(series(values), span.end, span)
        for values in values_list
        if not (span := span_of(values)).is_empty
    ]
    return max(finals, default=0)


def generate_accrual_summary(values_list: list[SimulationValues]) -> list[SummarizedAccrualResults]:
    """Per-day screening, enrollment and randomization statistics.

    Returns an empty list when no iteration accrued anything.
    """
    span = aligned_span(values_list, accrual_span)
    if span.is_empty:
        return []

    screened, enrolled, randomized = Series.SCREENED.of, Series.ENROLLED.of, Series.RANDOMIZED.of
    max_screened = observed_max(values_list, screened, accrual_span)
    max_enrolled = observed_max(values_list, enrolled, accrual_span)
    max_randomized = observed_max(values_list, randomized, accrual_span)

    summary: list[SummarizedAccrualResults] = []
    for day in date_range(span.start, span.end):
        screening_values = values_on(day, values_list, screened, accrual_span)
        enrollment_values = values_on(day, values_list, enrolled, accrual_span)
        randomization_values = values_on(day, values_list, randomized, accrual_span)
        summary.append(
            SummarizedAccrualResults(
                accrual_date=day,
                screening_percentiles=calculate_percentiles(screening_values),
                enrollment_percentiles=calculate_percentiles(enrollment_values),
                randomization_percentiles=calculate_percentiles(randomization_values),
                screening_mean_and_std_dev=calculate_mean_and_std_dev(screening_values, max_screened),
                enrollment_mean_and_std_dev=calculate_mean_and_std_dev(enrollment_values, max_enrolled),
                randomization_mean_and_std_dev=calculate_mean_and_std_dev(
                    randomization_values, max_randomized
                ),
                raw_screening_values=screening_values,
                raw_enrollment_values=enrollment_values,
                raw_randomization_values=randomization_values,
            )
        )
    return summary


def generate_ssu_summary(values_list: list[SimulationValues]) -> list[SummarizedSSUResults]:
    """Per-day site selection and initiation statistics.

    Returns an empty list when no iteration has start-up data.
    """
    span = aligned_span(values_list, start_up_span)
    if span.is_empty:
        return []

    siv, ssv = Series.SIV.of, Series.SSV.of
    max_siv = observed_max(values_list, siv, start_up_span)
    max_ssv = observed_max(values_list, ssv, start_up_span)

    summary: list[SummarizedSSUResults] = []
    for day in date_range(span.start, span.end):
        siv_values = values_on(day, values_list, siv, start_up_span)
        ssv_values = values_on(day, values_list, ssv, start_up_span)
        summary.append(
            SummarizedSSUResults(
                accrual_date=day,
                siv_percentiles=calculate_percentiles(siv_values),
                ssv_percentiles=calculate_percentiles(ssv_values),
                siv_mean_and_std_dev=calculate_mean_and_std_dev(siv_values, max_siv),
                ssv_mean_and_std_dev=calculate_mean_and_std_dev(ssv_values, max_ssv),
                raw_siv_values=siv_values,
                raw_ssv_values=ssv_values,
            )
        )
    return summary
