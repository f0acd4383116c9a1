"""Cross-iteration statistics, the risk query engine and forecast reports."""

from enrollment_forecast.summary.report import ForecastReport, build_forecast_report
from enrollment_forecast.summary.risk import RiskEngine
from enrollment_forecast.summary.statistics import (
    calculate_mean_and_std_dev,
    calculate_percentiles,
    generate_accrual_summary,
    generate_ssu_summary,
    percentile,
)

__all__ = [
    "ForecastReport",
    "RiskEngine",
    "build_forecast_report",
    "calculate_mean_and_std_dev",
    "calculate_percentiles",
    "generate_accrual_summary",
    "generate_ssu_summary",
    "percentile",
]
