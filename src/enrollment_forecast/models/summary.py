"""Value objects returned by the summary and risk engine."""

from datetime import date

from pydantic import BaseModel

# Percentile cut points reported for every summarised day.
PERCENTILE_CUTS: dict[str, int] = {
    "fifth": 5,
    "tenth": 10,
    "twentieth": 20,
    "twenty_fifth": 25,
    "thirtieth": 30,
    "fortieth": 40,
    "fiftieth": 50,
    "sixtieth": 60,
    "seventieth": 70,
    "seventy_fifth": 75,
    "eightieth": 80,
    "ninetieth": 90,
    "ninety_fifth": 95,
}


class Percentiles(BaseModel):
    """Fixed percentile cut points over the per-iteration values of one day."""

    fifth: float
    tenth: float
    twentieth: float
    twenty_fifth: float
    thirtieth: float
    fortieth: float
    fiftieth: float
    sixtieth: float
    seventieth: float
    seventy_fifth: float
    eightieth: float
    ninetieth: float
    ninety_fifth: float


class MeanAndErrorEstimates(BaseModel):
    """Mean and standard deviation with a one-sigma band.

    The band is clamped to ``[0, observed max]``.
    """

    mean: float
    standard_deviation: float
    plus_one_std_dev: float
    minus_one_std_dev: float


class MeanAndErrorEstimatesDates(BaseModel):
    """Mean date for reaching an accrual count, with a one-sigma band in days."""

    mean_date: date
    std_dev_in_days: int
    plus_one_std_dev_date: date
    minus_one_std_dev_date: date


class SummarizedAccrualResults(BaseModel):
    """Cross-iteration patient accrual statistics for one calendar date."""

    accrual_date: date
    screening_percentiles: Percentiles
    enrollment_percentiles: Percentiles
    randomization_percentiles: Percentiles
    screening_mean_and_std_dev: MeanAndErrorEstimates
    enrollment_mean_and_std_dev: MeanAndErrorEstimates
    randomization_mean_and_std_dev: MeanAndErrorEstimates
    raw_screening_values: list[float]
    raw_enrollment_values: list[float]
    raw_randomization_values: list[float]


class SummarizedSSUResults(BaseModel):
    """Cross-iteration site start-up statistics for one calendar date."""

    accrual_date: date
    siv_percentiles: Percentiles
    ssv_percentiles: Percentiles
    siv_mean_and_std_dev: MeanAndErrorEstimates
    ssv_mean_and_std_dev: MeanAndErrorEstimates
    raw_siv_values: list[float]
    raw_ssv_values: list[float]


class AccrualValueByDate(BaseModel):
    """One point of a projected accrual line."""

    accrual_date: date
    accrual_day: int
    accrual_value: float


class DateSpan(BaseModel):
    """Inclusive calendar span; both ends are ``None`` when nothing accrued."""

    start: date | None = None
    end: date | None = None

    @property
    def is_empty(self) -> bool:
        return self.start is None or self.end is None
