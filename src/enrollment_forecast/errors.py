"""Error taxonomy for simulation and risk queries.

Three outcomes must stay distinguishable for callers:

- **Configuration errors** (:class:`ConfigurationError` subclasses): the
  inputs or query arguments violate an invariant.  Raised immediately, never
  clamped.
- **Iteration failures** (:class:`IterationFailedError`): one or more
  iterations failed inside a parallel stage.  The run fails as a whole rather
  than silently dropping those iterations from the statistics.
- **Cancellation** (:class:`SimulationCancelled`): a requested stop.  Not an
  error, so it does not derive from :class:`EnrollmentForecastError`.
"""

from __future__ import annotations

from datetime import date


class EnrollmentForecastError(Exception):
    """Base class for all enrollment-forecast failures."""


class ConfigurationError(EnrollmentForecastError):
    """Raised when inputs or query arguments violate an invariant."""


class UnknownAccrualConstraintError(ConfigurationError):
    """Raised when a country carries an accrual constraint the engine cannot handle.

    Attributes:
        country: Name of the offending country.
        constraint: The unrecognised constraint value.
    """

    def __init__(self, country: str, constraint: object) -> None:
        self.country = country
        self.constraint = constraint
        super().__init__(
            f"Country '{country}' has unknown accrual constraint {constraint!r}"
        )


class PercentileOutOfRangeError(ConfigurationError):
    """Raised when a risk percentile falls outside ``[0, 1]``."""

    def __init__(self, percentile: float) -> None:
        self.percentile = percentile
        super().__init__(
            f"Percentile {percentile} is outside the valid range [0, 1]"
        )


class DateOutOfRangeError(ConfigurationError):
    """Raised when a query date lies outside the aligned simulation date span.

    Attributes:
        value: The requested date.
        start: First date of the aligned span.
        end: Last date of the aligned span.
    """

    def __init__(self, value: date, start: date | None, end: date | None) -> None:
        self.value = value
        self.start = start
        self.end = end
        super().__init__(
            f"Date {value.isoformat()} is outside the simulated date span "
            f"[{_fmt(start)}, {_fmt(end)}]"
        )


class TargetExceedsObservedError(ConfigurationError):
    """Raised when an accrual target cannot be met by the simulated series.

    Attributes:
        target: The requested accrual target.
        observed_max: The largest value the relevant iterations reached.
    """

    def __init__(self, target: int, observed_max: int, detail: str = "") -> None:
        self.target = target
        self.observed_max = observed_max
        message = f"Target {target} exceeds observed maximum of {observed_max}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AccrualStalledError(ConfigurationError):
    """Raised when a country cannot reach its stopping condition within the horizon.

    Usually means every site in the country has a zero screening rate or a
    screen-failure rate of 1.

    Attributes:
        country: Name of the stalled country.
        iteration: Iteration index in which the stall was detected.
        horizon_days: Number of simulated days that were allowed.
    """

    def __init__(self, country: str, iteration: int, horizon_days: int) -> None:
        self.country = country
        self.iteration = iteration
        self.horizon_days = horizon_days
        super().__init__(
            f"Country '{country}' did not reach its enrollment stopping condition "
            f"within {horizon_days} simulated days (iteration {iteration})"
        )


class IterationFailedError(EnrollmentForecastError):
    """Raised when iterations fail inside a parallel stage.

    Attributes:
        stage: Pipeline stage index (1-8) in which the failures occurred.
        failures: Mapping of iteration index to the error message.
    """

    def __init__(self, stage: int, failures: dict[int, str]) -> None:
        self.stage = stage
        self.failures = failures
        first = min(failures)
        super().__init__(
            f"{len(failures)} iteration(s) failed in stage {stage}; "
            f"first failure (iteration {first}): {failures[first]}"
        )


class SimulationCancelled(Exception):
    """Raised when a cancellation request is observed at a progress checkpoint.

    Attributes:
        stage: Pipeline stage index (1-8) that observed the request.
    """

    def __init__(self, stage: int) -> None:
        self.stage = stage
        super().__init__(f"Simulation cancelled during stage {stage}")


# Actionable fix suggestions shown by the error display.
ERROR_SUGGESTIONS: dict[type[Exception], str] = {
    UnknownAccrualConstraintError: (
        "Use one of: none, minimum_patient, maximum_patient, exact_patient, between"
    ),
    PercentileOutOfRangeError: "Express risk levels as fractions, e.g. 0.8 for 80%",
    DateOutOfRangeError: "Query a date inside the simulated span shown in the summary",
    TargetExceedsObservedError: (
        "Lower the target or check country caps; the simulation never accrued that many"
    ),
    AccrualStalledError: (
        "Check screening distributions, screen-failure rate and enrollment stop dates"
    ),
    IterationFailedError: "Inspect simulation.jsonl for the per-iteration traceback",
}


def suggestion_for(error: Exception) -> str:
    """Return the most specific suggestion registered for *error*."""
    for error_type in type(error).__mro__:
        if error_type in ERROR_SUGGESTIONS:
            return ERROR_SUGGESTIONS[error_type]
    return "Check simulation logs for the full stack trace"


def _fmt(value: date | None) -> str:
    return value.isoformat() if value is not None else "unset"
