"""Parameterised probability distributions sampled by the simulation.

A :class:`DistributionParameter` is a small value object describing one
distribution (gamma, uniform, normal or constant) together with its summary
moments.  Sampling always goes through a caller-supplied
``numpy.random.Generator`` so that every worker owns its random stream.
"""

import math
from enum import StrEnum

from numpy.random import Generator
from pydantic import BaseModel, model_validator


class DistributionKind(StrEnum):
    """Supported distribution families."""

    GAMMA = "gamma"
    UNIFORM = "uniform"
    NORMAL = "normal"
    CONSTANT = "constant"


class DistributionParameter(BaseModel):
    """A sampleable distribution and its parameters.

    Gamma distributions may be described either by ``alpha``/``rate`` or by
    ``mean``/``standard_deviation``; the missing pair is derived on
    validation.  Uniform distributions need ``lower_bound``/``upper_bound``.

    Attributes:
        kind: Distribution family.
        mean: Distribution mean.
        standard_deviation: Distribution standard deviation.
        alpha: Gamma shape parameter.
        rate: Gamma rate parameter (inverse scale).
        lower_bound: Lower bound of the support.
        upper_bound: Upper bound of the support (``inf`` for gamma).
    """

    kind: DistributionKind
    mean: float | None = None
    standard_deviation: float | None = None
    alpha: float | None = None
    rate: float | None = None
    lower_bound: float | None = None
    upper_bound: float | None = None

    @model_validator(mode="after")
    def _derive_parameters(self) -> "DistributionParameter":
        if self.kind == DistributionKind.GAMMA:
            if self.alpha is None or self.rate is None:
                if self.mean is None or not self.standard_deviation:
                    msg = "gamma distribution needs alpha/rate or mean/standard_deviation > 0"
                    raise ValueError(msg)
                variance = self.standard_deviation**2
                self.rate = self.mean / variance
                self.alpha = self.mean * self.rate
            if self.alpha <= 0 or self.rate <= 0:
                msg = f"gamma alpha and rate must be positive (alpha={self.alpha}, rate={self.rate})"
                raise ValueError(msg)
            self.mean = self.alpha / self.rate
            self.standard_deviation = math.sqrt(self.alpha) / self.rate
            self.lower_bound = 0.0
            self.upper_bound = math.inf
        elif self.kind == DistributionKind.UNIFORM:
            if self.lower_bound is None or self.upper_bound is None:
                msg = "uniform distribution needs lower_bound and upper_bound"
                raise ValueError(msg)
            if self.upper_bound < self.lower_bound:
                msg = (
                    f"uniform upper_bound {self.upper_bound} is below "
                    f"lower_bound {self.lower_bound}"
                )
                raise ValueError(msg)
            self.mean = (self.lower_bound + self.upper_bound) / 2
            self.standard_deviation = (self.upper_bound - self.lower_bound) / math.sqrt(12)
        elif self.kind == DistributionKind.NORMAL:
            if self.mean is None or self.standard_deviation is None:
                msg = "normal distribution needs mean and standard_deviation"
                raise ValueError(msg)
        else:
            if self.mean is None:
                msg = "constant distribution needs mean"
                raise ValueError(msg)
            self.standard_deviation = 0.0
            self.lower_bound = self.mean
            self.upper_bound = self.mean
        return self

    def sample(self, rng: Generator) -> float:
        """Draw one value using *rng*."""
        if self.kind == DistributionKind.GAMMA:
            return float(rng.gamma(self.alpha, 1.0 / self.rate))
        if self.kind == DistributionKind.UNIFORM:
            return float(rng.uniform(self.lower_bound, self.upper_bound))
        if self.kind == DistributionKind.NORMAL:
            return float(rng.normal(self.mean, self.standard_deviation))
        return float(self.mean)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def constant(cls, value: float) -> "DistributionParameter":
        return cls(kind=DistributionKind.CONSTANT, mean=value)

    @classmethod
    def uniform(cls, lower_bound: float, upper_bound: float) -> "DistributionParameter":
        return cls(
            kind=DistributionKind.UNIFORM,
            lower_bound=lower_bound,
            upper_bound=upper_bound,
        )

    @classmethod
    def normal(cls, mean: float, standard_deviation: float) -> "DistributionParameter":
        return cls(
            kind=DistributionKind.NORMAL,
            mean=mean,
            standard_deviation=standard_deviation,
        )

    @classmethod
    def gamma_from_mean_and_sd(
        cls, mean: float, standard_deviation: float
    ) -> "DistributionParameter":
        return cls(
            kind=DistributionKind.GAMMA,
            mean=mean,
            standard_deviation=standard_deviation,
        )

    @classmethod
    def gamma_from_alpha_and_rate(cls, alpha: float, rate: float) -> "DistributionParameter":
        return cls(kind=DistributionKind.GAMMA, alpha=alpha, rate=rate)

    @classmethod
    def screening_from_enrollment(
        cls, mean: float, standard_deviation: float, screen_fail_rate: float
    ) -> "DistributionParameter":
        """Build a screening-rate gamma from an enrollment-rate mean and sd.

        Screening must outpace enrollment by the screen-failure rate, so the
        mean is inflated by ``1 / (1 - screen_fail_rate)``.  The standard
        deviation is kept as given.
        """
        if screen_fail_rate >= 1:
            msg = f"screen_fail_rate must be below 1, got {screen_fail_rate}"
            raise ValueError(msg)
        screening_mean = mean if screen_fail_rate == 0 else mean / (1 - screen_fail_rate)
        return cls.gamma_from_mean_and_sd(screening_mean, standard_deviation)

    def updated_for_reprojection(
        self, current_enrollment: int, days_open: int
    ) -> "DistributionParameter":
        """Return the gamma posterior after observing enrollment while open.

        Conjugate update of a gamma rate prior with Poisson counts:
        ``alpha + current_enrollment`` and ``rate + days_open``.
        """
        if self.kind != DistributionKind.GAMMA:
            msg = f"reprojection update needs a gamma prior, got {self.kind}"
            raise ValueError(msg)
        return self.gamma_from_alpha_and_rate(
            self.alpha + current_enrollment, self.rate + days_open
        )
