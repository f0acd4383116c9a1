"""Pydantic settings models for all configuration."""

import os
from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from enrollment_forecast.models.trial import Trial
from enrollment_forecast.simulation.accrual import DEFAULT_HORIZON_DAYS
from enrollment_forecast.simulation.strategy import SimulationMode


class SimulationConfig(BaseModel):
    """Monte Carlo run parameters.

    Attributes:
        iterations: Overrides ``trial.number_of_iterations`` when set.
        seed: Seed for reproducible runs; ``None`` draws fresh entropy.
        mode: Baseline planning or reprojection of a running trial.
        reporting_interval: Progress is reported every Nth unit of work.
        horizon_days: Maximum simulated days per country and iteration.
        today: Overrides the current date used by the strategies.
    """

    iterations: int | None = Field(default=None, gt=0)
    seed: int | None = None
    mode: SimulationMode = SimulationMode.BASELINE
    reporting_interval: int = Field(default=50, gt=0)
    horizon_days: int = Field(default=DEFAULT_HORIZON_DAYS, gt=0)
    today: date | None = None


class ReportConfig(BaseModel):
    """What the forecast report answers.

    Attributes:
        risk_levels: Confidence levels (fractions) for target-attainment dates.
        target: Enrollment target to report on; defaults to the trial target.
        target_date: Date for which the probability of success is reported.
    """

    risk_levels: list[float] = [0.5, 0.75, 0.9]
    target: int | None = Field(default=None, gt=0)
    target_date: date | None = None

    @field_validator("risk_levels")
    @classmethod
    def _check_risk_levels(cls, value: list[float]) -> list[float]:
        for risk in value:
            if not 0 <= risk <= 1:
                msg = f"risk level {risk} is outside [0, 1]; use fractions such as 0.8"
                raise ValueError(msg)
        return value


class Settings(BaseModel):
    """Root configuration model for the enrollment-forecast CLI."""

    simulation: SimulationConfig = SimulationConfig()
    trial: Trial
    report: ReportConfig = ReportConfig()
    output_dir: str = "./output"
    log_dir: str = "./logs"

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load and validate settings from a YAML configuration file.

        Environment variable substitution is supported: if a YAML value
        starts with ``$``, the corresponding environment variable is resolved
        at load time.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Validated Settings instance.

        Raises:
            FileNotFoundError: If the YAML file does not exist.
            ValueError: If a referenced environment variable is not set.
        """
        raw = yaml.safe_load(path.read_text())
        resolved = _resolve_env_vars(raw)
        return cls.model_validate(resolved)


def _resolve_env_vars(data: object) -> object:
    """Recursively resolve environment variable references in config data.

    Any string value starting with ``$`` is treated as an environment variable
    reference and replaced with the value of that variable.

    Args:
        data: Configuration data (dict, list, or scalar).

    Returns:
        Data with environment variable references resolved.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(data, dict):
        return {k: _resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars(item) for item in data]
    if isinstance(data, str) and data.startswith("$"):
        var_name = data[1:]
        value = os.environ.get(var_name)
        if value is None:
            msg = (
                f"Environment variable '{var_name}' is not set "
                f"(referenced as '{data}' in config)"
            )
            raise ValueError(msg)
        return value
    return data
