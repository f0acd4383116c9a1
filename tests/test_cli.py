"""Tests for the typer CLI."""

import json
import sys
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from enrollment_forecast.cli import app

runner = CliRunner()

CONFIG = """\
simulation:
  seed: 3
  horizon_days: {horizon}
trial:
  name: cli-demo
  enrollment_target: 20
  number_of_iterations: 5
  study_start_date: 2024-01-01
  countries:
    - name: US
      sites:
        - name: US-001
          ssv_date: 2024-01-01
          baseline_ssu: {{kind: constant, mean: 5}}
          baseline_screening: {{kind: constant, mean: {rate}}}
report:
  risk_levels: [0.5, 0.9]
output_dir: {out}
log_dir: {logs}
"""


RUNNING_CONFIG = """\
simulation:
  seed: 4
  today: 2024-03-01
trial:
  name: running
  enrollment_target: 100
  number_of_iterations: 10
  study_start_date: 2024-01-01
  countries:
    - name: US
      current_actual_enrollment: 20
      sites:
        - name: US-001
          ssv_date: 2024-01-01
          siv_date: 2024-01-15
          current_enrollment: 12
          baseline_ssu: {{kind: constant, mean: 14}}
          baseline_screening: {{kind: gamma, mean: 2, standard_deviation: 0.5}}
        - name: US-002
          ssv_date: 2024-01-01
          siv_date: 2024-02-01
          current_enrollment: 8
          baseline_ssu: {{kind: constant, mean: 31}}
          baseline_screening: {{kind: gamma, mean: 2, standard_deviation: 0.5}}
report:
  risk_levels: [0.5, 0.9]
output_dir: {out}
log_dir: {logs}
"""


@pytest.fixture(autouse=True)
def _restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


def _write_config(tmp_path: Path, rate: float = 4, horizon: int = 10950) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        CONFIG.format(
            rate=rate, horizon=horizon, out=tmp_path / "out", logs=tmp_path / "logs"
        )
    )
    return path


def _run_dir(tmp_path: Path) -> Path:
    (run_dir,) = (tmp_path / "out").iterdir()
    return run_dir


class TestSimulateCommand:
    def test_writes_forecast_and_state(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["simulate", "-c", str(_write_config(tmp_path))])

        assert result.exit_code == 0, result.output
        run_dir = _run_dir(tmp_path)
        forecast = json.loads((run_dir / "forecast.json").read_text())
        assert forecast["trial_name"] == "cli-demo"
        assert forecast["iterations"] == 5
        assert [row["risk"] for row in forecast["risk_dates"]] == [0.5, 0.9]
        assert forecast["risk_dates"][0]["all_sites_initiated_date"] == "2024-01-06"

        state = json.loads((run_dir / "run_state.json").read_text())
        assert state["status"] == "completed"
        assert state["seed"] == 3
        assert (tmp_path / "logs" / run_dir.name / "simulation.jsonl").exists()

    def test_iterations_override(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["simulate", "-c", str(_write_config(tmp_path)), "-n", "3", "--seed", "9"]
        )

        assert result.exit_code == 0, result.output
        forecast = json.loads((_run_dir(tmp_path) / "forecast.json").read_text())
        assert forecast["iterations"] == 3

    def test_stalled_accrual_exits_with_error(self, tmp_path: Path) -> None:
        config = _write_config(tmp_path, rate=0, horizon=40)
        result = runner.invoke(app, ["simulate", "-c", str(config)])

        assert result.exit_code == 1
        run_dir = _run_dir(tmp_path)
        assert not (run_dir / "forecast.json").exists()
        state = json.loads((run_dir / "run_state.json").read_text())
        assert state["status"] == "failed"
        assert state["stages"]["2"]["status"] == "failed"

    def test_reprojection_with_actual_enrollment(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            RUNNING_CONFIG.format(out=tmp_path / "out", logs=tmp_path / "logs")
        )
        result = runner.invoke(app, ["simulate", "-c", str(path), "--mode", "reprojection"])

        assert result.exit_code == 0, result.output
        assert "already enrolled" in result.output
        forecast = json.loads((_run_dir(tmp_path) / "forecast.json").read_text())
        assert forecast["target"] == 100
        assert forecast["already_enrolled"] == 20
        assert forecast["remaining_target"] == 80
        for row in forecast["risk_dates"]:
            assert row["enrollment_target_date"] >= "2024-03-01"

    def test_invalid_mode(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["simulate", "-c", str(_write_config(tmp_path)), "--mode", "sideways"]
        )
        assert result.exit_code == 1


class TestValidateCommand:
    def test_valid_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", "-c", str(_write_config(tmp_path))])
        assert result.exit_code == 0
        assert "Config OK" in result.output
        assert "US" in result.output

    def test_invalid_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("trial:\n  enrollment_target: -1\n")
        result = runner.invoke(app, ["validate", "-c", str(path)])
        assert result.exit_code == 1
        assert "Invalid config" in result.output
