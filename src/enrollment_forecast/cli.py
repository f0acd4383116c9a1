"""Typer CLI entry point for enrollment-forecast."""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dotenv import load_dotenv

if TYPE_CHECKING:
    from rich.console import Console

    from enrollment_forecast.models.trial import Trial
    from enrollment_forecast.summary.report import ForecastReport

load_dotenv()

app = typer.Typer(
    name="enrollment-forecast",
    help="Monte Carlo clinical trial enrollment forecasting CLI",
    no_args_is_help=True,
)


_config_option = typer.Option(
    "config.yaml",
    "--config",
    "-c",
    help="Path to configuration YAML file",
    exists=True,
)


@app.command()
def simulate(
    config: Path = _config_option,
    mode: str = typer.Option(
        None,
        "--mode",
        "-m",
        help="Override simulation mode: baseline or reprojection",
    ),
    iterations: int = typer.Option(
        None,
        "--iterations",
        "-n",
        help="Override the number of Monte Carlo iterations",
    ),
    seed: int = typer.Option(
        None,
        "--seed",
        "-s",
        help="Seed for a reproducible run",
    ),
) -> None:
    """Simulate enrollment and report target-attainment dates."""
    from enrollment_forecast.config import Settings
    from enrollment_forecast.display.error_display import ErrorDisplay
    from enrollment_forecast.display.simulation_display import SimulationDisplay
    from enrollment_forecast.pipeline.logging import setup_logging
    from enrollment_forecast.pipeline.orchestrator import MonteCarloEngine
    from enrollment_forecast.simulation.strategy import get_strategy
    from enrollment_forecast.summary.report import build_forecast_report

    display = SimulationDisplay()
    error_display = ErrorDisplay(display.console)

    try:
        settings = Settings.from_yaml(config)
    except Exception as e:
        error_display.show_error("configuration", type(e).__name__, str(e), "Fix the config file")
        raise typer.Exit(code=1) from None

    sim = settings.simulation
    try:
        strategy = get_strategy(mode or sim.mode, today=sim.today)
    except ValueError as e:
        error_display.show_error(
            "configuration", type(e).__name__, str(e), "Use --mode baseline or --mode reprojection"
        )
        raise typer.Exit(code=1) from None

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(settings.output_dir) / run_id
    output_dir.mkdir(parents=True, exist_ok=True)

    # Route loguru through the display console so the Live view stays intact.
    setup_logging(Path(settings.log_dir), run_id, console=display.console)

    engine = MonteCarloEngine(
        strategy,
        callback=display,
        reporting_interval=sim.reporting_interval,
        horizon_days=sim.horizon_days,
        seed=seed if seed is not None else sim.seed,
        run_id=run_id,
    )

    try:
        display.start()
        trial = engine.run(settings.trial, iterations=iterations or sim.iterations)
        display.stop()
        report = build_forecast_report(
            trial,
            settings.report.risk_levels,
            target=settings.report.target,
            target_date=settings.report.target_date,
        )
    except KeyboardInterrupt:
        display.stop()
        error_display.show_error(
            "simulation",
            "interrupted",
            "Simulation interrupted by user",
            "Re-run with the same config and --seed to reproduce",
        )
        raise typer.Exit(code=130) from None
    except Exception as e:
        display.stop()
        error_display.show(e)
        raise typer.Exit(code=1) from None
    finally:
        if engine.state is not None:
            engine.state.save(output_dir / "run_state.json")

    report_path = output_dir / "forecast.json"
    report.save(report_path)
    _display_report(report, display.console)
    display.console.print(f"[green]Forecast written to {report_path}[/green]")


@app.command()
def validate(config: Path = _config_option) -> None:
    """Validate a config file and show the trial structure."""
    from rich.console import Console

    from enrollment_forecast.config import Settings

    console = Console()
    try:
        settings = Settings.from_yaml(config)
    except Exception as e:
        console.print(f"[red]Invalid config:[/red] {e}")
        raise typer.Exit(code=1) from None

    _display_trial(settings.trial, console)
    console.print(
        f"[green]Config OK[/green]: mode={settings.simulation.mode}, "
        f"iterations={settings.simulation.iterations or settings.trial.number_of_iterations}"
    )


def _display_trial(trial: "Trial", console: "Console") -> None:
    """Display the trial's countries and sites in a Rich table."""
    from rich.table import Table

    table = Table(title=f"Trial '{trial.name}' (target {trial.enrollment_target})")
    table.add_column("Country", style="cyan")
    table.add_column("Constraint")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Sites", justify="right")

    for country in trial.countries:
        table.add_row(
            country.name,
            str(country.accrual_constraint),
            str(country.min_patient_enrollment),
            str(country.max_patient_enrollment),
            str(country.current_actual_enrollment),
            str(len(country.sites)),
        )
    console.print(table)


def _display_report(report: "ForecastReport", console: "Console") -> None:
    """Display target-attainment dates and probabilities in a Rich table."""
    from rich.table import Table

    table = Table(
        title=f"Forecast for '{report.trial_name}' ({report.iterations} iterations)",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Confidence", justify="right", style="cyan")
    table.add_column(f"{report.target} enrolled", style="white")
    table.add_column("All sites initiated", style="white")

    for row in report.risk_dates:
        table.add_row(
            f"{row.risk:.0%}",
            _fmt_date(row.enrollment_target_date),
            _fmt_date(row.all_sites_initiated_date),
        )

    console.print()
    console.print(table)
    if report.already_enrolled:
        if report.remaining_target:
            console.print(
                f"{report.already_enrolled} patient(s) already enrolled; dates are for "
                f"the remaining {report.remaining_target}"
            )
        else:
            console.print(
                f"[green]Target already met[/green] by {report.already_enrolled} "
                "enrolled patient(s)"
            )
    if report.probability_by_target_date is not None:
        console.print(
            f"Probability of {report.target} enrolled by "
            f"{report.target_date}: [bold]{report.probability_by_target_date:.0%}[/bold]"
        )
    if report.enrollment_mean_and_error is not None:
        full = report.enrollment_mean_and_error[100]
        console.print(
            f"Mean completion date: [bold]{full.mean_date}[/bold] "
            f"(+/- {full.std_dev_in_days} days)"
        )
    console.print()


def _fmt_date(value: object) -> str:
    return str(value) if value is not None else "[yellow]not reached[/yellow]"


if __name__ == "__main__":
    app()
