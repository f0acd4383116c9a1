"""Structured logging for simulation runs.

Provides dual-sink logging via loguru:

- **Console sink**: Human-readable, colorized, shows the pipeline stage.
  When a shared Rich ``Console`` is provided, output routes through it to
  avoid corrupting the Rich Live progress display.
- **File sink**: JSON-structured JSONL written to
  ``{log_dir}/{run_id}/simulation.jsonl`` for programmatic parsing.

Library modules only log through ``loguru.logger``; sinks are configured here,
once, by the CLI or by an embedding application.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console


def setup_logging(
    log_dir: Path,
    run_id: str,
    console: Console | None = None,
) -> Path:
    """Configure loguru sinks for a simulation run.

    - If *console* is provided, a single console sink writes through the
      shared Rich ``Console`` (prevents Live display corruption).
    - If *console* is ``None``, two ``sys.stderr`` sinks are configured: one
      for stage-contextualized logs, one for plain logs.
    - A JSON-structured JSONL file sink is always created.

    Removes all existing handlers first to avoid duplicate output.

    Args:
        log_dir: Root directory for log storage.
        run_id: Unique identifier for this simulation run.
        console: Optional shared Rich Console for output routing.

    Returns:
        Path of the JSONL log file.
    """
    logger.remove()

    if console is not None:
        logger.add(
            lambda msg: console.print(msg, end="", highlight=False, markup=False),
            format="{time:HH:mm:ss} | {level: <8} | {message}",
            level="INFO",
            colorize=False,
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level>"
                " | <cyan>stage {extra[stage]}</cyan> | {message}"
            ),
            level="INFO",
            filter=lambda record: "stage" in record["extra"],
        )
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level>"
                " | {message}"
            ),
            level="INFO",
            filter=lambda record: "stage" not in record["extra"],
        )

    log_file = log_dir / run_id / "simulation.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_file),
        format="{message}",
        serialize=True,
        level="DEBUG",
    )
    return log_file


def log_stage_start(stage: int, name: str, units: int) -> None:
    """Log the start of a pipeline stage.

    Args:
        stage: Stage index (1-8).
        name: Human-readable stage name.
        units: Number of work units (sites, iterations or countries).
    """
    with logger.contextualize(stage=stage):
        logger.info("{name} ({units} unit(s))", name=name, units=units)


def log_stage_complete(stage: int, name: str, duration_seconds: float) -> None:
    """Log the completion of a pipeline stage.

    Args:
        stage: Stage index (1-8).
        name: Human-readable stage name.
        duration_seconds: Wall-clock time spent in the stage.
    """
    with logger.contextualize(stage=stage):
        logger.info(
            "{name} completed in {duration:.2f}s",
            name=name,
            duration=duration_seconds,
        )


def log_iteration_failure(stage: int, iteration: int, error: str) -> None:
    """Log a failed iteration inside a parallel stage.

    Args:
        stage: Stage index (1-8).
        iteration: Failed iteration index.
        error: Error message.
    """
    with logger.contextualize(stage=stage, iteration=iteration):
        logger.error("Iteration {iteration} failed: {error}", iteration=iteration, error=error)


def log_query(query: str, **params: object) -> None:
    """Log a risk-engine query and its parameters at DEBUG level.

    Args:
        query: Name of the query method.
        **params: Query parameters to record.
    """
    logger.debug("Risk query {query}: {params}", query=query, params=params)
