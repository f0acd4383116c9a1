"""Simulation run state models."""

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel

# Stage index -> human-readable stage name.
STAGE_NAMES: dict[int, str] = {
    1: "Pre-generating random draws",
    2: "Simulating patient accrual",
    3: "Applying enrollment caps",
    4: "Rolling up site start-up",
    5: "Preparing country results",
    6: "Building start-up date matrix",
    7: "Building accrual date matrix",
    8: "Generating summaries",
}


class StageStatus(StrEnum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StageState(BaseModel):
    """Current state of one pipeline stage."""

    index: int
    name: str
    status: StageStatus = StageStatus.PENDING
    duration_seconds: float | None = None
    error: str | None = None


class SimulationRunState(BaseModel):
    """Complete state of a simulation run, serializable for persistence."""

    run_id: str
    started_at: datetime
    iterations: int
    mode: str
    seed: int | None = None
    stages: dict[int, StageState] = {}
    current_stage: int | None = None
    status: str = "running"  # "running", "completed", "failed", "cancelled"

    @classmethod
    def new(
        cls, run_id: str, iterations: int, mode: str, seed: int | None = None
    ) -> "SimulationRunState":
        """Create a state with every stage pending."""
        return cls(
            run_id=run_id,
            started_at=datetime.now(),
            iterations=iterations,
            mode=mode,
            seed=seed,
            stages={
                index: StageState(index=index, name=name)
                for index, name in STAGE_NAMES.items()
            },
        )

    def save(self, path: Path) -> None:
        """Serialize run state to a JSON file.

        Args:
            path: Destination file path.
        """
        path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> "SimulationRunState":
        """Deserialize run state from a JSON file.

        Args:
            path: Source file path.

        Returns:
            Loaded SimulationRunState instance.
        """
        return cls.model_validate_json(path.read_text())
