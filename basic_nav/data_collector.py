"""Data collection and CSV logging for goal execution telemetry.

This module provides CSV data logging for:
- Motion commands (angular, linear velocity)
- Lateral PID telemetry (x remaining, lateral error, rotation command)
- Obstacle distances (forward, left, right)
- Planned straight-line paths
- Goal outcomes

It also provides ``Fanout``, which forwards sink calls to several sinks so
the same command or telemetry stream can go to the robot and to disk.
"""

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO, Tuple

from .config import TERM_BLUE, TERM_RESET
from .timing import MonotonicClock


class DataCollector:
    """Manages CSV file creation and logging for one run.

    Implements the command sink (``send_command``) and telemetry sink
    (``publish_path``, ``publish_obstacle_distance``,
    ``publish_lateral_error``) interfaces, writing each stream to its own CSV.

    Attributes:
        run_dir: Directory path for this run's output files.
        clock: Clock used to timestamp rows.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None, clock=None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.
            clock: Clock for row timestamps (default: monotonic wall clock).

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.clock = clock if clock is not None else MonotonicClock()

        self.cmd_csv_file: Optional[TextIO] = None
        self.cmd_csv_writer: Any = None
        self.lateral_csv_file: Optional[TextIO] = None
        self.lateral_csv_writer: Any = None
        self.obstacle_csv_file: Optional[TextIO] = None
        self.obstacle_csv_writer: Any = None
        self.plan_csv_file: Optional[TextIO] = None
        self.plan_csv_writer: Any = None
        self.outcome_csv_file: Optional[TextIO] = None
        self.outcome_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # Create timestamped directory: results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.cmd_output_path: Path = self.run_dir / "cmd_vel.csv"
        self.lateral_output_path: Path = self.run_dir / "lateral_error.csv"
        self.obstacle_output_path: Path = self.run_dir / "obstacle_distance.csv"
        self.plan_output_path: Path = self.run_dir / "plan.csv"
        self.outcome_output_path: Path = self.run_dir / "outcomes.csv"

    @staticmethod
    def _open(path: Path, header) -> Tuple[TextIO, Any]:
        f = open(path, "w", newline="")
        writer = csv.writer(f)
        writer.writerow(header)
        f.flush()
        return f, writer

    def setup(self) -> None:
        """Initialize CSV files with headers.

        Must be called before writing data.
        """
        self.cmd_csv_file, self.cmd_csv_writer = self._open(
            self.cmd_output_path, ["timestamp", "angular", "linear"]
        )
        self.lateral_csv_file, self.lateral_csv_writer = self._open(
            self.lateral_output_path, ["timestamp", "x_remaining", "lateral_error", "rotation"]
        )
        self.obstacle_csv_file, self.obstacle_csv_writer = self._open(
            self.obstacle_output_path, ["timestamp", "forward", "left", "right"]
        )
        self.plan_csv_file, self.plan_csv_writer = self._open(
            self.plan_output_path, ["timestamp", "frame_id", "x0", "y0", "x1", "y1"]
        )
        self.outcome_csv_file, self.outcome_csv_writer = self._open(
            self.outcome_output_path, ["timestamp", "goal", "status", "phases", "message"]
        )
        print(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def send_command(self, angular: float, linear: float) -> None:
        """Log a motion command."""
        self.cmd_csv_writer.writerow([self.clock.now(), angular, linear])
        if self.cmd_csv_file:
            self.cmd_csv_file.flush()

    def publish_lateral_error(self, x_remaining: float, lateral_error: float, rotation: float) -> None:
        """Log one lateral PID sample.

        Args:
            x_remaining: Goal x-coordinate in the base frame (m).
            lateral_error: Weighted lateral offset fed to the PID (m).
            rotation: Clamped rotation command (rad/s).
        """
        self.lateral_csv_writer.writerow([self.clock.now(), x_remaining, lateral_error, rotation])
        if self.lateral_csv_file:
            self.lateral_csv_file.flush()

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        """Log obstacle clearances (m)."""
        self.obstacle_csv_writer.writerow([self.clock.now(), forward, left, right])
        if self.obstacle_csv_file:
            self.obstacle_csv_file.flush()

    def publish_path(
        self, frame_id: str, start: Tuple[float, float], goal: Tuple[float, float]
    ) -> None:
        """Log a planned straight-line path from ``start`` to ``goal``."""
        self.plan_csv_writer.writerow([self.clock.now(), frame_id, start[0], start[1], goal[0], goal[1]])
        if self.plan_csv_file:
            self.plan_csv_file.flush()

    def log_outcome(self, goal, outcome) -> None:
        """Log the terminal outcome of a goal."""
        phases = " ".join(phase.value for phase in outcome.phases)
        self.outcome_csv_writer.writerow(
            [self.clock.now(), str(goal), outcome.status.value, phases, outcome.message]
        )
        if self.outcome_csv_file:
            self.outcome_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        for f in (
            self.cmd_csv_file,
            self.lateral_csv_file,
            self.obstacle_csv_file,
            self.plan_csv_file,
            self.outcome_csv_file,
        ):
            if f:
                f.close()
        print(f"{TERM_BLUE}✓ Saved telemetry to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()


class Fanout:
    """Forward command and telemetry calls to every sink that supports them."""

    def __init__(self, *sinks) -> None:
        self.sinks = [sink for sink in sinks if sink is not None]

    def _forward(self, method: str, *args) -> None:
        for sink in self.sinks:
            handler = getattr(sink, method, None)
            if handler is not None:
                handler(*args)

    def send_command(self, angular: float, linear: float) -> None:
        self._forward("send_command", angular, linear)

    def publish_lateral_error(self, x_remaining: float, lateral_error: float, rotation: float) -> None:
        self._forward("publish_lateral_error", x_remaining, lateral_error, rotation)

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        self._forward("publish_obstacle_distance", forward, left, right)

    def publish_path(self, frame_id: str, start, goal) -> None:
        self._forward("publish_path", frame_id, start, goal)
