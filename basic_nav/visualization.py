"""
Visualization utilities for goal execution telemetry.

This module loads the CSV files written by ``DataCollector`` and plots the
velocity commands, the lateral PID signals, the obstacle clearances and the
planned straight-line paths of a run.
"""

import csv
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

PLOT_ORANGE = "#F74823"
PLOT_BLUE = "#2374F7"
PLOT_YELLOW_ORANGE = "#F7A823"
PLOT_CREAM = "#F3EFE6"
PLOT_TAUPE = "#8C857B"
PLOT_DARK_BLUE = "#0B1A2E"

OBSTACLE_PLOT_CAP = 5.0
"""Clearances above this (including infinity) are drawn at the cap (m)."""


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Numeric values are converted to floats (``inf`` included). Non-numeric
    values become NaN, except in columns where every value is non-numeric,
    which are kept as string arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        raw: Dict[str, List[str]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                raw[key].append(value)

    data: Dict[str, np.ndarray] = {}
    for key, values in raw.items():
        numbers = []
        numeric = False
        for value in values:
            try:
                numbers.append(float(value))
                numeric = True
            except (ValueError, TypeError):
                numbers.append(np.nan)
        data[key] = np.array(numbers) if numeric or not values else np.array(values)
    return data


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    """Apply the dark plot styling to an axis."""
    ax.set_facecolor(PLOT_DARK_BLUE)
    if title:
        ax.set_title(title, fontweight="bold", color=PLOT_CREAM)
    if xlabel:
        ax.set_xlabel(xlabel, color=PLOT_CREAM)
    if ylabel:
        ax.set_ylabel(ylabel, color=PLOT_CREAM)
    ax.grid(True, alpha=0.2, color=PLOT_CREAM, linestyle="--", linewidth=0.5)
    ax.tick_params(colors=PLOT_CREAM, which="both")
    for spine in ax.spines.values():
        spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes) -> None:
    if ax.get_legend_handles_labels()[0]:
        ax.legend(facecolor=PLOT_DARK_BLUE, edgecolor=PLOT_TAUPE, labelcolor=PLOT_CREAM)


def _relative_time(timestamps: np.ndarray, t0: float) -> np.ndarray:
    return timestamps - t0 if len(timestamps) > 0 else timestamps


def plot_commands(ax_angular: Axes, ax_linear: Axes, cmd: Dict[str, np.ndarray], t0: float) -> None:
    """Plot commanded angular and linear velocities as step signals."""
    t = _relative_time(cmd["timestamp"], t0)
    ax_angular.step(t, cmd["angular"], where="post", color=PLOT_ORANGE, label="Angular")
    ax_linear.step(t, cmd["linear"], where="post", color=PLOT_BLUE, label="Linear")
    style_axis(ax_angular, "Angular Command", "Time (s)", "rad/s")
    style_axis(ax_linear, "Linear Command", "Time (s)", "m/s")
    add_legend(ax_angular)
    add_legend(ax_linear)


def plot_lateral(ax: Axes, lateral: Dict[str, np.ndarray], t0: float) -> None:
    """Plot the weighted lateral error and the resulting rotation command."""
    t = _relative_time(lateral["timestamp"], t0)
    ax.plot(t, lateral["lateral_error"], color=PLOT_ORANGE, label="Lateral error (m)")
    ax.plot(t, lateral["rotation"], color=PLOT_BLUE, alpha=0.8, label="Rotation (rad/s)")
    style_axis(ax, "Lateral Correction", "Time (s)", "")
    add_legend(ax)


def plot_obstacles(ax: Axes, obstacles: Dict[str, np.ndarray], t0: float) -> None:
    """Plot forward, left and right clearances, capped for display."""
    t = _relative_time(obstacles["timestamp"], t0)
    colors = {"forward": PLOT_ORANGE, "left": PLOT_BLUE, "right": PLOT_YELLOW_ORANGE}
    for name, color in colors.items():
        values = np.minimum(obstacles[name], OBSTACLE_PLOT_CAP)
        ax.plot(t, values, color=color, label=name.capitalize())
    style_axis(ax, "Obstacle Clearance", "Time (s)", "m")
    add_legend(ax)


def plot_plans(ax: Axes, plan: Dict[str, np.ndarray]) -> None:
    """Plot each planned straight-line path from start to goal."""
    for x0, y0, x1, y1 in zip(plan["x0"], plan["y0"], plan["x1"], plan["y1"]):
        ax.plot([x0, x1], [y0, y1], "--", color=PLOT_YELLOW_ORANGE, linewidth=1.5)
        ax.plot(x0, y0, "o", color=PLOT_BLUE, markeredgecolor="black")
        ax.plot(x1, y1, "*", color=PLOT_ORANGE, markersize=12, markeredgecolor="black")
    style_axis(ax, "Planned Paths", "X (m)", "Y (m)")
    ax.set_aspect("equal", adjustable="datalim")


def plot_run_summary(
    run_dir: Path, save_plots: bool = False, show_plots: bool = True
) -> Optional[Figure]:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing the CSV files of one run.
        save_plots: If True, save the figure as ``summary.png`` in the run directory.
        show_plots: If True, display plots interactively.

    Returns:
        The summary figure.

    Raises:
        FileNotFoundError: If cmd_vel.csv is not found.
    """
    cmd = load_csv_to_dict(run_dir / "cmd_vel.csv")
    lateral_path = run_dir / "lateral_error.csv"
    obstacle_path = run_dir / "obstacle_distance.csv"
    plan_path = run_dir / "plan.csv"

    t0 = float(cmd["timestamp"][0]) if len(cmd.get("timestamp", [])) > 0 else 0.0

    fig, axes = plt.subplots(2, 3, figsize=(16, 9), facecolor=PLOT_DARK_BLUE)
    fig.suptitle(f"Run {run_dir.name}", fontsize=14, fontweight="bold", color=PLOT_CREAM)

    plot_commands(axes[0, 0], axes[1, 0], cmd, t0)
    if lateral_path.exists():
        plot_lateral(axes[0, 1], load_csv_to_dict(lateral_path), t0)
    else:
        style_axis(axes[0, 1], "Lateral Correction (no data)")
    if obstacle_path.exists():
        plot_obstacles(axes[1, 1], load_csv_to_dict(obstacle_path), t0)
    else:
        style_axis(axes[1, 1], "Obstacle Clearance (no data)")
    if plan_path.exists():
        plot_plans(axes[0, 2], load_csv_to_dict(plan_path))
    else:
        style_axis(axes[0, 2], "Planned Paths (no data)")
    axes[1, 2].set_visible(False)

    plt.tight_layout()

    if save_plots:
        fig.savefig(run_dir / "summary.png", dpi=150, bbox_inches="tight")
    if show_plots:
        plt.show()
    return fig
