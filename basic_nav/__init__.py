"""Basic Navigation - Rotate, Drive Straight, Rotate Goal Execution for Wheeled Robots

Moves a differential-drive robot to a goal pose without a map-based planner:
turn in place to face the goal, drive a straight line to it, then turn in
place to the goal heading.

## Architecture Overview

### Frames (frames.py, geometry.py)
The straight-line path is planned once in a globally consistent but possibly
slow planning frame (e.g. ``map``), and every motion segment is executed in a
fast but drifting driving frame (e.g. ``odom``). Each frame has a preferred
and an alternate choice; the executor falls back when the preferred one is
unavailable.

### Motion Phases (rotation.py, linear.py, profile.py)
- Rotation: closed-loop turn by a relative angle, slowed near the target and
  near obstacles by an acceleration-limited velocity profile
- Translation: straight drive with a lateral PID keeping the robot on the
  line, pausing for obstacles ahead and aborting when progress stalls

### Orchestration (executor.py, transport.py)
The executor sequences the phases for one goal and reports a terminal
outcome. The action server queues goals and delivers cancellation.

## Modules

- `config.py` - Centralized configuration parameters with documentation
- `geometry.py` - Rigid transforms and angle helpers
- `frames.py` - Transform tree and planning/driving frame selection
- `profile.py` - Acceleration-limited velocity profile
- `rotation.py` - In-place rotation controller
- `linear.py` - Straight-line controller with lateral PID
- `executor.py` - Goal execution state machine
- `collision.py` - Obstacle clearance queries and telemetry loop
- `transport.py` - Queued action server
- `client.py` - WebSocket bridge to the robot and main loop
- `sim.py` - Kinematic simulator and simulated clock
- `data_collector.py` - CSV data logging
- `visualization.py`, `plot_results.py` - Post-run plots

## Quick Start

```bash
python -m basic_nav                  # bridge to ws://localhost:8765
python -m basic_nav --sim 2.0 1.0 1.57
```
"""

__version__ = "0.1.0"

from .config import Config, ConfigStore
from .data_collector import DataCollector
from .executor import GoalExecutor
from .goals import Goal, GoalOutcome, GoalStatus, MotionPhase
from .transport import ActionServer

__all__ = [
    "ActionServer",
    "Config",
    "ConfigStore",
    "DataCollector",
    "Goal",
    "GoalExecutor",
    "GoalOutcome",
    "GoalStatus",
    "MotionPhase",
]
