"""Configuration parameters for the basic_nav goal executor.

This module centralizes all configuration parameters including:
- Rotation and translation velocity limits
- Tolerances and finish thresholds
- Lateral PID gains
- Obstacle and progress timeouts
- Frame names used for planning and driving
- Control rates and WebSocket connection parameters

The module-level constants are the defaults. At runtime the controllers never
read them directly: they read a frozen ``Config`` snapshot from a
``ConfigStore``, which a reconfiguration message replaces as a whole.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping

# ============================================================================
# Rotation Parameters
# ============================================================================

MIN_TURNING_VELOCITY = 0.02
"""Minimum angular velocity while rotating (rad/s).

Floor applied to the velocity profile so the robot overcomes static friction
and motor deadband close to the target heading. Dropped to exactly 0 once the
rotation finishes."""

MAX_TURNING_VELOCITY = 1.0
"""Maximum angular velocity while rotating (rad/s)."""

ANGULAR_ACCELERATION = 0.3
"""Angular deceleration used by the velocity profile (rad/s²).

The profile caps velocity at sqrt(2 * a * remaining) so the robot can always
stop at the target heading with this deceleration."""

ROTATIONAL_GAIN = 2.5
"""Proportional gain from remaining angle to angular velocity (1/s)."""

ANGULAR_TOLERANCE = 0.01
"""Heading error below which a rotation is considered done (rad).

Also used by the executor to skip rotations that are already within
tolerance."""


# ============================================================================
# Translation Parameters
# ============================================================================

MAX_LINEAR_VELOCITY = 0.5
"""Maximum forward/backward velocity (m/s)."""

LINEAR_ACCELERATION = 0.1
"""Linear deceleration used by the velocity profile (m/s²)."""

LINEAR_GAIN = 1.0
"""Proportional gain from remaining distance to linear velocity (1/s)."""

LINEAR_TOLERANCE = 0.1
"""Distance to goal below which a translation may finish (m).

Goals closer than this are not driven to at all."""

VELOCITY_THRESHOLD = 0.1
"""Commanded velocity below which a translation may finish (m/s).

Both this and LINEAR_TOLERANCE must hold for the translation to finish."""


# ============================================================================
# Lateral PID Parameters
# ============================================================================

LATERAL_KP = 2.0
"""Proportional gain of the lateral PID (rad/s per m)."""

LATERAL_KI = 0.0
"""Integral gain of the lateral PID.

Disabled by default. The integral is accumulated per tick, not per second,
so keep this small if enabled."""

LATERAL_KD = 20.0
"""Derivative gain of the lateral PID.

The derivative is the per-tick difference of the lateral error, which is
tiny at 50 Hz, hence the large gain."""

MAX_LATERAL_VELOCITY = 0.5
"""Clamp on the angular velocity produced by the lateral PID (rad/s)."""

SIDE_RECOVER_WEIGHT = 1.0
"""Weight applied to the lateral offset before it enters the PID."""


# ============================================================================
# Obstacle and Progress Parameters
# ============================================================================

MIN_SIDE_DIST = 0.3
"""Half width of the corridor checked for obstacles (m).

Passed to the collision checker every obstacle telemetry tick."""

FORWARD_OBSTACLE_THRESHOLD = 0.5
"""Obstacle distance below which the robot pauses (m)."""

OBSTACLE_WAIT_THRESHOLD = 60.0
"""How long to wait for an obstacle to disappear before aborting (s)."""

ABORT_TIMEOUT = 5.0
"""Time the robot may drive without improving on its best distance to the
goal before the translation is aborted (s)."""

REVERSE_WITHOUT_TURNING_THRESHOLD = 0.5
"""Goals behind the robot and closer than this are reached by backing up
instead of turning around (m)."""

LOCALIZATION_LATENCY = 0.5
"""Pause after each motion segment so the slow, accurate localization can
catch up before the next heading computation (s)."""


# ============================================================================
# Frames
# ============================================================================

PREFERRED_PLANNING_FRAME = ""
"""Frame the straight-line path is planned in. Empty means plan in whatever
frame the goal is expressed in."""

ALTERNATE_PLANNING_FRAME = "odom"
"""Planning frame used when the preferred one is not available."""

PREFERRED_DRIVING_FRAME = "map"
"""Frame the controllers close the loop in."""

ALTERNATE_DRIVING_FRAME = "odom"
"""Driving frame used when the preferred one is not available."""

BASE_FRAME = "base_footprint"
"""Robot body frame."""


# ============================================================================
# Rates
# ============================================================================

CONTROL_RATE_HZ = 50.0
"""Tick rate of the rotation and linear controllers (Hz)."""

OBSTACLE_RATE_HZ = 20.0
"""Tick rate of the background obstacle telemetry loop (Hz)."""


# ============================================================================
# Robot Geometry (collision checking)
# ============================================================================

ROBOT_HALF_LENGTH = 0.2
"""Distance from the base frame origin to the front/back bumper (m)."""

ROBOT_HALF_WIDTH = 0.2
"""Distance from the base frame origin to the left/right side (m).

Together with ROBOT_HALF_LENGTH this fixes the circle swept by the footprint
corners when rotating in place."""


# ============================================================================
# Terminal Colors
# ============================================================================

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for milestone messages."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket server URI of the robot base (or simulator)."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

WS_TIMEOUT_SECONDS = 5.0
"""Timeout for WebSocket message reception (seconds)."""

TRANSFORM_STALE_SECONDS = 3.0
"""Age after which a non-static transform received from the robot is treated
as unavailable (seconds)."""


@dataclass(frozen=True)
class Config:
    """One consistent snapshot of every tunable parameter.

    Frozen so that a control tick holding a reference can never observe a
    half-applied reconfiguration. Build a modified copy with
    ``dataclasses.replace`` or ``ConfigStore.update``.
    """

    min_turning_velocity: float = MIN_TURNING_VELOCITY
    max_turning_velocity: float = MAX_TURNING_VELOCITY
    angular_acceleration: float = ANGULAR_ACCELERATION
    rotational_gain: float = ROTATIONAL_GAIN
    angular_tolerance: float = ANGULAR_TOLERANCE

    max_linear_velocity: float = MAX_LINEAR_VELOCITY
    linear_acceleration: float = LINEAR_ACCELERATION
    linear_gain: float = LINEAR_GAIN
    linear_tolerance: float = LINEAR_TOLERANCE
    velocity_threshold: float = VELOCITY_THRESHOLD

    lateral_kp: float = LATERAL_KP
    lateral_ki: float = LATERAL_KI
    lateral_kd: float = LATERAL_KD
    max_lateral_velocity: float = MAX_LATERAL_VELOCITY
    side_recover_weight: float = SIDE_RECOVER_WEIGHT

    min_side_dist: float = MIN_SIDE_DIST
    forward_obstacle_threshold: float = FORWARD_OBSTACLE_THRESHOLD
    obstacle_wait_threshold: float = OBSTACLE_WAIT_THRESHOLD
    abort_timeout: float = ABORT_TIMEOUT
    reverse_without_turning_threshold: float = REVERSE_WITHOUT_TURNING_THRESHOLD
    localization_latency: float = LOCALIZATION_LATENCY

    preferred_planning_frame: str = PREFERRED_PLANNING_FRAME
    alternate_planning_frame: str = ALTERNATE_PLANNING_FRAME
    preferred_driving_frame: str = PREFERRED_DRIVING_FRAME
    alternate_driving_frame: str = ALTERNATE_DRIVING_FRAME
    base_frame: str = BASE_FRAME

    control_rate_hz: float = CONTROL_RATE_HZ
    obstacle_rate_hz: float = OBSTACLE_RATE_HZ

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], base: "Config" = None) -> "Config":
        """Build a snapshot from a parameter mapping.

        Args:
            params: Parameter names and values. Missing names keep the value
                from ``base``.
            base: Snapshot to start from (default: all defaults).

        Returns:
            New Config instance.

        Raises:
            ValueError: If a name is unknown or a value has the wrong type or
                is not finite.
        """
        base = base if base is not None else cls()
        fields = {f.name: f for f in dataclasses.fields(cls)}
        changes: Dict[str, Any] = {}
        for name, value in params.items():
            if name not in fields:
                raise ValueError(f"Unknown parameter: {name}")
            current = getattr(base, name)
            if isinstance(current, str):
                if not isinstance(value, str):
                    raise ValueError(f"Parameter {name} must be a string, got {value!r}")
                changes[name] = value
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Parameter {name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"Parameter {name} must be finite, got {value!r}")
            changes[name] = float(value)
        return dataclasses.replace(base, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return dataclasses.asdict(self)


class ConfigStore:
    """Holder of the current configuration snapshot.

    Readers take ``store.snapshot`` once per control tick and use only that
    object for the tick. Writers replace the whole snapshot in one assignment.
    """

    def __init__(self, config: Config = None) -> None:
        self._config = config if config is not None else Config()

    @property
    def snapshot(self) -> Config:
        return self._config

    def replace(self, config: Config) -> None:
        """Install a complete new snapshot, visible from the next tick."""
        self._config = config
        logging.warning("Parameter change detected")

    def update(self, **params: Any) -> Config:
        """Replace the snapshot with a copy carrying the given changes.

        Raises:
            ValueError: If a parameter is unknown or invalid. The current
                snapshot is left untouched in that case.
        """
        config = Config.from_dict(params, base=self._config)
        self.replace(config)
        return config
