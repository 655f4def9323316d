"""Closed-loop straight-line translation.

This module drives the robot to a goal that lies (roughly) straight ahead or
straight behind it. Every tick it:
- re-expresses the goal in the base frame from a fresh driving -> base lookup
- steers against lateral drift with a PID on the sideways offset
- pauses while an obstacle is inside the stopping threshold
- scales speed with the shared velocity profile, capped by obstacle distance
- aborts when the obstacle does not clear or the robot stops making progress
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .config import Config, ConfigStore
from .errors import (
    NoPoseForTranslation,
    NoProgressTimeout,
    ObstacleTimeout,
    Preempted,
    TransformUnavailable,
)
from .geometry import Transform, planar_distance
from .profile import speed
from .timing import MonotonicClock, Rate


class LateralPID:
    """PID on the sideways offset between the robot and the goal line.

    The error is sampled once per control tick, so the integral is a plain
    sum and the derivative a plain difference (no division by dt). Gains are
    passed in on every update so a reconfiguration takes effect on the next
    tick while the accumulated state is kept.
    """

    def __init__(self) -> None:
        self.integral: float = 0.0
        self.prev_error: float = 0.0
        self.error: float = 0.0

    def update(self, lateral_offset: float, cfg: Config) -> float:
        """Compute the rotation command for one tick.

        Args:
            lateral_offset: Goal y-coordinate in the base frame (m).
            cfg: Snapshot providing gains, weight and clamp.

        Returns:
            Angular velocity (rad/s) clamped to +-max_lateral_velocity.
        """
        self.error = cfg.side_recover_weight * lateral_offset
        self.integral += self.error
        diff = self.error - self.prev_error
        self.prev_error = self.error

        rotation = cfg.lateral_kp * self.error + cfg.lateral_ki * self.integral + cfg.lateral_kd * diff
        return max(-cfg.max_lateral_velocity, min(cfg.max_lateral_velocity, rotation))


@dataclass
class LinearControlState:
    """Everything one ``move`` call keeps between ticks."""

    requested_distance: float
    forward: bool
    best_distance: float
    last_progress_time: float
    paused: bool = False
    pause_start: Optional[float] = None
    pid: LateralPID = field(default_factory=LateralPID)


class LinearController:
    """Move forward or backward to a goal given in the driving frame.

    Attributes:
        transforms: TransformProvider used for driving -> base lookups.
        obstacles: Object with ``obstacle_distance(forward) -> float``,
            normally the ObstacleMonitor.
        commands: Command sink with ``send_command(angular, linear)``.
        config_store: Source of the per-tick Config snapshot.
        telemetry: Optional sink with ``publish_lateral_error``.
        clock: Clock driving the tick rate and all timeouts.
    """

    def __init__(
        self,
        transforms,
        obstacles,
        commands,
        config_store: ConfigStore,
        telemetry=None,
        clock=None,
    ):
        self.transforms = transforms
        self.obstacles = obstacles
        self.commands = commands
        self.config_store = config_store
        self.telemetry = telemetry
        self.clock = clock if clock is not None else MonotonicClock()

    def _goal_in_base(self, goal_in_driving: Transform, driving_frame: str) -> Transform:
        base_frame = self.config_store.snapshot.base_frame
        try:
            pose_driving = self.transforms.lookup(driving_frame, base_frame)
        except TransformUnavailable as e:
            raise NoPoseForTranslation(f"Cannot determine robot pose for linear ({e})") from e
        return pose_driving * goal_in_driving

    def _update_obstacle_pause(
        self, state: LinearControlState, obstacle_dist: float, cfg: Config, now: float
    ) -> bool:
        """Track the pause state; return True once the wait has timed out."""
        if obstacle_dist < cfg.forward_obstacle_threshold:
            if not state.paused:
                logging.info("PAUSING for OBSTACLE")
                state.paused = True
                state.pause_start = now
                return False
            logging.info(f"Still waiting for obstacle at {obstacle_dist:.3f} meters!")
            return now - state.pause_start > cfg.obstacle_wait_threshold

        if state.paused:
            logging.info("Resuming after obstacle has gone")
            state.paused = False
            state.pause_start = None
        return False

    @staticmethod
    def _update_progress(
        state: LinearControlState, dist_remaining: float, cfg: Config, now: float
    ) -> bool:
        """Track the low-water-mark; return True once progress has stalled too long."""
        if dist_remaining <= state.best_distance:
            state.best_distance = dist_remaining
            state.last_progress_time = now
            return False
        return now - state.last_progress_time > cfg.abort_timeout

    async def move(
        self, goal_in_driving: Transform, driving_frame: str, handle
    ) -> Tuple[float, float]:
        """Drive straight to ``goal_in_driving``.

        Args:
            goal_in_driving: Goal pose expressed in the driving frame.
            driving_frame: Frame the loop is closed in.
            handle: Goal handle polled once per tick for preemption.

        Returns:
            Remaining (x, y) offset to the goal in the base frame at completion.

        Raises:
            NoPoseForTranslation: If the robot pose cannot be looked up.
            ObstacleTimeout: If an obstacle blocked the way for too long.
            NoProgressTimeout: If the distance to the goal stopped improving.
            Preempted: If preemption was requested.
        """
        goal_in_base = self._goal_in_base(goal_in_driving, driving_frame)
        requested_distance = planar_distance(goal_in_base)
        state = LinearControlState(
            requested_distance=requested_distance,
            forward=goal_in_base.x > 0,
            best_distance=requested_distance,
            last_progress_time=self.clock.now(),
        )
        logging.info(
            f"Requested {'forward' if state.forward else 'reverse'} move of "
            f"{requested_distance:.3f} meters"
        )

        rate = Rate(self.config_store.snapshot.control_rate_hz, self.clock)
        while True:
            await rate.sleep()
            cfg = self.config_store.snapshot
            now = self.clock.now()

            try:
                goal_in_base = self._goal_in_base(goal_in_driving, driving_frame)
            except NoPoseForTranslation as e:
                logging.warning(e.message)
                raise
            remaining_x, remaining_y = goal_in_base.x, goal_in_base.y
            dist_remaining = math.hypot(remaining_x, remaining_y)

            # PID loop to control rotation to keep robot on path
            rotation = state.pid.update(remaining_y, cfg)
            if not state.forward:
                # Backing up, the heading change needed to reduce the offset flips
                rotation = -rotation
            if self.telemetry is not None:
                self.telemetry.publish_lateral_error(remaining_x, state.pid.error, rotation)

            obstacle_dist = self.obstacles.obstacle_distance(state.forward)
            obstacle_timed_out = self._update_obstacle_pause(state, obstacle_dist, cfg, now)

            if state.paused:
                velocity = 0.0
            else:
                velocity = speed(
                    dist_remaining,
                    obstacle_dist,
                    cfg.max_linear_velocity,
                    0.0,
                    cfg.linear_gain,
                    cfg.linear_acceleration,
                )

            stalled = self._update_progress(state, dist_remaining, cfg, now)

            if handle.is_preempt_requested():
                logging.info("Stopping move due to preempt")
                self.commands.send_command(0.0, 0.0)
                raise Preempted("Move stopped due to preempt")

            if obstacle_timed_out:
                self.commands.send_command(0.0, 0.0)
                raise ObstacleTimeout(
                    f"Aborting due to obstacle at {obstacle_dist:.3f} meters after waiting "
                    f"{now - state.pause_start:.1f} seconds"
                )

            if stalled:
                self.commands.send_command(0.0, 0.0)
                raise NoProgressTimeout(
                    f"No progress towards goal for longer than {cfg.abort_timeout:.1f} seconds"
                )

            if abs(velocity) < cfg.velocity_threshold and dist_remaining < cfg.linear_tolerance:
                logging.info(
                    f"Done linear, error: x: {remaining_x:.3f} meters, y: {remaining_y:.3f} meters"
                )
                self.commands.send_command(0.0, 0.0)
                return remaining_x, remaining_y

            if not state.forward:
                velocity = -velocity

            self.commands.send_command(rotation, velocity)
            logging.debug(
                f"Distance remaining: {dist_remaining:.3f}, Linear velocity: {velocity:.3f}, "
                f"lateral error: {state.pid.error:.3f}, rotation: {rotation:.3f}"
            )
