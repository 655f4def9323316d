"""Closed-loop rotation in place.

The controller turns the robot by a relative angle measured in the driving
frame. The absolute target heading is fixed once at entry; every tick the
remaining angle is recomputed from a fresh lookup and fed through the shared
velocity profile, capped by the angular clearance reported by the collision
checker.
"""

import logging
import math

from .config import ConfigStore
from .errors import NoPoseForRotation, Preempted, TransformUnavailable
from .geometry import normalize_angle, pose_of, rad2deg
from .profile import speed
from .timing import MonotonicClock, Rate


class RotationController:
    """Rotate relative to the current orientation.

    Attributes:
        transforms: TransformProvider used for base -> driving lookups.
        checker: CollisionChecker queried for angular clearance.
        commands: Command sink with ``send_command(angular, linear)``.
        config_store: Source of the per-tick Config snapshot.
        clock: Clock driving the tick rate.
    """

    def __init__(self, transforms, checker, commands, config_store: ConfigStore, clock=None):
        self.transforms = transforms
        self.checker = checker
        self.commands = commands
        self.config_store = config_store
        self.clock = clock if clock is not None else MonotonicClock()

    def _current_yaw(self, driving_frame: str) -> float:
        base_frame = self.config_store.snapshot.base_frame
        try:
            pose_driving = self.transforms.lookup(base_frame, driving_frame)
        except TransformUnavailable as e:
            raise NoPoseForRotation(f"Cannot determine robot pose for rotation ({e})") from e
        return pose_of(pose_driving).yaw

    async def rotate(self, delta_yaw: float, driving_frame: str, handle) -> float:
        """Rotate by ``delta_yaw`` radians relative to the current heading.

        Args:
            delta_yaw: Relative rotation (rad), positive counter-clockwise.
            driving_frame: Frame the heading is measured in.
            handle: Goal handle polled once per tick for preemption.

        Returns:
            Remaining heading error at completion (rad).

        Raises:
            NoPoseForRotation: If the robot pose cannot be looked up.
            Preempted: If preemption was requested.
        """
        requested_yaw = normalize_angle(self._current_yaw(driving_frame) + delta_yaw)
        logging.info(f"Requested rotation {rad2deg(requested_yaw):.2f}")

        rate = Rate(self.config_store.snapshot.control_rate_hz, self.clock)
        while True:
            await rate.sleep()
            cfg = self.config_store.snapshot

            current_yaw = self._current_yaw(driving_frame)
            angle_remaining = normalize_angle(requested_yaw - current_yaw)

            obstacle = self.checker.obstacle_angle(angle_remaining > 0)
            velocity = speed(
                angle_remaining,
                obstacle,
                cfg.max_turning_velocity,
                cfg.min_turning_velocity,
                cfg.rotational_gain,
                cfg.angular_acceleration,
            )

            if handle.is_preempt_requested():
                logging.info("Stopping rotation due to preempt")
                self.commands.send_command(0.0, 0.0)
                raise Preempted("Rotation stopped due to preempt")

            if abs(angle_remaining) < cfg.angular_tolerance:
                logging.info(f"Done rotation, error {rad2deg(angle_remaining):.3f} degrees")
                self.commands.send_command(0.0, 0.0)
                return angle_remaining

            velocity = math.copysign(velocity, angle_remaining)
            self.commands.send_command(velocity, 0.0)
            logging.debug(
                f"Angle remaining: {rad2deg(angle_remaining):.3f}, "
                f"Angular velocity: {velocity:.3f}"
            )
