"""Obstacle clearance queries and the background obstacle telemetry loop.

The collision checker answers two questions about obstacle points expressed
in the robot base frame:
- how far can the robot drive straight (forward or backward) before hitting
  something inside its corridor
- how far can it rotate in place (positive or negative) before its footprint
  grazes something

The obstacle monitor polls the checker at a fixed rate, publishes the
distances for telemetry and keeps the latest forward reading for the linear
controller. The two share nothing else: the controller reads whatever reading
was written last and tolerates it being one telemetry period old.
"""

import abc
import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import ROBOT_HALF_LENGTH, ROBOT_HALF_WIDTH, MIN_SIDE_DIST, ConfigStore
from .errors import TransformUnavailable
from .timing import MonotonicClock, Rate

Point = Tuple[float, float]


@dataclass(frozen=True)
class ObstacleReading:
    """Clearances around the robot for one direction of travel.

    Attributes:
        forward: Free distance ahead in the direction of travel (m).
        left: Lateral clearance on the left of the robot body (m).
        right: Lateral clearance on the right of the robot body (m).
        forward_left: Nearest obstacle point ahead-left, or None.
        forward_right: Nearest obstacle point ahead-right, or None.
    """

    forward: float
    left: float
    right: float
    forward_left: Optional[Point] = None
    forward_right: Optional[Point] = None


class CollisionChecker(abc.ABC):
    """Clearance queries used by the controllers."""

    min_side_dist: float = MIN_SIDE_DIST

    @abc.abstractmethod
    def obstacle_distance(self, forward: bool) -> ObstacleReading:
        """Clearances for driving forward (True) or backward (False)."""

    @abc.abstractmethod
    def obstacle_angle(self, positive: bool) -> float:
        """Signed angle the robot can rotate before grazing an obstacle.

        Positive for ``positive=True``, negative otherwise. ``math.inf`` (with
        the matching sign) when nothing is in reach.
        """


class PointCloudCollisionChecker(CollisionChecker):
    """Collision checker over a set of 2D obstacle points in the base frame.

    The footprint is a rectangle centred on the base frame origin. Straight
    motion is checked against a corridor of half width ``min_side_dist``;
    rotation is checked against the circle swept by the footprint corners.
    """

    def __init__(
        self,
        half_length: float = ROBOT_HALF_LENGTH,
        half_width: float = ROBOT_HALF_WIDTH,
        min_side_dist: float = MIN_SIDE_DIST,
    ) -> None:
        self.half_length = half_length
        self.half_width = half_width
        self.min_side_dist = min_side_dist
        self.points = np.zeros((0, 2))

    def set_points(self, points: Sequence[Sequence[float]]) -> None:
        """Replace the obstacle points (base frame, metres)."""
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        self.points = pts[np.all(np.isfinite(pts), axis=1)]

    def obstacle_distance(self, forward: bool) -> ObstacleReading:
        # Looking backward is looking forward with the cloud rotated by pi
        pts = self.points if forward else -self.points
        xs = pts[:, 0]
        ys = pts[:, 1]

        ahead = (xs > self.half_length) & (np.abs(ys) < self.min_side_dist)
        if np.any(ahead):
            forward_dist = float(np.min(xs[ahead]) - self.half_length)
        else:
            forward_dist = math.inf

        beside = np.abs(xs) <= self.half_length
        left_pts = beside & (ys >= 0.0)
        right_pts = beside & (ys < 0.0)
        left = float(np.min(ys[left_pts]) - self.half_width) if np.any(left_pts) else math.inf
        right = float(np.min(-ys[right_pts]) - self.half_width) if np.any(right_pts) else math.inf

        return ObstacleReading(
            forward=max(0.0, forward_dist),
            left=max(0.0, left),
            right=max(0.0, right),
            forward_left=self._nearest(pts, ahead & (ys >= 0.0)),
            forward_right=self._nearest(pts, ahead & (ys < 0.0)),
        )

    @staticmethod
    def _nearest(pts: np.ndarray, mask: np.ndarray) -> Optional[Point]:
        if not np.any(mask):
            return None
        candidates = pts[mask]
        idx = int(np.argmin(np.hypot(candidates[:, 0], candidates[:, 1])))
        return float(candidates[idx, 0]), float(candidates[idx, 1])

    def obstacle_angle(self, positive: bool) -> float:
        radius = math.hypot(self.half_length, self.half_width)
        dist = np.hypot(self.points[:, 0], self.points[:, 1])
        pts = self.points[dist <= radius]
        if len(pts) == 0:
            return math.inf if positive else -math.inf

        # Angular half width of the footprint as seen from its centre
        half_angle = math.atan2(self.half_width, self.half_length)
        bearings = np.arctan2(pts[:, 1], pts[:, 0])
        if not positive:
            bearings = -bearings

        two_pi = 2.0 * math.pi
        # Leading edges of the front and back of the footprint
        front = np.mod(bearings - half_angle, two_pi)
        back = np.mod(bearings - math.pi - half_angle, two_pi)
        clearance = np.minimum(front, back)

        # Points already inside the footprint sectors block immediately
        inside = (np.abs(bearings) < half_angle) | (
            np.abs(np.mod(bearings, two_pi) - math.pi) < half_angle
        )
        clearance = np.where(inside, 0.0, clearance)

        angle = float(np.min(clearance))
        return angle if positive else -angle


class ObstacleMonitor:
    """Background loop publishing obstacle distances at a fixed rate.

    Attributes:
        latest: Most recent forward reading, or None before the first tick.
    """

    def __init__(
        self,
        checker: CollisionChecker,
        config_store: ConfigStore,
        telemetry=None,
        clock=None,
    ) -> None:
        self.checker = checker
        self.config_store = config_store
        self.telemetry = telemetry
        self.clock = clock if clock is not None else MonotonicClock()
        self.latest: Optional[ObstacleReading] = None
        self.should_stop = False

    def poll(self) -> Optional[ObstacleReading]:
        """Run one telemetry tick.

        Lookup failures are logged and skipped; telemetry is best effort.
        """
        self.checker.min_side_dist = self.config_store.snapshot.min_side_dist
        try:
            reading = self.checker.obstacle_distance(True)
        except TransformUnavailable as e:
            logging.warning(f"Obstacle telemetry skipped: {e}")
            return None
        self.latest = reading
        if self.telemetry is not None:
            self.telemetry.publish_obstacle_distance(reading.forward, reading.left, reading.right)
        return reading

    def obstacle_distance(self, forward: bool) -> float:
        """Clearance in the direction of travel for the linear controller.

        Forward uses the latest telemetry reading when there is one; backward
        always queries the checker directly.
        """
        if forward and self.latest is not None:
            return self.latest.forward
        self.checker.min_side_dist = self.config_store.snapshot.min_side_dist
        return self.checker.obstacle_distance(forward).forward

    async def run(self) -> None:
        rate = Rate(self.config_store.snapshot.obstacle_rate_hz, self.clock)
        while not self.should_stop:
            self.poll()
            await rate.sleep()

    def stop(self) -> None:
        """Signal the loop to stop."""
        self.should_stop = True
