"""Kinematic simulation of a differential-drive base.

Used for offline runs (``python -m basic_nav --sim``) and tests. Simulated
time only advances when someone sleeps on the ``SimClock``, so a goal that
takes a minute of robot time executes in a fraction of a second.
"""

import asyncio
import heapq
import itertools
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import Transform, normalize_angle

# Robot physical parameters
WHEELBASE = 0.33  # Distance between left and right wheels (meters)

# Velocity constraints
V_MIN = -1.0  # Minimum wheel velocity (m/s)
V_MAX = 1.0  # Maximum wheel velocity (m/s)


def inverse_kinematics(v_cmd: float, omega_cmd: float) -> Tuple[float, float]:
    """Compute wheel velocities from desired linear and angular velocities.

    For a differential drive robot:
        v_left = v - (L/2) * omega
        v_right = v + (L/2) * omega

    Args:
        v_cmd: Desired linear velocity of the robot center (m/s)
        omega_cmd: Desired angular velocity (rad/s), positive counter-clockwise

    Returns:
        (v_left, v_right) wheel velocities in m/s, clamped to [V_MIN, V_MAX]
    """
    v_left = v_cmd - (WHEELBASE / 2.0) * omega_cmd
    v_right = v_cmd + (WHEELBASE / 2.0) * omega_cmd
    return max(V_MIN, min(V_MAX, v_left)), max(V_MIN, min(V_MAX, v_right))


def forward_kinematics(v_left: float, v_right: float) -> Tuple[float, float]:
    """Robot (v, omega) produced by the given wheel velocities."""
    return (v_left + v_right) / 2.0, (v_right - v_left) / WHEELBASE


class SimClock:
    """Simulated time that advances only while something sleeps on it.

    Sleepers register a wake-up time and the clock jumps straight to the
    earliest pending one, so several loops running at different rates
    interleave exactly as they would in real time. Time moves in steps of at
    most ``max_step`` seconds and every registered listener is called with
    the step length, which is how the simulated robot integrates its motion.
    """

    def __init__(self, start: float = 0.0, max_step: float = 0.02) -> None:
        self.t = start
        self.max_step = max_step
        self._listeners: List[Callable[[float], None]] = []
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._counter = itertools.count()
        self._wake_pending = False

    def now(self) -> float:
        return self.t

    def add_listener(self, listener: Callable[[float], None]) -> None:
        self._listeners.append(listener)

    def advance(self, seconds: float) -> None:
        while seconds > 1e-12:
            dt = min(self.max_step, seconds)
            self.t += dt
            seconds -= dt
            for listener in self._listeners:
                listener(dt)

    def _wake(self) -> None:
        self._wake_pending = False
        while self._sleepers:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self.advance(deadline - self.t)
            future.set_result(None)
            break
        if self._sleepers:
            self._schedule_wake()

    def _schedule_wake(self) -> None:
        if not self._wake_pending:
            self._wake_pending = True
            asyncio.get_running_loop().call_soon(self._wake)

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.t + max(0.0, seconds), next(self._counter), future))
        self._schedule_wake()
        await future


class SimulatedRobot:
    """Unicycle robot publishing its odometry into a TransformTree.

    The robot executes the last received command until a new one arrives,
    going through wheel-level kinematics so commands beyond the wheel limits
    saturate the way a real base would.

    Attributes:
        x, y, yaw: Pose of the base in the odom frame.
        commands: History of (time, angular, linear) commands received.
    """

    def __init__(
        self,
        tree,
        clock: SimClock,
        x: float = 0.0,
        y: float = 0.0,
        yaw: float = 0.0,
        odom_frame: str = "odom",
        base_frame: str = "base_footprint",
        map_frame: Optional[str] = "map",
        map_to_odom: Optional[Transform] = None,
        checker=None,
    ) -> None:
        self.tree = tree
        self.clock = clock
        self.x = x
        self.y = y
        self.yaw = yaw
        self.odom_frame = odom_frame
        self.base_frame = base_frame
        self.checker = checker
        self.angular = 0.0
        self.linear = 0.0
        self.commands: List[Tuple[float, float, float]] = []
        self.world_obstacles = np.zeros((0, 2))

        if map_frame is not None:
            self.tree.set_transform(
                map_frame,
                odom_frame,
                map_to_odom if map_to_odom is not None else Transform.identity(),
                static=True,
            )
        self.publish()
        clock.add_listener(self.step)

    def send_command(self, angular: float, linear: float) -> None:
        self.angular = angular
        self.linear = linear
        self.commands.append((self.clock.now(), angular, linear))

    def set_obstacles(self, points: Sequence[Sequence[float]]) -> None:
        """Place obstacle points in the odom frame."""
        self.world_obstacles = np.asarray(points, dtype=float).reshape(-1, 2)
        self.publish()

    def step(self, dt: float) -> None:
        v_left, v_right = inverse_kinematics(self.linear, self.angular)
        v, omega = forward_kinematics(v_left, v_right)
        mid_yaw = self.yaw + 0.5 * omega * dt
        self.x += v * math.cos(mid_yaw) * dt
        self.y += v * math.sin(mid_yaw) * dt
        self.yaw = normalize_angle(self.yaw + omega * dt)
        self.publish()

    def pose(self) -> Transform:
        return Transform.from_pose2d(self.x, self.y, self.yaw)

    def publish(self) -> None:
        self.tree.set_transform(self.odom_frame, self.base_frame, self.pose(), stamp=self.clock.now())
        if self.checker is not None:
            # Obstacles from odom into the base frame
            c, s = math.cos(self.yaw), math.sin(self.yaw)
            offset = self.world_obstacles - np.array([self.x, self.y])
            rot = np.array([[c, s], [-s, c]])
            self.checker.set_points(offset @ rot.T)
