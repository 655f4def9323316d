"""Tests for the point cloud collision checker and the obstacle monitor."""

import asyncio
import math
from unittest.mock import MagicMock

from basic_nav.collision import ObstacleMonitor, PointCloudCollisionChecker
from basic_nav.config import ConfigStore
from basic_nav.errors import TransformUnavailable
from basic_nav.sim import SimClock


def make_checker(points=()):
    checker = PointCloudCollisionChecker(half_length=0.2, half_width=0.2, min_side_dist=0.3)
    checker.set_points(points)
    return checker


def test_no_points_is_clear():
    """Test an empty cloud gives infinite clearance everywhere."""
    checker = make_checker()
    reading = checker.obstacle_distance(True)
    assert reading.forward == math.inf
    assert reading.left == math.inf
    assert reading.right == math.inf
    assert checker.obstacle_angle(True) == math.inf
    assert checker.obstacle_angle(False) == -math.inf


def test_forward_distance_from_front_edge():
    """Test forward clearance is measured from the front of the footprint."""
    checker = make_checker([[1.0, 0.1], [2.0, 0.0]])
    reading = checker.obstacle_distance(True)
    assert math.isclose(reading.forward, 0.8)
    assert reading.forward_left == (1.0, 0.1)
    assert reading.forward_right is None


def test_point_outside_corridor_ignored():
    """Test points wider than min_side_dist do not block straight motion."""
    checker = make_checker([[1.0, 0.5]])
    assert checker.obstacle_distance(True).forward == math.inf


def test_backward_uses_points_behind():
    """Test reverse clearance looks behind the robot."""
    checker = make_checker([[1.0, 0.0], [-0.7, 0.0]])
    assert math.isclose(checker.obstacle_distance(False).forward, 0.5)


def test_side_clearance():
    """Test left and right clearance from points beside the body."""
    checker = make_checker([[0.0, 0.5], [0.1, -0.35]])
    reading = checker.obstacle_distance(True)
    assert math.isclose(reading.left, 0.3)
    assert math.isclose(reading.right, 0.15)


def test_non_finite_points_dropped():
    """Test NaN points never produce a reading."""
    checker = make_checker([[math.nan, 0.0], [math.inf, 0.0]])
    assert checker.obstacle_distance(True).forward == math.inf


def test_obstacle_angle_signed_by_direction():
    """Test rotation clearance to a point beside the robot, both directions."""
    checker = make_checker([[0.0, 0.25]])
    assert math.isclose(checker.obstacle_angle(True), math.pi / 4)
    assert math.isclose(checker.obstacle_angle(False), -math.pi / 4)


def test_obstacle_angle_ignores_points_out_of_reach():
    """Test points beyond the swept radius do not limit rotation."""
    checker = make_checker([[0.0, 1.0]])
    assert checker.obstacle_angle(True) == math.inf


def test_monitor_poll_publishes_reading():
    """Test one poll stores the reading and publishes telemetry."""
    telemetry = MagicMock()
    checker = make_checker([[1.0, 0.0]])
    monitor = ObstacleMonitor(checker, ConfigStore(), telemetry=telemetry)

    reading = monitor.poll()

    assert monitor.latest is reading
    telemetry.publish_obstacle_distance.assert_called_once_with(
        reading.forward, reading.left, reading.right
    )
    assert math.isclose(monitor.obstacle_distance(True), 0.8)


def test_monitor_applies_live_min_side_dist():
    """Test the checker corridor follows the configuration."""
    checker = make_checker([[1.0, 0.5]])
    store = ConfigStore()
    monitor = ObstacleMonitor(checker, store)

    assert monitor.poll().forward == math.inf
    store.update(min_side_dist=0.6)
    assert math.isclose(monitor.poll().forward, 0.8)


def test_monitor_poll_survives_lookup_failure():
    """Test a lookup failure skips the tick instead of raising."""
    checker = MagicMock()
    checker.obstacle_distance.side_effect = TransformUnavailable("laser", "base_footprint")
    monitor = ObstacleMonitor(checker, ConfigStore())
    assert monitor.poll() is None
    assert monitor.latest is None


def test_monitor_backward_queries_checker():
    """Test backward clearance bypasses the forward telemetry reading."""
    checker = make_checker([[-0.5, 0.0]])
    monitor = ObstacleMonitor(checker, ConfigStore())
    monitor.poll()
    assert math.isclose(monitor.obstacle_distance(False), 0.3)


def test_monitor_runs_at_configured_rate():
    """Test the loop polls at obstacle_rate_hz in simulated time."""
    clock = SimClock()
    telemetry = MagicMock()
    monitor = ObstacleMonitor(make_checker(), ConfigStore(), telemetry=telemetry, clock=clock)

    async def run_for_one_second():
        task = asyncio.create_task(monitor.run())
        await clock.sleep(1.0)
        monitor.stop()
        await task

    asyncio.run(run_for_one_second())

    assert 19 <= telemetry.publish_obstacle_distance.call_count <= 22
