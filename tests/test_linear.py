"""Tests for the straight-line controller and its lateral PID."""

import asyncio
import math
from unittest.mock import MagicMock

import pytest

from basic_nav.config import Config, ConfigStore
from basic_nav.errors import NoPoseForTranslation, NoProgressTimeout, ObstacleTimeout, Preempted
from basic_nav.frames import TransformTree
from basic_nav.geometry import Transform
from basic_nav.linear import LateralPID, LinearControlState, LinearController
from basic_nav.sim import SimClock, SimulatedRobot


class ScriptedObstacles:
    """Reports ``blocked`` clearance for the first ``ticks`` queries, then clear."""

    def __init__(self, ticks, blocked=0.1):
        self.ticks = ticks
        self.blocked = blocked
        self.calls = 0

    def obstacle_distance(self, forward):
        self.calls += 1
        return self.blocked if self.calls <= self.ticks else math.inf


def make_handle(preempt=False):
    handle = MagicMock()
    handle.is_preempt_requested.return_value = preempt
    return handle


def make_rig(obstacles=None, config=None, commands=None):
    clock = SimClock()
    tree = TransformTree(clock=clock)
    robot = SimulatedRobot(tree, clock)
    telemetry = MagicMock()
    controller = LinearController(
        tree,
        obstacles if obstacles is not None else ScriptedObstacles(0),
        commands if commands is not None else robot,
        ConfigStore(config),
        telemetry,
        clock,
    )
    return robot, controller, telemetry, clock


def test_pid_zero_on_straight_path():
    """Test no rotation is produced while the lateral offset stays zero."""
    pid = LateralPID()
    cfg = Config()
    assert all(pid.update(0.0, cfg) == 0.0 for _ in range(50))
    assert pid.integral == 0.0


def test_pid_terms_and_clamp():
    """Test P and D terms on the first sample and clamping."""
    pid = LateralPID()
    cfg = Config(lateral_kp=2.0, lateral_ki=0.0, lateral_kd=20.0, max_lateral_velocity=10.0)

    # error 0.1: P = 0.2, D = 20 * 0.1 = 2.0
    assert math.isclose(pid.update(0.1, cfg), 2.2)
    # unchanged error: derivative term vanishes
    assert math.isclose(pid.update(0.1, cfg), 0.2)

    clamped = LateralPID().update(1.0, Config())
    assert clamped == Config().max_lateral_velocity


def test_pid_error_weighted():
    """Test the side recover weight scales the error."""
    pid = LateralPID()
    pid.update(0.2, Config(side_recover_weight=0.5))
    assert math.isclose(pid.error, 0.1)


def test_progress_timer_resets_on_improvement():
    """Test the stall timer restarts whenever a new best distance is reached."""
    cfg = Config(abort_timeout=5.0)
    state = LinearControlState(
        requested_distance=2.0, forward=True, best_distance=2.0, last_progress_time=0.0
    )

    assert not LinearController._update_progress(state, 2.1, cfg, 4.0)
    assert not LinearController._update_progress(state, 1.9, cfg, 4.5)
    assert state.last_progress_time == 4.5
    assert not LinearController._update_progress(state, 2.0, cfg, 9.0)
    assert LinearController._update_progress(state, 2.0, cfg, 9.6)


def test_move_forward_reaches_goal():
    """Test a straight forward move ends within tolerance with no steering."""
    robot, controller, telemetry, _ = make_rig()
    goal = Transform.from_pose2d(1.5, 0.0, 0.0)

    remaining_x, remaining_y = asyncio.run(controller.move(goal, "odom", make_handle()))

    assert math.hypot(remaining_x, remaining_y) < Config().linear_tolerance
    assert robot.x > 1.4
    assert all(angular == 0.0 for _, angular, _ in robot.commands)
    assert all(linear >= 0.0 for _, _, linear in robot.commands)
    assert robot.commands[-1][1:] == (0.0, 0.0)
    assert telemetry.publish_lateral_error.called


def test_move_respects_max_linear_velocity():
    """Test commanded speed never exceeds max_linear_velocity."""
    robot, controller, _, _ = make_rig(config=Config(max_linear_velocity=0.3))

    asyncio.run(controller.move(Transform.from_pose2d(2.0, 0.0, 0.0), "odom", make_handle()))

    assert max(linear for _, _, linear in robot.commands) <= 0.3


def test_move_corrects_lateral_offset():
    """Test the PID steers towards a goal slightly off the heading line."""
    robot, controller, _, _ = make_rig()

    asyncio.run(controller.move(Transform.from_pose2d(2.0, 0.15, 0.0), "odom", make_handle()))

    assert robot.commands[0][1] > 0
    assert abs(robot.y - 0.15) < 0.1


def test_move_backward_negates_velocity():
    """Test a goal behind the robot is reached with non-positive velocities."""
    robot, controller, _, _ = make_rig()

    asyncio.run(controller.move(Transform.from_pose2d(-0.3, 0.0, 0.0), "odom", make_handle()))

    assert all(linear <= 0.0 for _, _, linear in robot.commands)
    assert robot.x < -0.2


def test_obstacle_pause_then_resume():
    """Test the robot holds still while blocked and finishes once clear."""
    obstacles = ScriptedObstacles(ticks=25)
    robot, controller, _, _ = make_rig(obstacles=obstacles)

    asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.0, 0.0), "odom", make_handle()))

    paused = robot.commands[:25]
    assert all(linear == 0.0 for _, _, linear in paused)
    assert robot.commands[25][2] > 0.0
    assert robot.x > 0.9


def test_obstacle_pause_keeps_lateral_integral():
    """Test the lateral integral keeps growing through a pause and is not reset on resume."""
    obstacles = ScriptedObstacles(ticks=25)
    robot, controller, telemetry, _ = make_rig(
        obstacles=obstacles,
        config=Config(lateral_kp=0.0, lateral_ki=0.01, lateral_kd=0.0, max_lateral_velocity=10.0),
    )

    handle = MagicMock()
    handle.is_preempt_requested.side_effect = [False] * 29 + [True]

    with pytest.raises(Preempted):
        asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.1, 0.0), "odom", handle))

    rotations = [angular for _, angular, _ in robot.commands]
    assert all(linear == 0.0 for _, _, linear in robot.commands[:25])
    assert 0.0 < rotations[0] < rotations[24] < rotations[25]
    # Integral of roughly 25 samples of a 0.1 m offset, not a fresh start
    assert rotations[25] > 0.01 * 20 * 0.09
    errors = [c.args[1] for c in telemetry.publish_lateral_error.call_args_list]
    assert errors[25] > 0.0


def test_obstacle_timeout_aborts():
    """Test an obstacle that never clears aborts after the wait threshold."""
    obstacles = ScriptedObstacles(ticks=10 ** 6)
    robot, controller, _, clock = make_rig(
        obstacles=obstacles, config=Config(obstacle_wait_threshold=2.0)
    )

    with pytest.raises(ObstacleTimeout):
        asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.0, 0.0), "odom", make_handle()))

    assert 2.0 < clock.now() < 2.5
    assert robot.commands[-1][1:] == (0.0, 0.0)


def test_no_progress_aborts():
    """Test drifting away from the goal aborts after abort_timeout."""
    commands = MagicMock()
    robot, controller, _, clock = make_rig(commands=commands, config=Config(abort_timeout=1.0))
    # Commands never reach the robot, which slowly backs away
    robot.linear = -0.05

    with pytest.raises(NoProgressTimeout):
        asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.0, 0.0), "odom", make_handle()))

    assert 1.0 < clock.now() < 1.2
    commands.send_command.assert_called_with(0.0, 0.0)


def test_preempt_stops_move():
    """Test preemption stops the robot on the next tick."""
    robot, controller, _, _ = make_rig()

    with pytest.raises(Preempted):
        asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.0, 0.0), "odom", make_handle(True)))

    assert robot.commands == [(robot.commands[0][0], 0.0, 0.0)]


def test_missing_pose_raises():
    """Test an unknown driving frame raises NoPoseForTranslation."""
    _, controller, _, _ = make_rig()
    with pytest.raises(NoPoseForTranslation):
        asyncio.run(controller.move(Transform.from_pose2d(1.0, 0.0, 0.0), "map_x", make_handle()))
