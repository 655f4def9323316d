"""Tests for simulated time, the kinematic robot and the offline run."""

import asyncio
import csv
import math

from basic_nav.__main__ import run_simulation
from basic_nav.frames import TransformTree
from basic_nav.geometry import pose_of
from basic_nav.sim import SimClock, SimulatedRobot, forward_kinematics, inverse_kinematics


def test_kinematics_round_trip_within_limits():
    """Test wheel speeds map back to the commanded body velocities."""
    v, omega = forward_kinematics(*inverse_kinematics(0.3, 0.8))
    assert math.isclose(v, 0.3)
    assert math.isclose(omega, 0.8)


def test_inverse_kinematics_saturates():
    """Test wheel speeds are clamped to the hardware range."""
    v_left, v_right = inverse_kinematics(5.0, 0.0)
    assert (v_left, v_right) == (1.0, 1.0)


def test_loops_interleave_by_deadline():
    """Test two loops at different rates wake in time order."""
    clock = SimClock()
    wakeups = []

    async def loop(name, period, count):
        for _ in range(count):
            await clock.sleep(period)
            wakeups.append((round(clock.now(), 6), name))

    async def scenario():
        await asyncio.gather(loop("fast", 0.02, 5), loop("slow", 0.05, 2))

    asyncio.run(scenario())

    times = [t for t, _ in wakeups]
    assert times == sorted(times)
    assert (0.05, "slow") in wakeups
    assert math.isclose(clock.now(), 0.1)


def test_robot_drives_commanded_arc():
    """Test the robot integrates commands into its odometry transform."""
    clock = SimClock()
    tree = TransformTree(clock=clock)
    robot = SimulatedRobot(tree, clock)

    robot.send_command(0.0, 0.5)
    clock.advance(2.0)

    pose = pose_of(tree.lookup("base_footprint", "map"))
    assert math.isclose(pose.x, 1.0, abs_tol=1e-9)
    assert pose.y == 0.0


def test_run_simulation_writes_telemetry(tmp_path, monkeypatch):
    """Test an offline run succeeds and records the plan and outcome."""
    monkeypatch.delenv("RUN_DIR", raising=False)

    outcome = asyncio.run(run_simulation(1.0, 1.0, 0.0, output_dir=str(tmp_path)))

    assert outcome.succeeded
    run_dir = next((tmp_path / "results").iterdir())
    with open(run_dir / "outcomes.csv", newline="") as f:
        rows = list(csv.reader(f))
    assert rows[1][2] == "succeeded"
    with open(run_dir / "obstacle_distance.csv", newline="") as f:
        assert len(list(csv.reader(f))) > 10
