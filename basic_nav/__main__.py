"""
Main entry point when running the basic_nav module with python -m.

Without ``--sim`` this runs the WebSocket bridge. With ``--sim X Y YAW`` it
executes one goal against the kinematic simulator in simulated time and
writes the usual CSV telemetry.
"""

import argparse
import asyncio
import logging
import sys

from .client import main, setup_logging
from .collision import ObstacleMonitor, PointCloudCollisionChecker
from .config import TERM_BLUE, TERM_RESET, WS_URI, ConfigStore
from .data_collector import DataCollector, Fanout
from .executor import GoalExecutor
from .frames import TransformTree
from .goals import Goal, GoalOutcome
from .sim import SimClock, SimulatedRobot
from .transport import ActionServer


async def run_simulation(
    x: float,
    y: float,
    yaw: float,
    frame_id: str = "odom",
    obstacles=(),
    output_dir: str = ".",
) -> GoalOutcome:
    """Drive a simulated robot from the origin to one goal.

    Args:
        x, y, yaw: Goal pose.
        frame_id: Frame the goal is expressed in.
        obstacles: Obstacle points in the odom frame.
        output_dir: Base directory for CSV output.

    Returns:
        The goal outcome.
    """
    clock = SimClock()
    config_store = ConfigStore()
    transforms = TransformTree(clock=clock)
    checker = PointCloudCollisionChecker(min_side_dist=config_store.snapshot.min_side_dist)
    robot = SimulatedRobot(transforms, clock, checker=checker)
    if obstacles:
        robot.set_obstacles(obstacles)

    with DataCollector(output_dir=output_dir, clock=clock) as collector:
        commands = Fanout(robot, collector)
        monitor = ObstacleMonitor(checker, config_store, telemetry=collector, clock=clock)
        executor = GoalExecutor(
            transforms, checker, commands, config_store,
            obstacles=monitor, telemetry=collector, clock=clock,
        )
        server = ActionServer(executor, result_callback=collector.log_outcome)
        worker = asyncio.create_task(server.serve())
        monitor_task = asyncio.create_task(monitor.run())

        handle = server.submit(Goal.from_pose(x, y, yaw, frame_id))
        outcome = await handle.future

        server.stop()
        monitor.stop()
        await asyncio.gather(worker, monitor_task)

    pose = robot.pose()
    logging.info(
        f"{TERM_BLUE}Final pose ({pose.x:.3f}, {pose.y:.3f}, {robot.yaw:.3f}) "
        f"after {clock.now():.1f}s: {outcome.status.value}{TERM_RESET}"
    )
    return outcome


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rotate / drive straight / rotate goal execution")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"Robot server URI (default: {WS_URI})")
    parser.add_argument(
        "--sim",
        nargs=3,
        type=float,
        metavar=("X", "Y", "YAW"),
        help="Execute one goal against the kinematic simulator instead of a robot",
    )
    parser.add_argument("--frame", default="odom", help="Goal frame for --sim (default: odom)")
    parser.add_argument(
        "--obstacle",
        nargs=2,
        type=float,
        action="append",
        default=[],
        metavar=("X", "Y"),
        help="Obstacle point in the odom frame for --sim (repeatable)",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        if args.sim is not None:
            outcome = asyncio.run(run_simulation(*args.sim, frame_id=args.frame, obstacles=args.obstacle))
            sys.exit(0 if outcome.succeeded else 1)
        asyncio.run(main(uri=args.uri))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
