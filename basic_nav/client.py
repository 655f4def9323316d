#!/usr/bin/env python3
"""
WebSocket Bridge between the goal executor and a robot server

This module provides a WebSocket client that connects to a robot server,
receives transforms, obstacle points, goals, cancellations and parameter
updates, and sends velocity commands and telemetry back. Goals are executed
one at a time by the action server; results are reported on the same socket
and logged to CSV files.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Any, Dict, Optional, Union

import websockets

from .collision import ObstacleMonitor, PointCloudCollisionChecker
from .config import (
    TERM_BLUE,
    TERM_RESET,
    TRANSFORM_STALE_SECONDS,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_TIMEOUT_SECONDS,
    WS_URI,
    ConfigStore,
)
from .data_collector import DataCollector, Fanout
from .executor import GoalExecutor
from .frames import TransformTree
from .geometry import Transform
from .goals import Goal, GoalOutcome
from .timing import MonotonicClock
from .transport import ActionServer


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class RobotBridge:
    """WebSocket link to the robot.

    Inbound messages update the transform tree, the obstacle points, the
    configuration and the goal queue. Outbound traffic (commands, telemetry,
    results) is queued synchronously by the controllers and drained by a
    sender task while a connection is open; it is dropped while disconnected
    so a reconnect never replays stale velocity commands.

    Attributes:
        uri: WebSocket URI to connect to.
        transforms: TransformTree fed by ``transform`` messages.
        checker: PointCloudCollisionChecker fed by ``obstacles`` messages.
        config_store: ConfigStore updated by ``config`` messages.
        server: ActionServer receiving ``goal`` and ``cancel`` messages.
        should_stop: Flag indicating whether to stop the connection loop.
    """

    def __init__(
        self,
        uri: str,
        transforms: TransformTree,
        checker: PointCloudCollisionChecker,
        config_store: ConfigStore,
        server: Optional[ActionServer] = None,
    ) -> None:
        """Initialize the bridge.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            transforms: Transform tree to feed.
            checker: Collision checker to feed.
            config_store: Configuration to update.
            server: Action server for goals. Can be attached later.

        Raises:
            ValueError: If URI format is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")

        self.uri: str = uri
        self.transforms = transforms
        self.checker = checker
        self.config_store = config_store
        self.server = server
        self.should_stop: bool = False
        self.connected: bool = False
        self._outbox: "asyncio.Queue[str]" = asyncio.Queue()

    def _send(self, payload: Dict[str, Any]) -> None:
        if self.connected:
            self._outbox.put_nowait(json.dumps(payload))

    def send_command(self, angular: float, linear: float) -> None:
        """Queue a velocity command."""
        self._send({"message_type": "cmd_vel", "angular": angular, "linear": linear})

    def publish_path(self, frame_id: str, start, goal) -> None:
        self._send(
            {
                "message_type": "plan",
                "frame_id": frame_id,
                "poses": [[start[0], start[1]], [goal[0], goal[1]]],
            }
        )

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        self._send(
            {"message_type": "obstacle_distance", "forward": forward, "left": left, "right": right}
        )

    def publish_lateral_error(self, x_remaining: float, lateral_error: float, rotation: float) -> None:
        self._send(
            {
                "message_type": "lateral_error",
                "x_remaining": x_remaining,
                "lateral_error": lateral_error,
                "rotation": rotation,
            }
        )

    def publish_result(self, goal: Goal, outcome: GoalOutcome) -> None:
        self._send(
            {
                "message_type": "result",
                "goal": str(goal),
                "status": outcome.status.value,
                "message": outcome.message,
                "phases": [phase.value for phase in outcome.phases],
            }
        )

    def process_transform_message(self, data: Dict[str, Any]) -> None:
        """Insert one parent -> child transform into the tree.

        Expects ``parent``, ``child``, ``translation`` ([x, y, z]) and
        ``rotation`` ([x, y, z, w] quaternion); ``static`` is optional.
        """
        transform = Transform.from_quaternion(data["translation"], data["rotation"])
        self.transforms.set_transform(
            data["parent"], data["child"], transform, static=bool(data.get("static", False))
        )

    def process_obstacles_message(self, data: Dict[str, Any]) -> None:
        """Replace the obstacle points (base frame, [[x, y], ...])."""
        points = data.get("points", [])
        if not isinstance(points, list):
            logging.warning(f"Invalid points data type: expected list, got {type(points)}")
            return
        self.checker.set_points([p[:2] for p in points])

    def process_goal_message(self, data: Dict[str, Any]) -> None:
        """Queue a goal.

        The pose is given either as ``x``, ``y``, ``yaw`` or as
        ``position`` ([x, y, z]) plus ``orientation`` ([x, y, z, w]).
        """
        if self.server is None:
            logging.warning("Goal received before the action server was attached")
            return
        frame_id = data.get("frame_id", "")
        if "orientation" in data:
            target = Transform.from_quaternion(data.get("position", [0.0, 0.0, 0.0]), data["orientation"])
            self.server.submit(Goal(target, frame_id))
        else:
            self.server.submit_simple_goal(
                float(data["x"]), float(data["y"]), float(data.get("yaw", 0.0)), frame_id
            )

    def process_cancel_message(self, data: Dict[str, Any]) -> None:
        if self.server is not None:
            self.server.cancel(all_goals=bool(data.get("all", False)))

    def process_config_message(self, data: Dict[str, Any]) -> None:
        """Apply a parameter update. Invalid updates are rejected as a whole."""
        params = data.get("params", {})
        try:
            self.config_store.update(**params)
        except (TypeError, ValueError) as e:
            logging.error(f"Rejected parameter update: {e}")

    def parse_and_route_message(self, message: Union[str, bytes]) -> None:
        """Parse incoming message and route to appropriate handler.

        Args:
            message: Raw JSON message string or bytes from WebSocket.
        """
        handlers = {
            "transform": self.process_transform_message,
            "obstacles": self.process_obstacles_message,
            "goal": self.process_goal_message,
            "cancel": self.process_cancel_message,
            "config": self.process_config_message,
        }
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)

            message_type = data.get("message_type")
            handler = handlers.get(message_type)
            if handler is None:
                logging.debug(f"\nReceived unknown message: {json.dumps(data, indent=2)}\n")
                return
            handler(data)

        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
        except (KeyError, TypeError, ValueError, IndexError) as e:
            logging.error(f"Error processing message data: {e}")

    async def _sender(self, websocket: Any) -> None:
        while True:
            message = await self._outbox.get()
            await websocket.send(message)

    async def run(self) -> None:
        """Connect to WebSocket and process messages.

        Maintains a connection to the WebSocket server with automatic retry logic
        and exponential backoff. Continues running until ``stop`` is called.
        """
        retry_delay = WS_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to server{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS
                    self.connected = True
                    sender = asyncio.create_task(self._sender(websocket))
                    try:
                        while not self.should_stop:
                            try:
                                message = await asyncio.wait_for(
                                    websocket.recv(), timeout=WS_TIMEOUT_SECONDS
                                )
                            except asyncio.TimeoutError:
                                continue
                            except websockets.exceptions.ConnectionClosed:
                                logging.warning("Connection closed by server")
                                break
                            self.parse_and_route_message(message)
                    finally:
                        self.connected = False
                        sender.cancel()
                        while not self._outbox.empty():
                            self._outbox.get_nowait()

            except Exception as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, WS_MAX_RETRY_DELAY_SECONDS)

    def stop(self) -> None:
        """Signal the bridge to stop."""
        self.should_stop = True


async def main(uri: str = WS_URI, output_dir: str = ".") -> None:
    """Main entry point for the robot bridge.

    Wires the bridge, obstacle monitor, executor and action server together,
    sets up signal handlers for graceful shutdown and runs until stopped.

    Args:
        uri: WebSocket URI of the robot server.
        output_dir: Base directory for CSV output.
    """
    clock = MonotonicClock()
    config_store = ConfigStore()
    transforms = TransformTree(clock=clock, stale_after=TRANSFORM_STALE_SECONDS)
    checker = PointCloudCollisionChecker(min_side_dist=config_store.snapshot.min_side_dist)
    bridge = RobotBridge(uri, transforms, checker, config_store)

    with DataCollector(output_dir=output_dir, clock=clock) as collector:
        commands = Fanout(bridge, collector)
        telemetry = Fanout(bridge, collector)
        monitor = ObstacleMonitor(checker, config_store, telemetry=telemetry, clock=clock)
        executor = GoalExecutor(
            transforms, checker, commands, config_store,
            obstacles=monitor, telemetry=telemetry, clock=clock,
        )

        def report(goal: Goal, outcome: GoalOutcome) -> None:
            bridge.publish_result(goal, outcome)
            collector.log_outcome(goal, outcome)

        server = ActionServer(executor, result_callback=report)
        bridge.server = server

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            server.cancel(all_goals=True)
            bridge.stop()
            monitor.stop()
            server.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await asyncio.gather(bridge.run(), monitor.run(), server.serve())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="WebSocket bridge for basic goal navigation")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"Robot server URI (default: {WS_URI})")
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        asyncio.run(main(uri=args.uri))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
