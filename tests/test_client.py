"""Tests for WebSocket message routing in the robot bridge."""

import json
import logging
import math
from unittest.mock import MagicMock

import pytest

from basic_nav.client import CustomFormatter, RobotBridge
from basic_nav.collision import PointCloudCollisionChecker
from basic_nav.config import ConfigStore
from basic_nav.frames import TransformTree
from basic_nav.geometry import pose_of
from basic_nav.goals import Goal, GoalOutcome, GoalStatus, MotionPhase


def make_bridge():
    server = MagicMock()
    bridge = RobotBridge(
        "ws://localhost:8765",
        TransformTree(),
        PointCloudCollisionChecker(),
        ConfigStore(),
        server,
    )
    return bridge, server


def test_invalid_uri_rejected():
    """Test the bridge refuses non-WebSocket URIs."""
    with pytest.raises(ValueError):
        RobotBridge("http://localhost", TransformTree(), PointCloudCollisionChecker(), ConfigStore())


def test_transform_message_updates_tree():
    """Test a transform message becomes a tree edge."""
    bridge, _ = make_bridge()
    s = math.sin(math.pi / 4)
    bridge.parse_and_route_message(
        json.dumps(
            {
                "message_type": "transform",
                "parent": "odom",
                "child": "base_footprint",
                "translation": [1.0, 2.0, 0.0],
                "rotation": [0.0, 0.0, s, s],
            }
        )
    )

    pose = pose_of(bridge.transforms.lookup("base_footprint", "odom"))
    assert (pose.x, pose.y) == (1.0, 2.0)
    assert math.isclose(pose.yaw, math.pi / 2)


def test_obstacles_message_updates_checker():
    """Test obstacle points reach the collision checker."""
    bridge, _ = make_bridge()
    bridge.parse_and_route_message(
        json.dumps({"message_type": "obstacles", "points": [[1.0, 0.0, 0.3]]}).encode("utf-8")
    )
    assert math.isclose(bridge.checker.obstacle_distance(True).forward, 0.8)


def test_simple_goal_message_submits_goal():
    """Test an x/y/yaw goal is queued on the action server."""
    bridge, server = make_bridge()
    bridge.parse_and_route_message(
        json.dumps({"message_type": "goal", "frame_id": "map", "x": 1.0, "y": 2.0, "yaw": 0.5})
    )
    server.submit_simple_goal.assert_called_once_with(1.0, 2.0, 0.5, "map")


def test_quaternion_goal_message_submits_goal():
    """Test a position/orientation goal keeps its orientation for validation."""
    bridge, server = make_bridge()
    bridge.parse_and_route_message(
        json.dumps(
            {
                "message_type": "goal",
                "frame_id": "odom",
                "position": [1.0, 0.0, 0.0],
                "orientation": [0.0, 0.0, 0.0, 0.0],
            }
        )
    )
    goal = server.submit.call_args[0][0]
    assert goal.frame_id == "odom"
    assert math.isnan(pose_of(goal.target).yaw)


def test_cancel_message():
    """Test cancel messages reach the action server."""
    bridge, server = make_bridge()
    bridge.parse_and_route_message(json.dumps({"message_type": "cancel", "all": True}))
    server.cancel.assert_called_once_with(all_goals=True)


def test_config_message_updates_store():
    """Test a valid parameter update is applied."""
    bridge, _ = make_bridge()
    bridge.parse_and_route_message(
        json.dumps({"message_type": "config", "params": {"max_linear_velocity": 0.2}})
    )
    assert bridge.config_store.snapshot.max_linear_velocity == 0.2


def test_invalid_config_message_rejected():
    """Test an invalid parameter update leaves the configuration unchanged."""
    bridge, _ = make_bridge()
    before = bridge.config_store.snapshot
    bridge.parse_and_route_message(
        json.dumps({"message_type": "config", "params": {"max_linear_velocity": "fast"}})
    )
    assert bridge.config_store.snapshot is before


def test_malformed_messages_do_not_raise():
    """Test bad JSON and missing fields are logged, not raised."""
    bridge, server = make_bridge()
    bridge.parse_and_route_message("{not json")
    bridge.parse_and_route_message(json.dumps({"message_type": "goal", "frame_id": "map"}))
    bridge.parse_and_route_message(json.dumps({"message_type": "mystery"}))
    server.submit_simple_goal.assert_not_called()


def test_outbound_messages_dropped_while_disconnected():
    """Test nothing is queued for sending without a connection."""
    bridge, _ = make_bridge()
    bridge.send_command(0.1, 0.2)
    assert bridge._outbox.empty()


def test_outbound_messages_queued_while_connected():
    """Test commands and results are serialized for the sender task."""
    bridge, _ = make_bridge()
    bridge.connected = True

    bridge.send_command(0.1, 0.2)
    bridge.publish_result(
        Goal.from_pose(1.0, 0.0, 0.0, "odom"),
        GoalOutcome(GoalStatus.SUCCEEDED, "", (MotionPhase.TRANSLATION,)),
    )

    cmd = json.loads(bridge._outbox.get_nowait())
    result = json.loads(bridge._outbox.get_nowait())
    assert cmd == {"message_type": "cmd_vel", "angular": 0.1, "linear": 0.2}
    assert result["status"] == "succeeded"
    assert result["phases"] == ["translation"]


def test_formatter_hides_timestamp_for_info():
    """Test INFO records are printed bare and warnings carry a level."""
    formatter = CustomFormatter()
    info = logging.LogRecord("basic_nav", logging.INFO, __file__, 1, "hello", None, None)
    warning = logging.LogRecord("basic_nav", logging.WARNING, __file__, 1, "careful", None, None)

    assert formatter.format(info) == "hello"
    assert formatter.format(warning).endswith("WARNING - careful")
