"""Value objects passed between the transport, the executor and its phases."""

import enum
from dataclasses import dataclass, field
from typing import Tuple

from .geometry import Transform, pose_of


@dataclass(frozen=True)
class Goal:
    """A goal pose and the frame it is expressed in.

    A leading ``/`` on the frame id (as some clients send) is stripped.
    """

    target: Transform
    frame_id: str

    def __post_init__(self):
        if self.frame_id.startswith("/"):
            object.__setattr__(self, "frame_id", self.frame_id[1:])

    @classmethod
    def from_pose(cls, x: float, y: float, yaw: float, frame_id: str) -> "Goal":
        return cls(Transform.from_pose2d(x, y, yaw), frame_id)

    def __str__(self) -> str:
        pose = pose_of(self.target)
        return f"({pose.x:.3f}, {pose.y:.3f}, {pose.yaw:.3f}) in {self.frame_id}"


class MotionPhase(enum.Enum):
    INITIAL_ROTATION = "initial_rotation"
    TRANSLATION = "translation"
    FINAL_ROTATION = "final_rotation"


class GoalStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    PREEMPTED = "preempted"


@dataclass(frozen=True)
class PlannedMotion:
    """Straight-line plan computed once per goal before any motion.

    Attributes:
        goal_yaw: Desired final heading in the planning frame (rad).
        start_yaw: Robot heading in the planning frame at planning time (rad).
        distance: Straight-line distance to the goal (m).
        heading: Relative rotation needed before driving (rad).
        reverse_without_turning: True when the goal is reached by backing up.
    """

    goal_yaw: float
    start_yaw: float
    distance: float
    heading: float
    reverse_without_turning: bool


@dataclass(frozen=True)
class GoalOutcome:
    """Terminal result of one goal execution."""

    status: GoalStatus
    message: str = ""
    phases: Tuple[MotionPhase, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status is GoalStatus.SUCCEEDED
