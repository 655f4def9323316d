"""Planar pose and rigid transform utilities.

This module provides the small amount of geometry the controllers need:
- A rigid 3D transform (rotation matrix + translation) with composition
- Extraction of the planar pose (x, y, yaw) from a transform
- Angle normalization to (-pi, pi]

Composition convention used throughout the package:

    pose_in_b = lookup(frame_a -> frame_b) * pose_in_a

where ``lookup(from, to)`` returns the transform mapping coordinates expressed
in ``from`` into ``to``. Swapping the operands silently reverses which frame a
pose is expressed in.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


def normalize_angle(angle: float) -> float:
    """Map an angle into (-pi, pi] by adding or subtracting 2*pi once.

    Args:
        angle: Angle in radians, assumed within [-3*pi, 3*pi].

    Returns:
        Equivalent angle in (-pi, pi].
    """
    if angle <= -math.pi:
        angle += 2.0 * math.pi
    if angle > math.pi:
        angle -= 2.0 * math.pi
    return angle


def rad2deg(rad: float) -> float:
    """Radians to degrees, for log messages."""
    return rad * 180.0 / math.pi


@dataclass(frozen=True)
class Pose2D:
    """Planar pose derived from a transform.

    Attributes:
        x: Position x-coordinate (m)
        y: Position y-coordinate (m)
        yaw: Heading (rad), normalized to (-pi, pi]
    """

    x: float
    y: float
    yaw: float


class Transform:
    """Rigid transform in 3D.

    Stores a 3x3 rotation matrix and a translation vector. Only the planar
    part is used for control, but goals may arrive with a full 3D orientation
    so roll and pitch are carried along and ignored at extraction time.
    """

    def __init__(
        self,
        rotation: Optional[np.ndarray] = None,
        translation: Optional[Sequence[float]] = None,
    ):
        self.rotation = np.eye(3) if rotation is None else np.asarray(rotation, dtype=float)
        self.translation = (
            np.zeros(3) if translation is None else np.asarray(translation, dtype=float)
        )

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def from_pose2d(cls, x: float, y: float, yaw: float) -> "Transform":
        """Build a transform from a planar pose (rotation about z only)."""
        c = math.cos(yaw)
        s = math.sin(yaw)
        rotation = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        return cls(rotation, [x, y, 0.0])

    @classmethod
    def from_quaternion(
        cls, translation: Sequence[float], quaternion: Sequence[float]
    ) -> "Transform":
        """Build a transform from a translation and an (x, y, z, w) quaternion.

        The quaternion is normalized first. A zero or non-finite quaternion
        produces a NaN rotation, which surfaces as a NaN yaw in ``pose_of``.
        """
        q = np.asarray(quaternion, dtype=float)
        norm = float(np.linalg.norm(q))
        if norm > 0.0 and math.isfinite(norm):
            q = q / norm
        else:
            q = np.full(4, np.nan)
        x, y, z, w = q
        rotation = np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
                [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
                [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
            ]
        )
        return cls(rotation, translation)

    def __mul__(self, other: "Transform") -> "Transform":
        if not isinstance(other, Transform):
            return NotImplemented
        return Transform(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def inverse(self) -> "Transform":
        rot_t = self.rotation.T
        return Transform(rot_t, -rot_t @ self.translation)

    @property
    def x(self) -> float:
        return float(self.translation[0])

    @property
    def y(self) -> float:
        return float(self.translation[1])

    def __repr__(self) -> str:
        pose = pose_of(self)
        return f"Transform(x={pose.x:.3f}, y={pose.y:.3f}, yaw={pose.yaw:.3f})"


def yaw_of(transform: Transform) -> float:
    """Rotation about the vertical axis (the ZYX Euler yaw)."""
    r = transform.rotation
    return math.atan2(r[1, 0], r[0, 0])


def pose_of(transform: Transform) -> Pose2D:
    """Retrieve the 3 DOF we are interested in from a transform."""
    yaw = yaw_of(transform)
    if math.isfinite(yaw):
        yaw = normalize_angle(yaw)
    return Pose2D(transform.x, transform.y, yaw)


def planar_distance(transform: Transform) -> float:
    """Length of the translation projected onto the ground plane."""
    return math.hypot(transform.x, transform.y)
