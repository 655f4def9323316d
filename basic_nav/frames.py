"""Transform lookup and planning/driving frame selection.

The robot is localized in two ways at once:
- the planning frame (e.g. ``map``) is accurate but slow and may lag
- the driving frame (e.g. ``odom``) is fast but drifts, particularly after
  rotating

The resolver picks a frame of each kind using a preferred/alternate fallback
policy. All lookups are single attempts: a failure surfaces immediately as
``TransformUnavailable`` and is never retried here.
"""

import abc
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .config import Config, ConfigStore
from .errors import NoLocalizationForDriving, NoLocalizationForPlanning, TransformUnavailable
from .geometry import Transform


class TransformProvider(abc.ABC):
    """Source of the most recent transform between two frames."""

    @abc.abstractmethod
    def lookup(self, from_frame: str, to_frame: str) -> Transform:
        """Return the transform mapping ``from_frame`` coordinates into ``to_frame``.

        Raises:
            TransformUnavailable: If the frames are not connected or the data
                is too old. Must not block waiting for newer data.
        """

    def transform_pose(self, from_frame: str, to_frame: str, pose: Transform) -> Transform:
        """Express a pose given in ``from_frame`` in ``to_frame``."""
        return self.lookup(from_frame, to_frame) * pose


@dataclass
class _Edge:
    parent: str
    transform: Transform
    stamp: float
    static: bool


class TransformTree(TransformProvider):
    """In-memory frame tree fed by transform messages.

    Each child frame has exactly one parent. The stored transform of an edge
    is the pose of the child in its parent, i.e. the transform that maps child
    coordinates into parent coordinates.

    Attributes:
        clock: Object with a ``now()`` method, used to stamp and age edges.
        stale_after: Age in seconds after which a non-static edge is treated
            as unavailable. None disables aging.
    """

    def __init__(self, clock=None, stale_after: Optional[float] = None) -> None:
        self.clock = clock
        self.stale_after = stale_after
        self._edges: Dict[str, _Edge] = {}

    def _now(self) -> float:
        return self.clock.now() if self.clock is not None else 0.0

    def set_transform(
        self,
        parent: str,
        child: str,
        transform: Transform,
        stamp: Optional[float] = None,
        static: bool = False,
    ) -> None:
        """Insert or update the pose of ``child`` in ``parent``."""
        if parent == child:
            raise ValueError(f"Frame {child} cannot be its own parent")
        self._edges[child] = _Edge(
            parent, transform, self._now() if stamp is None else stamp, static
        )

    def remove_transform(self, child: str) -> None:
        self._edges.pop(child, None)

    def frames(self) -> Tuple[str, ...]:
        names = set(self._edges)
        names.update(edge.parent for edge in self._edges.values())
        return tuple(sorted(names))

    def _pose_in_root(self, frame: str, requested: Tuple[str, str]) -> Tuple[str, Transform]:
        pose = Transform.identity()
        visited = set()
        now = self._now()
        while frame in self._edges:
            if frame in visited:
                raise TransformUnavailable(*requested, reason=f"loop at frame {frame}")
            visited.add(frame)
            edge = self._edges[frame]
            if (
                not edge.static
                and self.stale_after is not None
                and now - edge.stamp > self.stale_after
            ):
                raise TransformUnavailable(
                    *requested, reason=f"{edge.parent} -> {frame} is {now - edge.stamp:.1f}s old"
                )
            pose = edge.transform * pose
            frame = edge.parent
        return frame, pose

    def lookup(self, from_frame: str, to_frame: str) -> Transform:
        requested = (from_frame, to_frame)
        known = self.frames()
        for frame in requested:
            if frame not in known:
                raise TransformUnavailable(*requested, reason=f"unknown frame {frame}")
        if from_frame == to_frame:
            return Transform.identity()
        root_from, from_in_root = self._pose_in_root(from_frame, requested)
        root_to, to_in_root = self._pose_in_root(to_frame, requested)
        if root_from != root_to:
            raise TransformUnavailable(*requested, reason="frames are not connected")
        return to_in_root.inverse() * from_in_root


@dataclass(frozen=True)
class ResolvedFrames:
    """Frames selected for one goal execution."""

    planning_frame: str
    driving_frame: str


class FrameResolver:
    """Picks planning and driving frames with preferred/alternate fallback."""

    def __init__(self, transforms: TransformProvider, config_store: ConfigStore) -> None:
        self.transforms = transforms
        self.config_store = config_store

    def resolve_planning(self, goal) -> Tuple[str, Transform]:
        """Select the planning frame and express the goal in it.

        The pose of the robot in the planning frame MUST be known initially;
        it may or may not be known later. An empty preferred planning frame
        means planning in whatever frame the goal is given in.

        Returns:
            Tuple of (planning_frame, goal_in_planning).

        Raises:
            NoLocalizationForPlanning: If neither planning frame is reachable.
        """
        cfg: Config = self.config_store.snapshot
        if not cfg.preferred_planning_frame:
            logging.info(f"Planning in goal frame: {goal.frame_id}")
            return goal.frame_id, goal.target

        try:
            goal_in_planning = self.transforms.transform_pose(
                goal.frame_id, cfg.preferred_planning_frame, goal.target
            )
            return cfg.preferred_planning_frame, goal_in_planning
        except TransformUnavailable as e:
            logging.warning(
                f"{e}; will attempt to plan in {cfg.alternate_planning_frame} frame"
            )

        try:
            goal_in_planning = self.transforms.transform_pose(
                goal.frame_id, cfg.alternate_planning_frame, goal.target
            )
        except TransformUnavailable as e:
            raise NoLocalizationForPlanning(
                f"No localization available for planning ({e})"
            ) from e
        return cfg.alternate_planning_frame, goal_in_planning

    def resolve_driving(self) -> Tuple[str, Transform]:
        """Select the driving frame and return the current driving -> base transform.

        Returns:
            Tuple of (driving_frame, driving_to_base).

        Raises:
            NoLocalizationForDriving: If neither driving frame is reachable.
        """
        cfg: Config = self.config_store.snapshot
        try:
            driving_to_base = self.transforms.lookup(cfg.preferred_driving_frame, cfg.base_frame)
            return cfg.preferred_driving_frame, driving_to_base
        except TransformUnavailable as e:
            logging.warning(
                f"{cfg.preferred_driving_frame} not available ({e}), "
                f"attempting to drive using {cfg.alternate_driving_frame} frame"
            )

        try:
            driving_to_base = self.transforms.lookup(cfg.alternate_driving_frame, cfg.base_frame)
        except TransformUnavailable as e:
            raise NoLocalizationForDriving(
                f"Cannot determine robot pose in driving frame ({e})"
            ) from e
        return cfg.alternate_driving_frame, driving_to_base
