"""Goal execution: rotate to face the goal, drive straight, rotate to final heading.

Localization is assumed to be imperfect:
- planning frame -> base is accurate but may be delayed and arrives slowly
- driving frame -> base is frequent but drifts, particularly after rotating

To counter this the straight-line path is planned once in the planning frame,
every motion segment is executed in the driving frame, and the executor waits
``localization_latency`` after each segment so localization can settle before
the next heading is read.
"""

import logging
import math
from typing import List, Tuple

from .collision import ObstacleMonitor
from .config import TERM_BLUE, TERM_RESET, ConfigStore
from .errors import (
    GoalError,
    InvalidOrientation,
    NoLocalizationForDriving,
    NoLocalizationForPlanning,
    Preempted,
    TransformUnavailable,
)
from .frames import FrameResolver, ResolvedFrames
from .geometry import Transform, normalize_angle, planar_distance, pose_of, rad2deg
from .goals import Goal, GoalOutcome, GoalStatus, MotionPhase, PlannedMotion
from .linear import LinearController
from .rotation import RotationController
from .timing import MonotonicClock


class GoalExecutor:
    """Sequences frame resolution, initial rotation, translation and final rotation.

    Attributes:
        transforms: TransformProvider for all pose lookups.
        commands: Command sink with ``send_command(angular, linear)``.
        config_store: Source of Config snapshots.
        telemetry: Optional sink with ``publish_path`` and ``publish_lateral_error``.
        resolver: FrameResolver built on ``transforms``.
        rotation: RotationController used for both rotation phases.
        linear: LinearController used for the translation phase.
    """

    def __init__(
        self,
        transforms,
        checker,
        commands,
        config_store: ConfigStore,
        obstacles: ObstacleMonitor = None,
        telemetry=None,
        clock=None,
    ) -> None:
        self.transforms = transforms
        self.commands = commands
        self.config_store = config_store
        self.telemetry = telemetry
        self.clock = clock if clock is not None else MonotonicClock()

        if obstacles is None:
            obstacles = ObstacleMonitor(checker, config_store, clock=self.clock)
        self.resolver = FrameResolver(transforms, config_store)
        self.rotation = RotationController(transforms, checker, commands, config_store, self.clock)
        self.linear = LinearController(
            transforms, obstacles, commands, config_store, telemetry, self.clock
        )

    async def execute(self, goal: Goal, handle) -> GoalOutcome:
        """Run one goal to a terminal state and report it through ``handle``.

        Args:
            goal: Goal to reach.
            handle: Transport handle providing ``is_preempt_requested``,
                ``set_succeeded`` and ``set_aborted``.

        Returns:
            GoalOutcome describing the terminal state and the phases run.
        """
        phases: List[MotionPhase] = []
        try:
            await self._run(goal, handle, phases)
        except Preempted as e:
            self.commands.send_command(0.0, 0.0)
            logging.info(e.message)
            handle.set_aborted(e.message, preempted=True)
            return GoalOutcome(GoalStatus.PREEMPTED, e.message, tuple(phases))
        except GoalError as e:
            self.commands.send_command(0.0, 0.0)
            logging.error(e.message)
            handle.set_aborted(e.message)
            return GoalOutcome(GoalStatus.ABORTED, e.message, tuple(phases))

        handle.set_succeeded()
        logging.info(f"{TERM_BLUE}✓ Goal succeeded{TERM_RESET}")
        return GoalOutcome(GoalStatus.SUCCEEDED, "", tuple(phases))

    def _goal_in_driving(self, goal: Goal, driving_frame: str) -> Transform:
        try:
            return self.transforms.transform_pose(goal.frame_id, driving_frame, goal.target)
        except TransformUnavailable as e:
            raise NoLocalizationForDriving(
                f"Cannot determine goal pose in driving frame ({e})"
            ) from e

    def plan(self, goal: Goal) -> Tuple[ResolvedFrames, Transform, PlannedMotion]:
        """Resolve frames and compute the straight-line plan for a goal.

        Returns:
            Tuple of (frames, goal_in_driving, planned motion).

        Raises:
            InvalidOrientation: If the goal yaw is not a finite number.
            NoLocalizationForPlanning: If no planning frame, or the robot pose
                in it, is available.
            NoLocalizationForDriving: If no driving frame is available.
        """
        cfg = self.config_store.snapshot
        requested = pose_of(goal.target)
        logging.info(
            f"Received goal {requested.x:.3f} {requested.y:.3f} "
            f"{rad2deg(requested.yaw):.2f} {goal.frame_id}"
        )
        if not math.isfinite(requested.yaw):
            raise InvalidOrientation()

        planning_frame, goal_in_planning = self.resolver.resolve_planning(goal)
        goal_pose = pose_of(goal_in_planning)
        logging.info(
            f"Goal in {planning_frame}  {goal_pose.x:.3f} {goal_pose.y:.3f} "
            f"{rad2deg(goal_pose.yaw):.2f}"
        )

        try:
            robot_in_planning = self.transforms.lookup(cfg.base_frame, planning_frame)
        except TransformUnavailable as e:
            raise NoLocalizationForPlanning(
                f"Cannot determine robot pose in planning frame ({e})"
            ) from e
        robot_pose = pose_of(robot_in_planning)

        if self.telemetry is not None:
            self.telemetry.publish_path(
                planning_frame, (robot_pose.x, robot_pose.y), (goal_pose.x, goal_pose.y)
            )

        driving_frame, driving_to_base = self.resolver.resolve_driving()
        goal_in_driving = self._goal_in_driving(goal, driving_frame)
        goal_in_base = driving_to_base * goal_in_driving
        base_pose = pose_of(goal_in_base)
        logging.info(
            f"Goal in {cfg.base_frame}  {base_pose.x:.3f} {base_pose.y:.3f} "
            f"{rad2deg(base_pose.yaw):.2f}"
        )

        distance = planar_distance(goal_in_base)
        reverse_without_turning = (
            distance < cfg.reverse_without_turning_threshold and goal_in_base.x < 0.0
        )
        heading = math.atan2(goal_in_base.y, goal_in_base.x)
        if reverse_without_turning:
            # Face away from the goal so it can be reached by backing up
            heading = normalize_angle(heading + math.pi)

        motion = PlannedMotion(
            goal_yaw=goal_pose.yaw,
            start_yaw=robot_pose.yaw,
            distance=distance,
            heading=heading,
            reverse_without_turning=reverse_without_turning,
        )
        return ResolvedFrames(planning_frame, driving_frame), goal_in_driving, motion

    def _redrive(
        self, driving_frame: str, goal_in_driving: Transform
    ) -> Tuple[str, Transform]:
        """Re-resolve the driving frame at the start of a phase.

        A goal already expressed in the old driving frame is carried over to
        the new one, so goals given relative to the robot stay where they were
        at planning time.
        """
        current, _ = self.resolver.resolve_driving()
        if current != driving_frame:
            logging.warning(f"Driving frame changed from {driving_frame} to {current}")
            try:
                goal_in_driving = self.transforms.transform_pose(
                    driving_frame, current, goal_in_driving
                )
            except TransformUnavailable as e:
                raise NoLocalizationForDriving(
                    f"Cannot carry goal over to driving frame {current} ({e})"
                ) from e
        return current, goal_in_driving

    def final_rotation_error(
        self, motion: PlannedMotion, goal_in_driving: Transform, driving_frame: str
    ) -> float:
        """Heading error left after the translation, relative to the goal yaw.

        Both headings are taken in the driving frame: the goal pose there was
        fixed at planning time and the robot heading is read live. If the
        robot pose is unavailable, falls back to the heading expected from the
        start heading plus the initial rotation.
        """
        base_frame = self.config_store.snapshot.base_frame
        try:
            robot_yaw = pose_of(self.transforms.lookup(base_frame, driving_frame)).yaw
        except TransformUnavailable as e:
            logging.warning(f"{e}; estimating final rotation from the planned heading")
            return normalize_angle(motion.goal_yaw - (motion.start_yaw + motion.heading))
        return normalize_angle(pose_of(goal_in_driving).yaw - robot_yaw)

    async def _settle(self, handle) -> None:
        await self.clock.sleep(self.config_store.snapshot.localization_latency)
        if handle.is_preempt_requested():
            raise Preempted("Goal preempted between motion segments")

    async def _run(self, goal: Goal, handle, phases: List[MotionPhase]) -> None:
        frames, goal_in_driving, motion = self.plan(goal)
        driving_frame = frames.driving_frame

        if motion.distance <= self.config_store.snapshot.linear_tolerance:
            logging.info(f"Goal within {self.config_store.snapshot.linear_tolerance} meters, not moving")
            return

        if motion.reverse_without_turning:
            logging.info("Goal is close behind, reversing without turning")

        if abs(motion.heading) > self.config_store.snapshot.angular_tolerance:
            phases.append(MotionPhase.INITIAL_ROTATION)
            await self.rotation.rotate(motion.heading, driving_frame, handle)
        await self._settle(handle)

        driving_frame, goal_in_driving = self._redrive(driving_frame, goal_in_driving)
        phases.append(MotionPhase.TRANSLATION)
        await self.linear.move(goal_in_driving, driving_frame, handle)
        await self._settle(handle)

        driving_frame, goal_in_driving = self._redrive(driving_frame, goal_in_driving)
        residual = self.final_rotation_error(motion, goal_in_driving, driving_frame)
        if abs(residual) > self.config_store.snapshot.angular_tolerance:
            phases.append(MotionPhase.FINAL_ROTATION)
            await self.rotation.rotate(residual, driving_frame, handle)
