"""Goal failure kinds.

Every failure is terminal for the goal being executed: nothing is retried and
the executor never resumes a failed phase. The message of each exception is
what gets logged and reported through the action transport.
"""


class TransformUnavailable(Exception):
    """A transform lookup between two frames failed."""

    def __init__(self, from_frame: str, to_frame: str, reason: str = ""):
        self.from_frame = from_frame
        self.to_frame = to_frame
        detail = f": {reason}" if reason else ""
        super().__init__(f"No transform from {from_frame} to {to_frame}{detail}")


class GoalError(Exception):
    """Base class for everything that ends a goal without success."""

    default_message = "Goal aborted"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidOrientation(GoalError):
    default_message = "Aborting goal because an invalid orientation was specified"


class NoLocalizationForPlanning(GoalError):
    default_message = "No localization available for planning"


class NoLocalizationForDriving(GoalError):
    default_message = "Cannot determine robot pose in driving frame"


class NoPoseForRotation(GoalError):
    default_message = "Cannot determine robot pose for rotation"


class NoPoseForTranslation(GoalError):
    default_message = "Cannot determine robot pose for linear"


class ObstacleTimeout(GoalError):
    default_message = "Aborting due to obstacle"


class NoProgressTimeout(GoalError):
    default_message = "No progress towards goal for longer than timeout"


class Preempted(GoalError):
    """Cooperative cancellation, reported on the abort channel."""

    default_message = "Goal preempted"
