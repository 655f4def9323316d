"""Goal delivery, preemption and terminal outcome reporting.

The action server hands goals to the executor strictly one at a time. A goal
submitted while another is running waits in a FIFO queue until the running
one reaches a terminal state. Preemption is cooperative: it only sets a flag
that the controllers poll once per control tick.
"""

import asyncio
import logging
from typing import Callable, Optional

from .goals import Goal, GoalOutcome, GoalStatus


class GoalHandle:
    """Transport-side view of one goal.

    Attributes:
        goal: The goal being executed.
        future: Resolved with the GoalOutcome when the goal terminates.
        status: Terminal status once reported, else None.
        message: Message accompanying the terminal status.
    """

    def __init__(self, goal: Goal, future: asyncio.Future) -> None:
        self.goal = goal
        self.future = future
        self.status: Optional[GoalStatus] = None
        self.message: str = ""
        self._preempt_requested = False

    def is_preempt_requested(self) -> bool:
        return self._preempt_requested

    def request_preempt(self) -> None:
        self._preempt_requested = True

    def set_succeeded(self, message: str = "") -> None:
        self.status = GoalStatus.SUCCEEDED
        self.message = message

    def set_aborted(self, message: str, preempted: bool = False) -> None:
        """Report failure. Preemption goes through here too, with its own status."""
        self.status = GoalStatus.PREEMPTED if preempted else GoalStatus.ABORTED
        self.message = message

    @property
    def done(self) -> bool:
        return self.future.done()


class ActionServer:
    """Queued action server feeding goals to an executor.

    Attributes:
        executor: Object with ``async execute(goal, handle) -> GoalOutcome``.
        result_callback: Optional ``callback(goal, outcome)`` invoked after
            every terminal outcome.
        active: Handle of the goal currently executing, if any.
    """

    def __init__(
        self,
        executor,
        result_callback: Optional[Callable[[Goal, GoalOutcome], None]] = None,
    ) -> None:
        self.executor = executor
        self.result_callback = result_callback
        self.active: Optional[GoalHandle] = None
        self._queue: "asyncio.Queue[Optional[GoalHandle]]" = asyncio.Queue()
        self.should_stop = False

    def submit(self, goal: Goal) -> GoalHandle:
        """Queue a goal for execution.

        Returns:
            Handle whose ``future`` resolves with the outcome.
        """
        handle = GoalHandle(goal, asyncio.get_running_loop().create_future())
        self._queue.put_nowait(handle)
        logging.info(f"Queued goal {goal}")
        return handle

    def submit_simple_goal(self, x: float, y: float, yaw: float, frame_id: str) -> GoalHandle:
        """Turn a bare pose into a goal and queue it."""
        logging.info("Received simple goal")
        return self.submit(Goal.from_pose(x, y, yaw, frame_id))

    def cancel(self, all_goals: bool = False) -> None:
        """Request preemption of the active goal, optionally of queued ones too."""
        if self.active is not None and not self.active.done:
            logging.info("Preempt requested for active goal")
            self.active.request_preempt()
        if all_goals:
            stop_pending = False
            while not self._queue.empty():
                handle = self._queue.get_nowait()
                if handle is None:
                    stop_pending = True
                    continue
                handle.request_preempt()
                self._finish(handle, GoalOutcome(GoalStatus.PREEMPTED, "Goal cancelled before start"))
            if stop_pending:
                # Keep the worker's stop marker
                self._queue.put_nowait(None)

    def _finish(self, handle: GoalHandle, outcome: GoalOutcome) -> None:
        if not handle.future.done():
            handle.future.set_result(outcome)
        if self.result_callback is not None:
            self.result_callback(handle.goal, outcome)

    async def serve(self) -> None:
        """Execute queued goals one at a time until ``stop`` is called."""
        while not self.should_stop:
            handle = await self._queue.get()
            if handle is None:
                break
            if handle.is_preempt_requested():
                self._finish(handle, GoalOutcome(GoalStatus.PREEMPTED, "Goal cancelled before start"))
                continue

            self.active = handle
            try:
                outcome = await self.executor.execute(handle.goal, handle)
            except Exception as e:
                logging.error(f"Unexpected error executing goal: {e}", exc_info=True)
                handle.set_aborted(f"Unexpected error: {e}")
                outcome = GoalOutcome(GoalStatus.ABORTED, handle.message)
            finally:
                self.active = None
            self._finish(handle, outcome)

    def stop(self) -> None:
        """Signal the worker to stop after the current goal."""
        self.should_stop = True
        self._queue.put_nowait(None)
