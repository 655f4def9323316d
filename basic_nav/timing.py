"""Clock and fixed-rate loop timing.

Controllers never call ``time`` or ``asyncio.sleep`` directly. They go
through a clock object so that the same code runs against wall time on the
robot and against simulated time in tests and in the simulator.
"""

import asyncio
import time


class MonotonicClock:
    """Wall clock based on ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class Rate:
    """Sleep helper that keeps a loop at a fixed frequency.

    Each call to ``sleep`` waits for whatever is left of the current period.
    If a tick overran its period the next deadline is rebased on the current
    time instead of trying to catch up with a burst of short ticks.
    """

    def __init__(self, hz: float, clock=None) -> None:
        if hz <= 0:
            raise ValueError(f"Rate must be positive, got {hz}")
        self.period = 1.0 / hz
        self.clock = clock if clock is not None else MonotonicClock()
        self._last = self.clock.now()

    async def sleep(self) -> None:
        deadline = self._last + self.period
        remaining = deadline - self.clock.now()
        if remaining > 0:
            await self.clock.sleep(remaining)
            self._last = deadline
        else:
            await self.clock.sleep(0.0)
            self._last = self.clock.now()
