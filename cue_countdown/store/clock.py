"""One tick per period countdown clock driven by the asyncio event loop."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set

log = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ClockHandle:
    generation: int


class Clock:
    """Delivers ticks to a single callback until stopped.

    Every ``start`` opens a new generation. A tick is only delivered while its
    generation is current, so ``stop`` wins against a tick that is already due.
    Deadlines advance by exactly one period; a late loop delivers the missed
    ticks back to back instead of merging them.
    """

    def __init__(self, period: float = 1.0) -> None:
        if period <= 0:
            raise ValueError("period must be > 0")
        self.period = float(period)
        self._generation = 0
        self._active: Optional[ClockHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._ticking: Set[asyncio.Task] = set()
        self._retired: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._active is not None

    def start(self, on_tick: TickCallback) -> ClockHandle:
        if self._active is not None:
            self.stop(self._active)
        self._generation += 1
        handle = ClockHandle(self._generation)
        self._active = handle
        self._task = asyncio.create_task(self._run(handle, on_tick))
        return handle

    def stop(self, handle: ClockHandle) -> None:
        if self._active != handle:
            return
        self._active = None
        # Bumping the generation invalidates any tick already in flight.
        self._generation += 1
        task, self._task = self._task, None
        if task is None:
            return
        self._retired.add(task)
        task.add_done_callback(self._retired.discard)
        # A callback that is already running finishes; only the wait between ticks is cancelled.
        if task not in self._ticking:
            task.cancel()

    async def close(self) -> None:
        """Stop the active generation and wait for stopped tasks to wind down."""
        if self._active is not None:
            self.stop(self._active)
        current = asyncio.current_task()
        pending = [task for task in self._retired if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, handle: ClockHandle, on_tick: TickCallback) -> None:
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        deadline = loop.time()
        while True:
            deadline += self.period
            delay = deadline - loop.time()
            await asyncio.sleep(max(0.0, delay))
            if handle.generation != self._generation:
                return
            self._ticking.add(task)
            try:
                await on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Tick callback failed (generation %s)", handle.generation)
            finally:
                self._ticking.discard(task)
            if handle.generation != self._generation:
                return
