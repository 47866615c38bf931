"""
Timer discipline shared by every delayed action in a narration session.

All delays are callbacks scheduled on the session's event loop, never blocking
waits. Three shapes exist:
  Timer        one logical single-flight timer (debounce, wave inactivity,
               periodic health readout). start() replaces any running instance.
  SettleChain  a fixed list of short waits run back to back after a mode
               transition, re-checking that the owner is still alive before
               each step.
  Scheduler    the clock + call_later primitive both are built on.
               AsyncioScheduler is the production implementation.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_soon_threadsafe(self, callback: Callable[..., None], *args) -> None: ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio loop; time is the loop's monotonic clock."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # Created outside a running loop; bound on first use
                loop = None
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def call_soon_threadsafe(self, callback: Callable[..., None], *args) -> None:
        self.loop.call_soon_threadsafe(callback, *args)


class Timer:
    """Single-flight cancellable timer."""

    def __init__(self, scheduler: Scheduler, name: str):
        self._scheduler = scheduler
        self.name = name
        self._handle: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[[], None]) -> None:
        """Arm the timer, cancelling and replacing any previous instance."""
        self.cancel()
        handle = None

        def _fire() -> None:
            # A replaced instance that fires late must not clear its successor
            if self._handle is not handle:
                return
            self._handle = None
            try:
                callback()
            except Exception:
                logger.exception("Timer %s callback failed", self.name)

        handle = self._scheduler.call_later(delay, _fire)
        self._handle = handle

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class SettleChain:
    """
    Runs `step(i)` after each delay in turn. Before every step `is_alive()` is
    consulted and the chain stops quietly once the owner is gone. `on_done`
    runs after the last step.
    """

    def __init__(self, scheduler: Scheduler, name: str):
        self._timer = Timer(scheduler, name)
        self.name = name

    @property
    def running(self) -> bool:
        return self._timer.pending

    def start(
        self,
        delays: Sequence[float],
        step: Callable[[int], None],
        is_alive: Callable[[], bool],
        on_done: Optional[Callable[[], None]] = None,
    ) -> None:
        remaining: List[float] = list(delays)
        self._timer.cancel()
        if not remaining:
            if on_done and is_alive():
                on_done()
            return
        self._schedule(remaining, 0, step, is_alive, on_done)

    def _schedule(self, delays, position, step, is_alive, on_done) -> None:
        def _advance() -> None:
            if not is_alive():
                logger.debug("Settle chain %s stopped: owner gone", self.name)
                return
            step(position)
            if position + 1 < len(delays):
                self._schedule(delays, position + 1, step, is_alive, on_done)
            elif on_done is not None:
                on_done()

        self._timer.start(delays[position], _advance)

    def cancel(self) -> None:
        self._timer.cancel()
