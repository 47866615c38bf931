"""Tests for the production scheduler on a real event loop."""

import asyncio
import threading

import pytest

from models.events import StateTransitionEvent
from models.game import RunState
from narration.session import NarrationSession
from services.scheduler import AsyncioScheduler, SettleChain, Timer


class _ListBackend:
    def __init__(self):
        self.spoken = []

    def speak(self, text, interrupt):
        self.spoken.append((text, interrupt))


@pytest.mark.asyncio
async def test_timer_fires_on_the_loop():
    fired = asyncio.Event()
    Timer(AsyncioScheduler(), "t").start(0.01, fired.set)
    await asyncio.wait_for(fired.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    fired = []
    timer = Timer(AsyncioScheduler(), "t")
    timer.start(0.01, lambda: fired.append(1))
    timer.cancel()
    await asyncio.sleep(0.05)
    assert fired == []


@pytest.mark.asyncio
async def test_settle_chain_on_the_loop():
    steps = []
    done = asyncio.Event()
    SettleChain(AsyncioScheduler(), "settle").start([0.01, 0.01], steps.append, lambda: True, done.set)
    await asyncio.wait_for(done.wait(), timeout=1.0)
    assert steps == [0, 1]


@pytest.mark.asyncio
async def test_scheduler_clock_is_the_loop_clock():
    scheduler = AsyncioScheduler()
    assert scheduler.now() == pytest.approx(asyncio.get_running_loop().time(), abs=0.05)


@pytest.mark.asyncio
async def test_post_threadsafe_from_a_worker_thread():
    backend = _ListBackend()
    session = NarrationSession("thread-test", lambda: None, backend)

    worker = threading.Thread(
        target=session.post_threadsafe,
        args=(StateTransitionEvent(state=RunState.LOOT),),
    )
    worker.start()
    worker.join()
    await asyncio.sleep(0.05)

    assert backend.spoken == [("Loot", True)]
    session.close()
