"""
Shared fixtures for the narration engine tests.

ManualScheduler drives every timer deterministically: nothing fires until a
test calls advance(), and callbacks run in due-time order with the clock set
to their due time.
"""
from typing import Callable, List, Optional, Tuple

import pytest

from models.game import CardInfo, CardKind, GameSnapshot, HeroStats, OpponentInfo


class _Handle:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    def __init__(self, start: float = 0.0):
        self.time = start
        self._seq = 0
        self._handles: List[_Handle] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        self._seq += 1
        handle = _Handle(self.time + max(0.0, delay), self._seq, callback)
        self._handles.append(handle)
        return handle

    def call_soon_threadsafe(self, callback: Callable[..., None], *args) -> None:
        callback(*args)

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled())

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled() and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.time = max(self.time, handle.when)
            handle.callback()
        self.time = target
        self._handles = [h for h in self._handles if not h.cancelled()]


class RecordingBackend:
    """Speech backend that remembers (text, interrupt, time) for each utterance."""

    def __init__(self, scheduler: Optional[ManualScheduler] = None):
        self._scheduler = scheduler
        self.spoken: List[Tuple[str, bool, float]] = []

    def speak(self, text: str, interrupt: bool) -> None:
        self.spoken.append((text, interrupt, self._scheduler.now() if self._scheduler else 0.0))

    @property
    def texts(self) -> List[str]:
        return [text for text, _, _ in self.spoken]

    def clear(self) -> None:
        self.spoken.clear()


class FakeActions:
    """GameActions double: records calls, answers with `result`."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[Tuple] = []

    def _record(self, *call) -> bool:
        self.calls.append(call)
        return self.result

    def buy(self, card_id):
        return self._record("buy", card_id)

    def sell(self, card_id):
        return self._record("sell", card_id)

    def move(self, card_id, to_stash):
        return self._record("move", card_id, to_stash)

    def select(self, card_id):
        return self._record("select", card_id)

    def exit_state(self):
        return self._record("exit_state")

    def reroll(self):
        return self._record("reroll")

    def replay_continue(self):
        return self._record("replay_continue")

    def replay_again(self):
        return self._record("replay_again")

    def replay_recap(self):
        return self._record("replay_recap")


def _card(card_id: str, name: str, **fields) -> CardInfo:
    return CardInfo(id=card_id, name=name, **fields)


def _snapshot(**fields) -> GameSnapshot:
    fields.setdefault("hero", HeroStats(health=40, max_health=50, gold=10))
    return GameSnapshot(**fields)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def backend(scheduler):
    return RecordingBackend(scheduler)


@pytest.fixture
def actions():
    return FakeActions()


@pytest.fixture
def make_card():
    return _card


@pytest.fixture
def make_snapshot():
    return _snapshot


@pytest.fixture
def shop_snapshot():
    """Shop with two items for sale, one board item, one skill and an opponent."""
    return _snapshot(
        selection=[
            _card("c1", "Sword", buy_price=5, tier="Bronze", tags=["Weapon"]),
            _card("c2", "Shield", buy_price=4),
        ],
        board=[_card("b1", "Axe", sell_price=2)],
        skills=[_card("s1", "Focus", kind=CardKind.SKILL)],
        can_exit=True,
        can_sell=True,
        can_move=True,
        opponent=OpponentInfo(
            name="Boss",
            health=30,
            max_health=60,
            items=[_card("e1", "Claw"), _card("e2", "Bite")],
        ),
    )
