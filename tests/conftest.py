"""
Pytest fixtures for NappBot tests.
"""
import os
import random
import tempfile
import threading

# must be set before anything imports nappbot.inc.logging
os.environ.setdefault("NAPPBOT_LOG_PATH", os.path.join(tempfile.mkdtemp(prefix="nappbot-tests-"), "discord.log"))

from collections import deque
from typing import Dict, List, Optional

import pytest

from nappbot.modules.cards import RandomSource
from nappbot.modules.engine import SessionEngine, default_rules
from nappbot.modules.errors import InsufficientFunds, StoreUnavailable
from nappbot.modules.ledger import Ledger, next_streak


class FakeLedger(Ledger):
    """In-memory ledger that records every call and can be told to fail specific operations."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances: Dict[str, int] = dict(balances or {})
        self.streaks: Dict[str, int] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, int] = {}
        self._lock = threading.Lock()

    def fail(self, operation: str, times: int = 1):
        self.failures[operation] = times

    def _maybe_fail(self, operation: str):
        left = self.failures.get(operation, 0)
        if left:
            self.failures[operation] = left - 1
            raise StoreUnavailable(operation=operation)

    def get_balance(self, user_id):
        self._maybe_fail("get_balance")
        return self.balances.get(user_id, 0)

    def debit(self, user_id, amount):
        with self._lock:
            self._maybe_fail("debit")
            have = self.balances.get(user_id, 0)
            if have < amount:
                raise InsufficientFunds(need=amount, have=have)
            self.calls.append(("debit", user_id, amount))
            self.balances[user_id] = have - amount
            return self.balances[user_id]

    def adjust_balance(self, user_id, delta):
        with self._lock:
            self._maybe_fail("adjust_balance")
            self.calls.append(("adjust_balance", user_id, delta))
            self.balances[user_id] = self.balances.get(user_id, 0) + delta
            return self.balances[user_id]

    def get_streak(self, user_id):
        return self.streaks.get(user_id, 0)

    def update_streak(self, user_id, result):
        self._maybe_fail("update_streak")
        self.calls.append(("update_streak", user_id, result))
        self.streaks[user_id] = next_streak(self.streaks.get(user_id, 0), result)
        return self.streaks[user_id]

    def mark_active(self, user_id):
        self._maybe_fail("mark_active")
        self.calls.append(("mark_active", user_id))

    def adjustments(self, user_id=None):
        """Every balance movement in order, debits as negatives."""
        moves = []
        for name, uid, amount in (c for c in self.calls if c[0] in ("debit", "adjust_balance")):
            if user_id is None or uid == user_id:
                moves.append(-amount if name == "debit" else amount)
        return moves

    def streak_calls(self):
        return [c[2] for c in self.calls if c[0] == "update_streak"]


class ScriptedRandom(RandomSource):
    """
    RandomSource that plays back scripted draws before falling back to a seeded RNG.
    Cards are scripted by code ("AS", "10H", "KD") and pulled out of the deck being drawn from.
    """

    def __init__(self, cards=(), uniforms=(), symbols=(), seed: int = 7):
        super().__init__(random.Random(seed))
        self.cards = deque(cards)
        self.uniforms = deque(uniforms)
        self.symbols = deque(symbols)

    def draw_card(self, deck):
        if self.cards and deck:
            code = self.cards.popleft()
            for i, card in enumerate(deck):
                if card["code"] == code:
                    return deck.pop(i)
            raise AssertionError(f"scripted card {code} is not in the deck")
        return super().draw_card(deck)

    def draw_uniform(self, low, high):
        if self.uniforms:
            return self.uniforms.popleft()
        return super().draw_uniform(low, high)

    def draw_symbol(self, alphabet):
        if self.symbols:
            wanted = self.symbols.popleft()
            if callable(wanted):
                return wanted(alphabet)
            return wanted
        return super().draw_symbol(alphabet)


class ManualClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Recorder:
    """Stands in for the scheduler and the renderer; remembers what it was called with."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger({"u1": 100, "u2": 100})


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler() -> Recorder:
    return Recorder()


@pytest.fixture
def renderer() -> Recorder:
    return Recorder()


@pytest.fixture
def engine(ledger, rng, clock, scheduler, renderer) -> SessionEngine:
    return SessionEngine(
        ledger,
        rules=default_rules(),
        rng=rng,
        clock=clock,
        scheduler=scheduler,
        renderer=renderer,
        decision_timeout=60,
        replay_window=30,
    )
