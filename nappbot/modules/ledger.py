# nappbot/modules/ledger.py
"""Balance and streak store consumed by the session engine."""
from __future__ import annotations
import logging
from typing import Callable, Optional, TypeVar

import psycopg2

from nappbot.modules.errors import InsufficientFunds, StoreUnavailable

log = logging.getLogger("nappbot.modules.ledger")

T = TypeVar("T")

WIN = "win"
LOSS = "loss"


def next_streak(current: int, result: str) -> int:
    """Same-sign results extend the streak, a sign flip resets it to +1 / -1."""
    if result == WIN:
        return current + 1 if current >= 0 else 1
    if result == LOSS:
        return current - 1 if current <= 0 else -1
    raise ValueError(f"streak only moves on win/loss, got {result!r}")


class Ledger:
    """What the engine needs from the economy store. Each mutating call must be made once per settlement."""

    def get_balance(self, user_id: str) -> int:
        raise NotImplementedError

    def debit(self, user_id: str, amount: int) -> int:
        """Take a stake in one step; raise InsufficientFunds, leaving the balance alone, when it does not cover ``amount``."""
        raise NotImplementedError

    def adjust_balance(self, user_id: str, delta: int) -> Optional[int]:
        """Apply a credit; returns the new wallet balance when the store reports it."""
        raise NotImplementedError

    def get_streak(self, user_id: str) -> int:
        raise NotImplementedError

    def update_streak(self, user_id: str, result: str) -> int:
        raise NotImplementedError

    def mark_active(self, user_id: str) -> None:
        raise NotImplementedError


class DatabaseLedger(Ledger):
    """Ledger over the Postgres ``users`` table."""

    def __init__(self, database_factory: Callable[[], object]):
        self._database_factory = database_factory

    def _call(self, operation: str, fn: Callable[..., T], *args) -> T:
        try:
            db = self._database_factory()
            return fn(db, *args)
        except psycopg2.Error as exc:
            log.error("[ledger] %s failed for args=%s: %s", operation, args, exc)
            raise StoreUnavailable(operation=operation) from exc

    def get_balance(self, user_id: str) -> int:
        return self._call("get_balance", lambda db, uid: db.get_balance(uid), str(user_id))

    def debit(self, user_id: str, amount: int) -> int:
        amount = int(amount)
        balance = self._call("debit", lambda db, uid, a: db.debit_balance(uid, a), str(user_id), amount)
        if balance is None:
            have = self.get_balance(user_id)
            raise InsufficientFunds(
                f"❌ You don't have enough coins! (Need {amount}, Have {have})", need=amount, have=have
            )
        return balance

    def adjust_balance(self, user_id: str, delta: int) -> Optional[int]:
        row = self._call("adjust_balance", lambda db, uid, d: db.adjust_balance(uid, d), str(user_id), int(delta))
        return row["balance"] if row else None

    def get_streak(self, user_id: str) -> int:
        return self._call("get_streak", lambda db, uid: db.get_streak(uid), str(user_id))

    def update_streak(self, user_id: str, result: str) -> int:
        return self._call("update_streak", lambda db, uid, r: db.update_streak(uid, r), str(user_id), result)

    def mark_active(self, user_id: str) -> None:
        self._call("mark_active", lambda db, uid: db.mark_active(uid), str(user_id))


def default_ledger() -> Ledger:
    from nappbot.inc.database import get_database
    return DatabaseLedger(get_database)
