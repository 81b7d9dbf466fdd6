# nappbot/modules/interest.py
"""Hourly bank interest, tiered by bank balance with a bonus for recently active players."""
from __future__ import annotations
import logging
import math
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Dict, Optional

import psycopg2

log = logging.getLogger("nappbot.modules.interest")

# (upper bound exclusive, rate)
TIERS = (
    (10_000, Fraction(10, 100)),
    (50_000, Fraction(7, 100)),
    (100_000, Fraction(5, 100)),
    (500_000, Fraction(3, 100)),
    (1_000_000, Fraction(2, 100)),
)
TOP_RATE = Fraction(1, 100)
ACTIVE_BONUS = Fraction(1, 100)
MIN_GAP = timedelta(minutes=59)


def interest_rate(bank_balance: int, active: bool = False) -> Fraction:
    rate = TOP_RATE
    for bound, tier_rate in TIERS:
        if bank_balance < bound:
            rate = tier_rate
            break
    if active:
        rate += ACTIVE_BONUS
    return rate


def interest_for(bank_balance: int, active: bool = False) -> int:
    if bank_balance <= 0:
        return 0
    return math.floor(bank_balance * interest_rate(bank_balance, active))


def _as_aware(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def apply_interest(db, active_window_hours: int = 24, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Credit one round of interest to every positive bank balance.
    Skipped entirely when the last round ran less than 59 minutes ago, so a restart
    or an overlapping loop does not pay twice. Returns ``{user_id: amount}`` credited.
    """
    now = now or datetime.now(timezone.utc)
    last = _as_aware(db.last_interest_applied())
    if last is not None and now - last < MIN_GAP:
        log.debug("[interest] last applied at %s, skipping", last)
        return {}

    active = db.active_user_ids(active_window_hours)
    credited: Dict[str, int] = {}
    for row in db.list_bank_balances():
        user_id = row["user_id"]
        amount = interest_for(int(row["bank_balance"]), user_id in active)
        if amount <= 0:
            continue
        try:
            ok = db.credit_interest(user_id, amount)
        except psycopg2.Error as exc:
            log.error("[interest] crediting %s to %s failed: %s", amount, user_id, exc)
            continue
        if ok:
            credited[user_id] = amount
    log.info("[interest] credited %s users, %s coins total", len(credited), sum(credited.values()))
    return credited
