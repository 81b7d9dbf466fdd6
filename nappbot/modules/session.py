# nappbot/modules/session.py
"""Wager sessions and the transitions they are allowed to make."""
from __future__ import annotations
import secrets
import threading
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, Optional, Tuple

from nappbot.modules.errors import SessionAlreadyTerminal


class GameKind(str, Enum):
    BLACKJACK = "blackjack"
    ROULETTE = "roulette"
    WAR = "war"
    SLOTS = "slots"
    HIGHERLOWER = "higherlower"


class SessionState(str, Enum):
    CREATED = "created"
    AWAITING_DECISION = "awaiting_decision"
    RESOLVING = "resolving"
    SETTLED = "settled"
    EXPIRED = "expired"
    ERRORED = "errored"


class Result(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"


TERMINAL_STATES = frozenset({SessionState.SETTLED, SessionState.EXPIRED, SessionState.ERRORED})

_TRANSITIONS = {
    SessionState.CREATED: {SessionState.AWAITING_DECISION, SessionState.RESOLVING, SessionState.ERRORED},
    SessionState.AWAITING_DECISION: {
        SessionState.AWAITING_DECISION,
        SessionState.RESOLVING,
        SessionState.EXPIRED,
        SessionState.ERRORED,
    },
    SessionState.RESOLVING: {SessionState.SETTLED, SessionState.ERRORED},
}


@dataclass(frozen=True)
class Resolution:
    """What a game's resolver decides: the result and, for a win, the stake multiplier."""
    result: Result
    multiplier: Fraction = Fraction(0)


@dataclass(frozen=True)
class Outcome:
    result: Result
    payout: int  # signed net change against the balance before the session
    multiplier: Fraction = Fraction(0)
    streak: Optional[int] = None  # the player's streak after this result, None when it did not move
    balance: Optional[int] = None  # wallet after settlement, when the store reported it


@dataclass
class Session:
    user_id: str
    game_kind: GameKind
    stake: int
    created_at: float
    deadline_at: float
    params: Dict[str, Any] = field(default_factory=dict)
    session_id: str = field(default_factory=lambda: secrets.token_urlsafe(10))
    state: SessionState = SessionState.CREATED
    round_data: Dict[str, Any] = field(default_factory=dict)
    base_stake: int = 0
    outcome: Optional[Outcome] = None
    replay_token: Optional[str] = None
    replay_expires_at: Optional[float] = None
    failed_operation: Optional[str] = None
    pending_credit: int = 0
    balance: Optional[int] = None
    timed_out: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if not self.base_stake:
            self.base_stake = self.stake

    @property
    def key(self) -> Tuple[str, GameKind]:
        return (self.user_id, self.game_kind)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, new_state: SessionState) -> None:
        if self.is_terminal:
            raise SessionAlreadyTerminal(session=self)
        allowed = _TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise RuntimeError(f"session {self.session_id}: {self.state.value} -> {new_state.value} is not a valid transition")
        self.state = new_state
