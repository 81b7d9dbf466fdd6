# nappbot/modules/engine.py
"""
Wager session engine.

Every game follows the same life cycle:
  stake is debited in one guarded step -> round is dealt -> the player makes zero or more
  decisions before a deadline -> the round resolves -> the ledger is credited once
  -> a short-lived replay token is handed out.

Each session is driven by discrete events (start, move, deadline expiry). Events on the
same session are serialised by the session's own lock; a terminal state is final, so the
loser of a move/expiry race gets SessionAlreadyTerminal or SessionNotFound.
"""
from __future__ import annotations
import logging
import math
import secrets
import threading
import time
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from nappbot.modules.blackjack import BlackjackRules
from nappbot.modules.cards import RandomSource
from nappbot.modules.errors import (
    Forbidden,
    IllegalMove,
    InsufficientFunds,
    ReplayExpired,
    SessionAlreadyTerminal,
    SessionNotFound,
    StoreUnavailable,
)
from nappbot.modules.higherlower import HigherLowerRules
from nappbot.modules.ledger import Ledger, LOSS, WIN
from nappbot.modules.registry import SessionRegistry
from nappbot.modules.roulette import RouletteRules
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Outcome, Result, Session, SessionState
from nappbot.modules.slots import SlotsRules
from nappbot.modules.war import WarRules

log = logging.getLogger("nappbot.modules.engine")

DEFAULT_DECISION_TIMEOUT = 60.0
DEFAULT_REPLAY_WINDOW = 30.0

Renderer = Callable[[Session, FrozenSet[str]], None]
# called as scheduler(session_id, deadline_at); an optional scheduler.cancel(session_id)
# is used once a session can no longer time out
Scheduler = Callable[[str, float], None]


def default_rules(natural_multiplier: Fraction = Fraction(1)) -> Dict[GameKind, GameRules]:
    rules: Iterable[GameRules] = (
        BlackjackRules(natural_multiplier=natural_multiplier),
        RouletteRules(),
        WarRules(),
        SlotsRules(),
        HigherLowerRules(),
    )
    return {r.kind: r for r in rules}


def compute_payout(stake: int, result: Result, multiplier: Fraction) -> int:
    if result == Result.WIN:
        return math.floor(stake * Fraction(multiplier))
    if result == Result.LOSS:
        return -stake
    return 0


@dataclass
class ReplayTicket:
    token: str
    user_id: str
    game_kind: GameKind
    stake: int
    params: Dict[str, Any]
    expires_at: float


class SessionEngine:
    def __init__(
        self,
        ledger: Ledger,
        rules: Optional[Dict[GameKind, GameRules]] = None,
        rng: Optional[RandomSource] = None,
        clock: Callable[[], float] = time.time,
        scheduler: Optional[Scheduler] = None,
        renderer: Optional[Renderer] = None,
        decision_timeout: float = DEFAULT_DECISION_TIMEOUT,
        replay_window: float = DEFAULT_REPLAY_WINDOW,
    ):
        self.ledger = ledger
        self.rules = rules or default_rules()
        self.rng = rng or RandomSource()
        self.clock = clock
        self.scheduler = scheduler
        self.renderer = renderer
        self.decision_timeout = float(decision_timeout)
        self.replay_window = float(replay_window)
        self.registry = SessionRegistry()
        self._replays: Dict[str, ReplayTicket] = {}
        self._replay_lock = threading.Lock()
        self._errored: Dict[str, Session] = {}
        self._errored_lock = threading.Lock()

    # ---------------- lookups ----------------
    def _rules_for(self, game_kind: GameKind) -> GameRules:
        try:
            return self.rules[GameKind(game_kind)]
        except (KeyError, ValueError):
            raise IllegalMove(f"❌ Unknown game `{game_kind}`.")

    def get_session(self, session_id: str) -> Session:
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFound()
        return session

    def legal_moves(self, session: Session) -> FrozenSet[str]:
        if session.state != SessionState.AWAITING_DECISION:
            return frozenset()
        return self._rules_for(session.game_kind).legal_moves(session.round_data)

    def errored_sessions(self) -> List[Session]:
        with self._errored_lock:
            return list(self._errored.values())

    # ---------------- outbound hooks ----------------
    def _render(self, session: Session) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer(session, self.legal_moves(session))
        except Exception:
            log.exception("[engine] renderer failed for session %s", session.session_id)

    def _schedule_deadline(self, session: Session) -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler(session.session_id, session.deadline_at)
        except Exception:
            log.exception("[engine] could not schedule expiry for session %s", session.session_id)

    def _mark_active(self, user_id: str) -> None:
        try:
            self.ledger.mark_active(user_id)
        except StoreUnavailable as exc:
            log.warning("[engine] mark_active failed for user %s: %s", user_id, exc)

    def _cancel_deadline(self, session: Session) -> None:
        cancel = getattr(self.scheduler, "cancel", None)
        if cancel is None or not self._rules_for(session.game_kind).has_decisions:
            return
        try:
            cancel(session.session_id)
        except Exception:
            log.exception("[engine] could not cancel expiry for session %s", session.session_id)

    def _transition(self, session: Session, state: SessionState) -> None:
        session.transition(state)
        if session.is_terminal:
            self._cancel_deadline(session)
        self._render(session)

    def _fail(self, session: Session, operation: str, pending_credit: int, exc: BaseException) -> None:
        """Move a session to Errored and keep it around for reconciliation."""
        session.failed_operation = operation
        session.pending_credit = pending_credit
        if not session.is_terminal:
            session.transition(SessionState.ERRORED)
        self.registry.evict(session)
        with self._errored_lock:
            self._errored[session.session_id] = session
        self._cancel_deadline(session)
        log.error(
            "[engine] session %s (user %s, %s) errored during %s, pending credit %s: %s",
            session.session_id, session.user_id, session.game_kind.value, operation, pending_credit, exc,
        )
        self._render(session)

    # ---------------- start ----------------
    def start_session(self, user_id: str, game_kind: GameKind, stake: int, params: Optional[Dict[str, Any]] = None) -> Session:
        user_id = str(user_id)
        rules = self._rules_for(game_kind)
        stake = int(stake)
        if stake <= 0:
            raise IllegalMove("❌ Your bet has to be more than zero.")
        params = rules.validate_params(params or {})

        now = self.clock()
        session = Session(
            user_id=user_id,
            game_kind=rules.kind,
            stake=stake,
            created_at=now,
            deadline_at=now + self.decision_timeout,
            params=params,
        )
        self.registry.add(session)

        with session.lock:
            try:
                session.balance = self.ledger.debit(user_id, stake)
            except InsufficientFunds as exc:
                # nothing was debited; the session never leaves Created
                self.registry.evict(session)
                raise InsufficientFunds(
                    f"❌ You don't have enough coins for this bet! (Need {stake}, Have {exc.have})",
                    need=stake, have=exc.have,
                ) from None
            except StoreUnavailable:
                self.registry.evict(session)
                raise

            self._mark_active(user_id)
            try:
                session.round_data = rules.deal(self.rng, params)
            except Exception as exc:
                self._fail(session, "deal", stake, exc)
                raise

            if rules.has_decisions and not rules.is_turn_over(session.round_data):
                self._transition(session, SessionState.AWAITING_DECISION)
                self._schedule_deadline(session)
            else:
                self._transition(session, SessionState.RESOLVING)
                self._settle_locked(session)
        log.info("[engine] %s started %s session %s for %s", user_id, rules.kind.value, session.session_id, stake)
        return session

    # ---------------- moves ----------------
    def submit_move(self, session_id: str, move: str, user_id: Optional[str] = None) -> Session:
        session = self.get_session(session_id)
        if user_id is not None and str(user_id) != session.user_id:
            raise Forbidden()
        rules = self._rules_for(session.game_kind)
        with session.lock:
            if session.is_terminal:
                raise SessionAlreadyTerminal(session=session)
            if session.state != SessionState.AWAITING_DECISION:
                raise IllegalMove(session=session)
            if self.clock() >= session.deadline_at:
                self._expire_locked(session)
                if session.state == SessionState.EXPIRED:
                    raise SessionAlreadyTerminal("❌ Too slow! That game timed out.", session=session)
                raise SessionAlreadyTerminal("⌛ Too slow! Your pot was cashed out for you.", session=session)
            if move not in rules.legal_moves(session.round_data):
                raise IllegalMove(f"❌ You can't {move} right now.", session=session)

            cost = rules.move_cost(session, move)
            if cost:
                try:
                    session.balance = self.ledger.debit(session.user_id, cost)
                except InsufficientFunds as exc:
                    raise InsufficientFunds(
                        f"❌ You cannot afford to {move}! (Need {cost}, Have {exc.have})",
                        need=cost, have=exc.have, session=session,
                    ) from None
                session.stake += cost

            self._mark_active(session.user_id)
            try:
                turn_over = rules.apply_move(self.rng, session.round_data, move)
            except Exception as exc:
                self._fail(session, f"move:{move}", session.stake, exc)
                raise

            if turn_over:
                self._transition(session, SessionState.RESOLVING)
                self._settle_locked(session)
            else:
                session.deadline_at = self.clock() + self.decision_timeout
                self._transition(session, SessionState.AWAITING_DECISION)
                self._schedule_deadline(session)
        return session

    # ---------------- settlement ----------------
    def resolve_and_settle(self, session: Session) -> Session:
        with session.lock:
            if session.is_terminal:
                raise SessionAlreadyTerminal(session=session)
            if session.state != SessionState.RESOLVING:
                raise IllegalMove(session=session)
            self._settle_locked(session)
        return session

    def _settle_locked(self, session: Session) -> None:
        rules = self._rules_for(session.game_kind)
        try:
            resolution = rules.resolve(self.rng, session.round_data)
        except Exception as exc:
            self._fail(session, "resolve", session.stake, exc)
            raise

        payout = compute_payout(session.stake, resolution.result, resolution.multiplier)
        credit = session.stake + payout
        balance = session.balance
        if credit:
            try:
                balance = self.ledger.adjust_balance(session.user_id, credit)
            except StoreUnavailable as exc:
                session.outcome = Outcome(resolution.result, payout, resolution.multiplier)
                self._fail(session, "adjust_balance", credit, exc)
                raise StoreUnavailable(operation="adjust_balance", session=session) from exc

        streak = None
        if resolution.result != Result.PUSH:
            try:
                streak = self.ledger.update_streak(session.user_id, WIN if resolution.result == Result.WIN else LOSS)
            except StoreUnavailable as exc:
                log.warning("[engine] streak update failed for session %s (user %s): %s",
                            session.session_id, session.user_id, exc)

        session.balance = balance
        session.outcome = Outcome(resolution.result, payout, resolution.multiplier, streak=streak, balance=balance)
        session.replay_token = secrets.token_urlsafe(12)
        session.replay_expires_at = self.clock() + self.replay_window
        with self._replay_lock:
            self._replays[session.replay_token] = ReplayTicket(
                token=session.replay_token,
                user_id=session.user_id,
                game_kind=session.game_kind,
                stake=rules.replay_stake(session),
                params=rules.replay_params(session) or {},
                expires_at=session.replay_expires_at,
            )
        self.registry.evict(session)
        self._transition(session, SessionState.SETTLED)
        log.info("[engine] session %s settled: %s %+d (stake %s, user %s)",
                 session.session_id, resolution.result.value, payout, session.stake, session.user_id)

    # ---------------- expiry ----------------
    def expire_session(self, session_id: str) -> Session:
        """Deadline callback. A stale timer (deadline pushed back by a later move) leaves the session alone."""
        session = self.get_session(session_id)
        with session.lock:
            if session.is_terminal:
                raise SessionAlreadyTerminal(session=session)
            if session.state != SessionState.AWAITING_DECISION:
                return session
            if self.clock() < session.deadline_at:
                return session
            self._expire_locked(session)
        return session

    def _expire_locked(self, session: Session) -> None:
        rules = self._rules_for(session.game_kind)
        move = rules.timeout_move(session.round_data)
        if move is not None:
            session.timed_out = True
            try:
                rules.apply_move(self.rng, session.round_data, move)
            except Exception as exc:
                self._fail(session, f"timeout:{move}", session.stake, exc)
                raise
            log.info("[engine] session %s timed out, playing %s for %s", session.session_id, move, session.user_id)
            self._transition(session, SessionState.RESOLVING)
            self._settle_locked(session)
            return

        streak = None
        try:
            streak = self.ledger.update_streak(session.user_id, LOSS)
        except StoreUnavailable as exc:
            log.warning("[engine] streak update failed while expiring session %s: %s", session.session_id, exc)
        session.timed_out = True
        session.outcome = Outcome(Result.LOSS, -session.stake, streak=streak, balance=session.balance)
        self.registry.evict(session)
        self._transition(session, SessionState.EXPIRED)
        log.info("[engine] session %s expired, %s forfeits %s", session.session_id, session.user_id, session.stake)

    # ---------------- replay ----------------
    def replay(self, replay_token: str, user_id: str) -> Session:
        user_id = str(user_id)
        now = self.clock()
        with self._replay_lock:
            ticket = self._replays.get(replay_token)
            if ticket is None:
                raise ReplayExpired()
            if now >= ticket.expires_at:
                del self._replays[replay_token]
                raise ReplayExpired()
            if ticket.user_id != user_id:
                raise Forbidden()
            del self._replays[replay_token]
        try:
            return self.start_session(user_id, ticket.game_kind, ticket.stake, ticket.params)
        except (InsufficientFunds, StoreUnavailable):
            # nothing was staked; let the user press the button again while it lasts
            with self._replay_lock:
                self._replays[replay_token] = ticket
            raise

    # ---------------- recovery ----------------
    def sweep(self) -> List[Session]:
        """Time out sessions whose deadline passed without their timer firing, and drop dead replay tokens."""
        now = self.clock()
        expired = []
        for session in self.registry.sessions():
            if session.state != SessionState.AWAITING_DECISION or session.deadline_at > now:
                continue
            try:
                expired.append(self.expire_session(session.session_id))
            except (SessionNotFound, SessionAlreadyTerminal):
                continue
        with self._replay_lock:
            for token in [t for t, ticket in self._replays.items() if ticket.expires_at <= now]:
                del self._replays[token]
        if expired:
            log.info("[engine] sweep timed out %s stale sessions", len(expired))
        return expired

    def reconcile_errored(self) -> List[Session]:
        """Retry the credit owed by each errored session once; sessions that still fail stay queued."""
        reconciled = []
        for session in self.errored_sessions():
            if session.pending_credit:
                try:
                    self.ledger.adjust_balance(session.user_id, session.pending_credit)
                except StoreUnavailable as exc:
                    log.error("[engine] reconciliation of session %s (user %s, %s owed) failed: %s",
                              session.session_id, session.user_id, session.pending_credit, exc)
                    continue
            log.info("[engine] reconciled session %s: credited %s to %s",
                     session.session_id, session.pending_credit, session.user_id)
            session.pending_credit = 0
            with self._errored_lock:
                self._errored.pop(session.session_id, None)
            reconciled.append(session)
        return reconciled
