import threading

import pytest

from nappbot.modules.errors import SessionAlreadyActive, SessionAlreadyTerminal
from nappbot.modules.registry import SessionRegistry
from nappbot.modules.session import GameKind, Session, SessionState


def make_session(user_id="u1", kind=GameKind.BLACKJACK):
    return Session(user_id=user_id, game_kind=kind, stake=10, created_at=0, deadline_at=60)


def test_one_live_session_per_user_and_kind():
    registry = SessionRegistry()
    first = make_session()
    registry.add(first)
    with pytest.raises(SessionAlreadyActive) as err:
        registry.add(make_session())
    assert err.value.session is first

    registry.add(make_session(kind=GameKind.SLOTS))
    registry.add(make_session(user_id="u2"))
    assert len(registry) == 3
    assert registry.get_active("u1", GameKind.BLACKJACK) is first
    assert registry.get(first.session_id) is first


def test_evict_only_removes_the_same_session():
    registry = SessionRegistry()
    first = make_session()
    registry.add(first)
    registry.evict(first)
    second = make_session()
    registry.add(second)

    registry.evict(first)  # stale evict must not drop the newer session
    assert registry.get_active("u1", GameKind.BLACKJACK) is second
    assert registry.get(first.session_id) is None


def test_terminal_leftover_does_not_block_a_new_session():
    registry = SessionRegistry()
    old = make_session()
    registry.add(old)
    old.state = SessionState.SETTLED
    new = make_session()
    registry.add(new)
    assert registry.get_active("u1", GameKind.BLACKJACK) is new


def test_concurrent_adds_for_one_key_admit_exactly_one():
    registry = SessionRegistry(stripes=4)
    barrier = threading.Barrier(16)
    admitted = []

    def add():
        s = make_session()
        barrier.wait()
        try:
            registry.add(s)
            admitted.append(s)
        except SessionAlreadyActive:
            pass

    threads = [threading.Thread(target=add) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(admitted) == 1


def test_session_transitions_are_one_way():
    s = make_session()
    s.transition(SessionState.AWAITING_DECISION)
    s.transition(SessionState.AWAITING_DECISION)
    s.transition(SessionState.RESOLVING)
    with pytest.raises(RuntimeError):
        s.transition(SessionState.EXPIRED)
    s.transition(SessionState.SETTLED)
    with pytest.raises(SessionAlreadyTerminal):
        s.transition(SessionState.ERRORED)
    assert s.is_terminal
    assert s.base_stake == 10
