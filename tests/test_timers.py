import asyncio
import threading
import time

from conftest import FakeLedger, ManualClock, ScriptedRandom
from nappbot.modules.engine import SessionEngine
from nappbot.modules.errors import SessionNotFound
from nappbot.modules.session import GameKind, SessionState
from nappbot.modules.timers import AsyncioScheduler


class FakeEngine:
    def __init__(self, fail=False):
        self.expired = []
        self.fail = fail

    def expire_session(self, session_id):
        self.expired.append(session_id)
        if self.fail:
            raise SessionNotFound()


def test_timer_fires_expire_session_in_a_worker():
    engine = FakeEngine()

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop()).bind(engine)
        scheduler("s1", time.time() + 0.05)
        await asyncio.sleep(0.3)
        return scheduler.pending()

    assert asyncio.run(run()) == 0
    assert engine.expired == ["s1"]


def test_rescheduling_replaces_the_previous_timer():
    engine = FakeEngine()

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop()).bind(engine)
        scheduler("s1", time.time() + 0.05)
        scheduler("s1", time.time() + 0.15)
        await asyncio.sleep(0.1)
        early = list(engine.expired)
        await asyncio.sleep(0.3)
        return early

    assert asyncio.run(run()) == []
    assert engine.expired == ["s1"]


def test_engine_errors_from_a_timer_are_swallowed():
    engine = FakeEngine(fail=True)

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop()).bind(engine)
        scheduler("gone", time.time())
        await asyncio.sleep(0.2)

    asyncio.run(run())
    assert engine.expired == ["gone"]


def test_cancel_drops_a_pending_timer():
    engine = FakeEngine()

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop()).bind(engine)
        scheduler("s1", time.time() + 0.1)
        await asyncio.sleep(0)  # let the threadsafe arm run
        scheduler.cancel("s1")
        await asyncio.sleep(0.3)

    asyncio.run(run())
    assert engine.expired == []


class SlowEngine(FakeEngine):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def expire_session(self, session_id):
        self.release.wait(timeout=5)
        super().expire_session(session_id)


def test_running_expiry_tasks_are_held_until_done():
    engine = SlowEngine()

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop()).bind(engine)
        scheduler("s1", time.time())
        await asyncio.sleep(0.1)
        during = scheduler.running()
        engine.release.set()
        await asyncio.sleep(0.2)
        return during, scheduler.running()

    assert asyncio.run(run()) == (1, 0)
    assert engine.expired == ["s1"]


def test_settled_session_cancels_its_timer():
    clock = ManualClock()
    engine = SessionEngine(
        FakeLedger({"u1": 100}),
        rng=ScriptedRandom(cards=["10S", "9H", "9S", "8D"]),
        clock=clock,
        decision_timeout=60,
    )

    async def run():
        scheduler = AsyncioScheduler(asyncio.get_running_loop(), clock=clock).bind(engine)
        engine.scheduler = scheduler
        session = engine.start_session("u1", GameKind.BLACKJACK, 20)
        await asyncio.sleep(0)
        armed = scheduler.pending()
        engine.submit_move(session.session_id, "stand", "u1")
        await asyncio.sleep(0)
        return session, armed, scheduler.pending()

    session, armed, left = asyncio.run(run())
    assert session.state == SessionState.SETTLED
    assert (armed, left) == (1, 0)
