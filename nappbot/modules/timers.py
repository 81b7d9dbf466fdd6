# nappbot/modules/timers.py
"""Decision deadlines driven by the bot's event loop."""
from __future__ import annotations
import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Set

from nappbot.modules.errors import WagerError

log = logging.getLogger("nappbot.modules.timers")


class AsyncioScheduler:
    """
    Engine scheduler: ``scheduler(session_id, deadline_at)``.
    Safe to call from worker threads; the timer itself lives on ``loop``.
    Re-scheduling a session replaces its previous timer and ``cancel`` drops it once the session
    is over. A timer that fires late or twice is harmless because the engine re-checks the
    deadline under the session lock.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, clock: Callable[[], float] = time.time):
        self.loop = loop
        self.clock = clock
        self.engine = None
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        # the loop only keeps weak references to tasks
        self._tasks: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def bind(self, engine) -> "AsyncioScheduler":
        self.engine = engine
        return self

    def __call__(self, session_id: str, deadline_at: float) -> None:
        delay = max(0.0, deadline_at - self.clock())
        self.loop.call_soon_threadsafe(self._arm, session_id, delay)

    def _arm(self, session_id: str, delay: float) -> None:
        handle = self.loop.call_later(delay, self._fire, session_id)
        with self._lock:
            previous = self._handles.pop(session_id, None)
            self._handles[session_id] = handle
        if previous is not None:
            previous.cancel()

    def _fire(self, session_id: str) -> None:
        with self._lock:
            self._handles.pop(session_id, None)
        task = self.loop.create_task(self._expire(session_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _expire(self, session_id: str) -> None:
        if self.engine is None:
            return
        try:
            await asyncio.to_thread(self.engine.expire_session, session_id)
        except WagerError as exc:
            # the player got there first
            log.debug("[timers] expiry of %s skipped: %s", session_id, exc.message)
        except Exception:
            log.exception("[timers] expiry of %s failed", session_id)

    def cancel(self, session_id: str) -> None:
        self.loop.call_soon_threadsafe(self._disarm, session_id)

    def _disarm(self, session_id: str) -> None:
        with self._lock:
            handle = self._handles.pop(session_id, None)
        if handle is not None:
            handle.cancel()

    def pending(self) -> int:
        with self._lock:
            return len(self._handles)

    def running(self) -> int:
        return len(self._tasks)
