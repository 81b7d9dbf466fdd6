# nappbot/modules/registry.py
"""Live sessions, by id and by (user, game kind)."""
from __future__ import annotations
import threading
import zlib
from typing import Dict, List, Optional, Tuple

from nappbot.modules.errors import SessionAlreadyActive
from nappbot.modules.session import GameKind, Session

SessionKey = Tuple[str, GameKind]


class SessionRegistry:
    """
    At most one live session per (user_id, game_kind).
    Keys are striped over independent locks so unrelated users never wait on each other;
    locks are only held for dict operations, never across ledger I/O.
    """

    def __init__(self, stripes: int = 32):
        self._stripes: List[Tuple[threading.Lock, Dict[SessionKey, Session]]] = [
            (threading.Lock(), {}) for _ in range(max(1, stripes))
        ]
        self._by_id: Dict[str, Session] = {}
        self._id_lock = threading.Lock()

    def _stripe(self, key: SessionKey) -> Tuple[threading.Lock, Dict[SessionKey, Session]]:
        return self._stripes[zlib.crc32(str(key[0]).encode("utf-8")) % len(self._stripes)]

    def add(self, session: Session) -> None:
        lock, by_key = self._stripe(session.key)
        with lock:
            current = by_key.get(session.key)
            if current is not None and not current.is_terminal:
                raise SessionAlreadyActive(session=current)
            by_key[session.key] = session
        with self._id_lock:
            self._by_id[session.session_id] = session

    def get(self, session_id: str) -> Optional[Session]:
        with self._id_lock:
            return self._by_id.get(session_id)

    def get_active(self, user_id: str, game_kind: GameKind) -> Optional[Session]:
        key = (str(user_id), game_kind)
        lock, by_key = self._stripe(key)
        with lock:
            return by_key.get(key)

    def evict(self, session: Session) -> None:
        lock, by_key = self._stripe(session.key)
        with lock:
            if by_key.get(session.key) is session:
                del by_key[session.key]
        with self._id_lock:
            if self._by_id.get(session.session_id) is session:
                del self._by_id[session.session_id]

    def sessions(self) -> List[Session]:
        with self._id_lock:
            return list(self._by_id.values())

    def __len__(self) -> int:
        with self._id_lock:
            return len(self._by_id)
