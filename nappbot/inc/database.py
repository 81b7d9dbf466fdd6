from __future__ import annotations

import threading
import time
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import psycopg2
from psycopg2.extras import RealDictCursor

import nappbot
from nappbot.inc.logging import logger

_DB_INSTANCE: Optional["Database"] = None
_DB_INSTANCE_LOCK = threading.Lock()

DEFAULT_STARTING_BALANCE = 5000


def ensure_database() -> "Database":
    global _DB_INSTANCE
    with _DB_INSTANCE_LOCK:
        if _DB_INSTANCE is None:
            _DB_INSTANCE = Database()
            _DB_INSTANCE.initialize()
    return _DB_INSTANCE


def get_database() -> "Database":
    return ensure_database()


class Database:
    def __init__(self, settings=None):
        self._settings = settings if settings is not None else getattr(nappbot, "settings", None)
        conn_info, retries, delay = self._build_connection_info()
        self._conn_info = conn_info
        self._connect_retries = retries
        self._connect_delay = delay
        self._starting_balance = (
            self._settings.get("ECONOMY.starting_balance", DEFAULT_STARTING_BALANCE, cast=int)
            if self._settings
            else DEFAULT_STARTING_BALANCE
        )

        # internal state
        self._lock = threading.RLock()
        self._initialized = False

    # ---------------- json helpers ----------------
    @staticmethod
    def _json_safe(value: Any) -> Any:
        """Convert common DB-native types to JSON-serializable values."""
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    @classmethod
    def _json_safe_dict(cls, row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: cls._json_safe(v) for k, v in (row or {}).items()}

    def initialize(self):
        with self._lock:
            if self._initialized:
                return
            self._ensure_tables()
            self._initialized = True

    # ---------------- connection helpers ----------------
    def _build_connection_info(self) -> Tuple[Dict[str, Any], int, float]:
        defaults = {
            "host": "127.0.0.1",
            "port": 5432,
            "user": "nappbot",
            "password": "",
            "dbname": "nappbot",
            "sslmode": "prefer",
            "connect_timeout": 5,
        }
        data = {}
        for key, default in defaults.items():
            cast = int if isinstance(default, int) else None
            val = self._settings.get(f"DATABASE.{key}", default, cast=cast) if self._settings else default
            if val is None:
                val = default
            data[key] = val
        retries = (
            self._settings.get("DATABASE.connect_retries", 10, cast=int)
            if self._settings
            else 10
        )
        delay = (
            self._settings.get("DATABASE.connect_delay", 1.0, cast=float)
            if self._settings
            else 1.0
        )
        return data, int(retries), float(delay)

    def _connect(self):
        attempts = max(1, self._connect_retries)
        for attempt in range(1, attempts + 1):
            try:
                return psycopg2.connect(**self._conn_info)
            except psycopg2.OperationalError as exc:
                if attempt >= attempts:
                    raise
                logger.warning("[database] Postgres unavailable (%s), retrying (%s/%s)", exc, attempt, attempts)
                time.sleep(self._connect_delay)

    def _execute(self, sql: str, params: Optional[Sequence] = None, fetch: bool = False):
        conn = self._connect()
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, params or ())
                    if fetch:
                        return cur.fetchall()
                    return cur.rowcount
        finally:
            conn.close()

    def _fetchone(self, sql: str, params: Optional[Sequence] = None) -> Optional[Dict[str, Any]]:
        rows = self._execute(sql, params, fetch=True)
        return rows[0] if rows else None

    def _ensure_column(self, table: str, column: str, definition: str) -> bool:
        row = self._fetchone(
            """
            SELECT column_name
            FROM information_schema.columns
            WHERE table_name = %s AND column_name = %s
            """,
            (table, column),
        )
        if row:
            return False
        self._execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
        return True

    # ---------------- schema ----------------
    def _ensure_tables(self):
        logger.debug("[database] ensuring schema exists")
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                balance BIGINT NOT NULL DEFAULT 5000,
                bank_balance BIGINT NOT NULL DEFAULT 0,
                streak INTEGER NOT NULL DEFAULT 0,
                last_work TIMESTAMPTZ,
                last_interest TIMESTAMPTZ,
                active_last TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self._ensure_column("users", "last_interest", "TIMESTAMPTZ")
        logger.debug("[database] schema ready")

    # ---------------- users ----------------
    def ensure_user(self, user_id: str) -> None:
        self._execute(
            """
            INSERT INTO users (user_id, balance, bank_balance, streak, active_last)
            VALUES (%s, %s, 0, 0, CURRENT_TIMESTAMP)
            ON CONFLICT (user_id) DO NOTHING
            """,
            (str(user_id), int(self._starting_balance)),
        )

    def get_user(self, user_id: str) -> Dict[str, Any]:
        self.ensure_user(user_id)
        row = self._fetchone(
            "SELECT user_id, balance, bank_balance, streak, last_interest, active_last FROM users WHERE user_id = %s",
            (str(user_id),),
        )
        return self._json_safe_dict(dict(row)) if row else {
            "user_id": str(user_id), "balance": 0, "bank_balance": 0, "streak": 0,
        }

    def get_balance(self, user_id: str) -> int:
        return max(0, int(self.get_user(user_id).get("balance") or 0))

    def get_streak(self, user_id: str) -> int:
        return int(self.get_user(user_id).get("streak") or 0)

    def adjust_balance(self, user_id: str, wallet_delta: int, bank_delta: int = 0) -> Dict[str, int]:
        self.ensure_user(user_id)
        row = self._fetchone(
            """
            UPDATE users
               SET balance = GREATEST(0, balance + %s),
                   bank_balance = GREATEST(0, bank_balance + %s),
                   active_last = CURRENT_TIMESTAMP
             WHERE user_id = %s
            RETURNING balance, bank_balance
            """,
            (int(wallet_delta), int(bank_delta), str(user_id)),
        )
        if not row:
            return {"balance": 0, "bank_balance": 0}
        return {"balance": int(row["balance"]), "bank_balance": int(row["bank_balance"])}

    def debit_balance(self, user_id: str, amount: int) -> Optional[int]:
        """Take ``amount`` from the wallet in one guarded statement. None when funds are short."""
        self.ensure_user(user_id)
        row = self._fetchone(
            """
            UPDATE users
               SET balance = balance - %s,
                   active_last = CURRENT_TIMESTAMP
             WHERE user_id = %s AND balance >= %s
            RETURNING balance
            """,
            (int(amount), str(user_id), int(amount)),
        )
        if not row:
            return None
        return int(row["balance"])

    def update_streak(self, user_id: str, result: str) -> int:
        if result not in ("win", "loss"):
            raise ValueError(f"invalid streak result: {result!r}")
        self.ensure_user(user_id)
        row = self._fetchone(
            """
            UPDATE users
               SET streak = CASE
                       WHEN %s = 'win' THEN CASE WHEN streak >= 0 THEN streak + 1 ELSE 1 END
                       ELSE CASE WHEN streak <= 0 THEN streak - 1 ELSE -1 END
                   END,
                   active_last = CURRENT_TIMESTAMP
             WHERE user_id = %s
            RETURNING streak
            """,
            (result, str(user_id)),
        )
        return int(row["streak"]) if row else 0

    def mark_active(self, user_id: str) -> None:
        self.ensure_user(user_id)
        self._execute("UPDATE users SET active_last = CURRENT_TIMESTAMP WHERE user_id = %s", (str(user_id),))

    def transfer_to_bank(self, user_id: str, amount: int) -> Optional[Dict[str, int]]:
        """Move coins wallet -> bank (negative amount moves bank -> wallet). None when funds are short."""
        self.ensure_user(user_id)
        amount = int(amount)
        if amount >= 0:
            guard = "balance >= %s"
            guard_val = amount
        else:
            guard = "bank_balance >= %s"
            guard_val = -amount
        row = self._fetchone(
            f"""
            UPDATE users
               SET balance = balance - %s,
                   bank_balance = bank_balance + %s,
                   active_last = CURRENT_TIMESTAMP
             WHERE user_id = %s AND {guard}
            RETURNING balance, bank_balance
            """,
            (amount, amount, str(user_id), guard_val),
        )
        if not row:
            return None
        return {"balance": int(row["balance"]), "bank_balance": int(row["bank_balance"])}

    # ---------------- interest ----------------
    def last_interest_applied(self) -> Optional[datetime]:
        row = self._fetchone("SELECT MAX(last_interest) AS last_applied FROM users")
        return row.get("last_applied") if row else None

    def active_user_ids(self, window_hours: int = 24) -> Set[str]:
        rows = self._execute(
            "SELECT user_id FROM users WHERE active_last >= CURRENT_TIMESTAMP - (%s * INTERVAL '1 hour')",
            (int(window_hours),),
            fetch=True,
        ) or []
        return {str(r["user_id"]) for r in rows}

    def list_bank_balances(self) -> List[Dict[str, Any]]:
        rows = self._execute(
            "SELECT user_id, bank_balance FROM users WHERE bank_balance > 0",
            fetch=True,
        ) or []
        return [{"user_id": str(r["user_id"]), "bank_balance": int(r["bank_balance"])} for r in rows]

    def credit_interest(self, user_id: str, amount: int) -> bool:
        count = self._execute(
            "UPDATE users SET bank_balance = bank_balance + %s, last_interest = CURRENT_TIMESTAMP WHERE user_id = %s",
            (int(amount), str(user_id)),
        )
        return bool(count)
