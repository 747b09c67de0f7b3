"""Key/value store shared by the rate limiter and the result cache.

The pipeline only depends on :class:`KeyValueStore`. :class:`MemoryStore`
is the in-process implementation; :class:`SqliteStore` persists to a
SQLite file so separate CLI runs share the day's quota and cache. Keys
expire lazily: an expired key reads as missing and is dropped on the next
write.
"""

import asyncio
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from src.storage.clock import utc_now

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String key/value store with per-key TTL and atomic counters."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value``, replacing any previous value and TTL."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically add one and return the new value."""

    @abstractmethod
    async def decr(self, key: str, floor: Optional[int] = None) -> int:
        """Atomically subtract one, never going below ``floor`` if given."""

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on an existing key. Returns False if the key is missing."""

    @abstractmethod
    async def ttl(self, key: str) -> Optional[int]:
        """Seconds until ``key`` expires, or None if missing or persistent."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class MemoryStore(KeyValueStore):
    """Thread-safe in-memory store.

    Args:
        clock: Returns the current time; tests inject a controllable clock
            to simulate day rollover.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[tuple[str, Optional[datetime]]]:
        # Caller holds the lock.
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[datetime]:
        if ttl_seconds is None:
            return None
        return self._clock() + timedelta(seconds=ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl_seconds))

    async def incr(self, key: str) -> int:
        return self._add(key, 1)

    async def decr(self, key: str, floor: Optional[int] = None) -> int:
        return self._add(key, -1, floor)

    def _add(self, key: str, delta: int, floor: Optional[int] = None) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                current, expires_at = 0, None
            else:
                try:
                    current = int(entry[0])
                except ValueError:
                    raise ValueError(f"value at '{key}' is not an integer") from None
                expires_at = entry[1]
            current += delta
            if floor is not None:
                current = max(current, floor)
            self._data[key] = (str(current), expires_at)
            return current

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            self._data[key] = (entry[0], self._expiry(ttl_seconds))
            return True

    async def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return max(0, int((entry[1] - self._clock()).total_seconds()))

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


_LIVE = "(expires_at IS NULL OR expires_at > ?)"


class SqliteStore(KeyValueStore):
    """Store backed by a SQLite file.

    Every operation opens its own connection and runs in a worker thread.
    Writes take the database write lock up front (``BEGIN IMMEDIATE``), so
    counters stay exact across store instances and processes sharing a path.

    Args:
        db_path: SQLite file; parent directories are created.
        clock: Returns the current time.
        timeout: Seconds to wait for another writer's lock.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        clock: Callable[[], datetime] = utc_now,
        timeout: float = 30.0,
    ):
        self.db_path = Path(db_path)
        self._clock = clock
        self._timeout = timeout
        self._init_db()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            """)
            purged = conn.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._now(),),
            ).rowcount
        if purged:
            logger.debug("Purged %d expired keys from %s", purged, self.db_path)

    @contextmanager
    def _connect(self, write: bool = False) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=self._timeout, isolation_level=None)
        try:
            if write:
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            if conn.in_transaction:
                conn.execute("COMMIT")
        finally:
            conn.close()

    def _now(self) -> float:
        return self._clock().timestamp()

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        if ttl_seconds is None:
            return None
        return self._now() + ttl_seconds

    def _get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT value FROM kv WHERE key = ? AND {_LIVE}", (key, self._now())
            ).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str, ttl_seconds: Optional[int]) -> None:
        with self._connect(write=True) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self._expiry(ttl_seconds)),
            )

    def _add(self, key: str, delta: int, floor: Optional[int] = None) -> int:
        now = self._now()
        with self._connect(write=True) as conn:
            conn.execute(
                "DELETE FROM kv WHERE key = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (key, now),
            )
            conn.execute(
                "INSERT OR IGNORE INTO kv (key, value, expires_at) VALUES (?, '0', NULL)",
                (key,),
            )
            current = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()[0]
            try:
                int(current)
            except ValueError:
                raise ValueError(f"value at '{key}' is not an integer") from None
            if floor is None:
                conn.execute(
                    "UPDATE kv SET value = CAST(value AS INTEGER) + ? WHERE key = ?",
                    (delta, key),
                )
            else:
                conn.execute(
                    "UPDATE kv SET value = MAX(CAST(value AS INTEGER) + ?, ?) WHERE key = ?",
                    (delta, floor, key),
                )
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return int(row[0])

    def _expire(self, key: str, ttl_seconds: int) -> bool:
        with self._connect(write=True) as conn:
            cursor = conn.execute(
                f"UPDATE kv SET expires_at = ? WHERE key = ? AND {_LIVE}",
                (self._expiry(ttl_seconds), key, self._now()),
            )
            return cursor.rowcount > 0

    def _ttl(self, key: str) -> Optional[int]:
        now = self._now()
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT expires_at FROM kv WHERE key = ? AND {_LIVE}", (key, now)
            ).fetchone()
        if row is None or row[0] is None:
            return None
        return max(0, round(row[0] - now))

    def _delete(self, key: str) -> None:
        with self._connect(write=True) as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await asyncio.to_thread(self._set, key, value, ttl_seconds)

    async def incr(self, key: str) -> int:
        return await asyncio.to_thread(self._add, key, 1)

    async def decr(self, key: str, floor: Optional[int] = None) -> int:
        return await asyncio.to_thread(self._add, key, -1, floor)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return await asyncio.to_thread(self._expire, key, ttl_seconds)

    async def ttl(self, key: str) -> Optional[int]:
        return await asyncio.to_thread(self._ttl, key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)
