"""
SQLite-backed record of which users accepted the terms.

sqlite3 is blocking, so every call is pushed to a worker thread with
asyncio.to_thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timezone


SCHEMA = """
CREATE TABLE IF NOT EXISTS user_consent (
    user_id INTEGER PRIMARY KEY,
    consented_at TEXT NOT NULL
)
"""


class ConsentStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute(SCHEMA)
        logging.info("Consent store ready at %s", path)

    def _has_consented(self, user_id: int) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM user_consent WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row is not None

    def _record_consent(self, user_id: int) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT OR IGNORE INTO user_consent (user_id, consented_at) VALUES (?, ?)",
                (user_id, datetime.now(timezone.utc).isoformat()),
            )
        return cur.rowcount > 0

    async def has_consented(self, user_id: int) -> bool:
        return await asyncio.to_thread(self._has_consented, user_id)

    async def record_consent(self, user_id: int) -> bool:
        """Returns False if the user had already agreed."""
        return await asyncio.to_thread(self._record_consent, user_id)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
