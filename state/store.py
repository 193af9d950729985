"""
state/store.py -- SQLite-backed persisted navigation state.

Holds the handful of values that must survive between browsing sessions:
the deep link that triggered a login redirect, the last visited path and the
user it belonged to, and whether the previous session ended by timeout.

The routing layer writes pre_auth_url / last_path; the login workflow reads
them once per login cycle and clears pre_auth_url after use.

Usage:
    store = NavigationStore()                 # at Settings.state_db_path
    store.record_last_path("/templates", "7")
    store.get_last_path()                     # "/templates"
    store.close()
"""

import sqlite3
import time
from pathlib import Path
from typing import Optional, Union

from core.config import get_settings

_DDL = """
CREATE TABLE IF NOT EXISTS nav_state (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  REAL NOT NULL
);
"""

PRE_AUTH_URL = "pre_auth_url"
LAST_PATH = "last_path"
LAST_USER_ID = "last_user_id"
SESSION_EXPIRED = "session_expired"


class NavigationStore:
    def __init__(self, db_path: Optional[Union[Path, str]] = None) -> None:
        if db_path is None:
            db_path = get_settings().state_db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Pre-auth deep link
    # ------------------------------------------------------------------

    def get_pre_auth_url(self) -> Optional[str]:
        return self._get(PRE_AUTH_URL)

    def set_pre_auth_url(self, url: str) -> None:
        self._set(PRE_AUTH_URL, url)

    def clear_pre_auth_url(self) -> None:
        self._delete(PRE_AUTH_URL)

    # ------------------------------------------------------------------
    # Last path / last user
    # ------------------------------------------------------------------

    def get_last_path(self) -> Optional[str]:
        return self._get(LAST_PATH)

    def get_last_user_id(self) -> Optional[str]:
        return self._get(LAST_USER_ID)

    def record_last_path(self, path: str, user_id: Union[int, str]) -> None:
        """Store the current path together with its owner in one transaction."""
        now = time.time()
        with self._conn:
            self._conn.executemany(
                "INSERT OR REPLACE INTO nav_state (key, value, updated_at) VALUES (?, ?, ?)",
                [(LAST_PATH, path, now), (LAST_USER_ID, str(user_id), now)],
            )

    # ------------------------------------------------------------------
    # Session-expired flag
    # ------------------------------------------------------------------

    def get_session_expired(self) -> bool:
        return self._get(SESSION_EXPIRED) == "1"

    def set_session_expired(self, expired: bool) -> None:
        if expired:
            self._set(SESSION_EXPIRED, "1")
        else:
            self._delete(SESSION_EXPIRED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM nav_state WHERE key = ?", (key,)).fetchone()
        return row[0] if row is not None else None

    def _set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO nav_state (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, time.time()),
        )
        self._conn.commit()

    def _delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM nav_state WHERE key = ?", (key,))
        self._conn.commit()

    def clear(self) -> None:
        self._conn.execute("DELETE FROM nav_state")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
