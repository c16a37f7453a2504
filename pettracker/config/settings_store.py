"""
Persisted settings collection.

Holds the proxy URL, proxy token, remote credential and the collection to
data source mapping. Kept in its own table so credentials never end up in a
record collection or in the outbox.
"""

import copy
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pettracker.database.sqlite_base import SQLiteBacked

LAST_SYNC_KEY = "last_sync"


class SettingsStore(SQLiteBacked):
    """Key/value settings with defaults merged on read."""

    DEFAULTS: Dict[str, Any] = {
        'proxy_url': '',
        'proxy_token': '',
        'remote_credential': '',
        'data_sources': {
            'pets': '', 'events': '', 'eventTypes': '', 'contacts': '', 'careItems': ''
        },
        'drain_interval': 60.0,
    }

    def _init_database(self) -> None:
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.commit()

    def get(self) -> Dict[str, Any]:
        """Return every setting, defaults filled in for absent keys."""
        values = copy.deepcopy(self.DEFAULTS)
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT key, value FROM settings WHERE key != ?", (LAST_SYNC_KEY,)
            ).fetchall()
        for row in rows:
            values[row['key']] = json.loads(row['value'])
        return values

    def set(self, **updates: Any) -> Dict[str, Any]:
        """Merge ``updates`` into the stored settings and return the result."""
        with self._lock:
            conn = self._get_connection()
            conn.executemany(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                [(key, json.dumps(value)) for key, value in updates.items()]
            )
            conn.commit()
        return self.get()

    def is_connected(self) -> bool:
        values = self.get()
        return bool(values['proxy_url'] and values['remote_credential'])

    def get_last_sync(self) -> Optional[str]:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT value FROM settings WHERE key = ?", (LAST_SYNC_KEY,)
            ).fetchone()
        return json.loads(row['value']) if row else None

    def set_last_sync(self, timestamp: Optional[str] = None) -> str:
        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (LAST_SYNC_KEY, json.dumps(timestamp))
            )
            conn.commit()
        return timestamp

    def clear(self) -> None:
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM settings")
            conn.commit()
