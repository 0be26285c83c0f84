from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from core.models import Session, session_from_dict, session_to_dict
from sessions.repository_interface import DEFAULT_SESSION_TTL_SECONDS, SessionStoreError

EVENT_TTL_SECONDS = 7 * 86400


class SqliteSessionStore:
    def __init__(self, sqlite_path: str, clock: Any = time.time) -> None:
        self.sqlite_path = Path(sqlite_path)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.sqlite_path)
        except sqlite3.Error as exc:
            raise SessionStoreError(f"failed to open session store: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            raise SessionStoreError(f"session store query failed: {exc}") from exc
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sms_sessions (
                    phone TEXT PRIMARY KEY,
                    session_json TEXT NOT NULL,
                    expires_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS timeout_jobs (
                    phone TEXT PRIMARY KEY,
                    job_id TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS processed_sms_events (
                    event_id TEXT PRIMARY KEY,
                    expires_at REAL NOT NULL
                );
                """
            )
            conn.commit()

    def get(self, key: str) -> Session | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT session_json FROM sms_sessions WHERE phone = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        if row is None:
            return None
        payload = _load_json(row["session_json"])
        if not isinstance(payload, dict):
            return None
        return session_from_dict(payload)

    def set(self, key: str, session: Session, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        now = self._clock()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO sms_sessions(phone, session_json, expires_at, updated_at)
                VALUES(?, ?, ?, ?)
                """,
                (key, json.dumps(session_to_dict(session), ensure_ascii=False), now + int(ttl_seconds), now),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM sms_sessions WHERE phone = ?", (key,))
            conn.commit()

    def get_job_id(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT job_id FROM timeout_jobs WHERE phone = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        return None if row is None else str(row["job_id"])

    def set_job_id(self, key: str, job_id: str, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO timeout_jobs(phone, job_id, expires_at) VALUES(?, ?, ?)",
                (key, job_id, self._clock() + int(ttl_seconds)),
            )
            conn.commit()

    def delete_job_id(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM timeout_jobs WHERE phone = ?", (key,))
            conn.commit()

    def mark_event_processed(self, event_id: str) -> bool:
        key = (event_id or "").strip()
        if not key:
            return False

        now = self._clock()
        with self._connect() as conn:
            conn.execute("DELETE FROM processed_sms_events WHERE expires_at <= ?", (now,))
            cur = conn.execute(
                "INSERT OR IGNORE INTO processed_sms_events(event_id, expires_at) VALUES(?, ?)",
                (key, now + EVENT_TTL_SECONDS),
            )
            conn.commit()
            return cur.rowcount > 0

    def release_event(self, event_id: str) -> None:
        key = (event_id or "").strip()
        if not key:
            return
        with self._connect() as conn:
            conn.execute("DELETE FROM processed_sms_events WHERE event_id = ?", (key,))
            conn.commit()


def _load_json(value: Any) -> Any:
    if value in (None, ""):
        return None
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None
