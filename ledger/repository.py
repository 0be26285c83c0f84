from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from core.enums import Direction, Step
from core.models import DonationRecord, utc_now_iso
from ledger.base import LedgerError, step_cell


class SqliteLedger:
    name = "sqlite"

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = Path(sqlite_path)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.sqlite_path)
        except sqlite3.Error as exc:
            raise LedgerError(f"failed to open ledger: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            raise LedgerError(f"ledger write failed: {exc}") from exc
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS donations (
                    record_id TEXT PRIMARY KEY,
                    congregation TEXT NOT NULL,
                    person_name TEXT NOT NULL,
                    person_phone TEXT NOT NULL,
                    tax_id TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    note TEXT NOT NULL DEFAULT ''
                );

                CREATE TABLE IF NOT EXISTS messages (
                    message_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    logged_at TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    direction TEXT NOT NULL,
                    step TEXT NOT NULL,
                    body TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_messages_phone_logged
                    ON messages(phone, logged_at);
                """
            )
            conn.commit()

    def append_donation(self, record: DonationRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO donations(
                    record_id, congregation, person_name, person_phone,
                    tax_id, amount, recorded_at, note
                ) VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                """,
                tuple(record.as_row()),
            )
            conn.commit()

    def append_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO messages(logged_at, phone, direction, step, body) VALUES(?, ?, ?, ?, ?)",
                (utc_now_iso(), phone, Direction(direction).value, step_cell(step), text),
            )
            conn.commit()

    def list_donations(self) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM donations ORDER BY recorded_at, record_id").fetchall()
        return [dict(row) for row in rows]

    def list_messages(self, phone: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT logged_at, phone, direction, step, body FROM messages WHERE phone = ? ORDER BY message_id",
                (phone,),
            ).fetchall()
        return [dict(row) for row in rows]
