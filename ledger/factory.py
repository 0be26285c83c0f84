from __future__ import annotations

from typing import Any

from ledger.base import LedgerError, LedgerSink, NoopLedger
from ledger.repository import SqliteLedger
from ledger.sheets import GoogleSheetsLedger


def build_ledger(config: dict[str, Any]) -> LedgerSink:
    ledger_conf = config.get("ledger", {})
    backend = str(ledger_conf.get("backend", "sqlite") or "sqlite").strip().lower()

    if backend == "sheets":
        sconf = ledger_conf.get("sheets", {}) if isinstance(ledger_conf, dict) else {}
        return GoogleSheetsLedger(
            sheet_id=_str_from_dict(sconf, "sheet_id"),
            service_email=_str_from_dict(sconf, "service_email"),
            private_key=_str_from_dict(sconf, "private_key"),
            donations_range=_str_from_dict(sconf, "donations_range") or "Donations!A:H",
            messages_range=_str_from_dict(sconf, "messages_range") or "Messages!A:E",
            timeout_sec=float(sconf.get("timeout_sec", 10.0)) if isinstance(sconf, dict) else 10.0,
        )

    if backend == "noop":
        return NoopLedger()

    if backend == "sqlite":
        return SqliteLedger(sqlite_path=str(ledger_conf.get("sqlite_path", "data/ledger/donations.db")))

    raise LedgerError(f"unsupported ledger backend: {backend}")


def _str_from_dict(value: Any, key: str) -> str:
    if not isinstance(value, dict):
        return ""
    return str(value.get(key, "") or "").strip()
