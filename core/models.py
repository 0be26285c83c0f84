from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from core.enums import Step

SESSION_FORMAT_VERSION = 1


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class Session:
    step: Step = Step.GREETING
    data: dict[str, Any] = field(default_factory=dict)
    editing_field: str | None = None
    waiting_for_new_entry: bool = False
    last_message_at: float = 0.0
    timed_out: bool = False

    @classmethod
    def new(cls, now: float | None = None, step: Step = Step.GREETING) -> "Session":
        return cls(step=step, data={}, last_message_at=time.time() if now is None else float(now))

    def evolve(self, **changes: Any) -> "Session":
        if "data" in changes:
            changes["data"] = dict(changes["data"])
        else:
            changes["data"] = dict(self.data)
        return replace(self, **changes)

    def with_values(self, values: dict[str, Any], **changes: Any) -> "Session":
        data = dict(self.data)
        data.update(values)
        return self.evolve(data=data, **changes)

    def is_mid_flow(self) -> bool:
        return Step.GREETING < self.step < Step.CONFIRMATION


@dataclass(frozen=True, slots=True)
class AmountValue:
    formatted: str
    numeric: float


@dataclass(frozen=True, slots=True)
class DonationRecord:
    record_id: str
    congregation: str
    person_name: str
    person_phone: str
    tax_id: str
    amount: str
    timestamp: str
    note: str = ""

    def as_row(self) -> list[str]:
        return [
            self.record_id,
            self.congregation,
            self.person_name,
            self.person_phone,
            self.tax_id,
            self.amount,
            self.timestamp,
            self.note,
        ]


@dataclass(frozen=True, slots=True)
class DeliveryReceipt:
    platform: str
    message_id: str
    status: str = "queued"


def session_to_dict(session: Session) -> dict[str, Any]:
    return {
        "version": SESSION_FORMAT_VERSION,
        "step": int(session.step),
        "data": dict(session.data),
        "editing_field": session.editing_field,
        "waiting_for_new_entry": bool(session.waiting_for_new_entry),
        "last_message_at": float(session.last_message_at),
        "timed_out": bool(session.timed_out),
    }


def session_from_dict(payload: dict[str, Any]) -> Session:
    try:
        step = Step(int(payload.get("step", Step.GREETING)))
    except (TypeError, ValueError):
        step = Step.GREETING
    data = payload.get("data")
    editing_field = payload.get("editing_field")
    return Session(
        step=step,
        data=dict(data) if isinstance(data, dict) else {},
        editing_field=str(editing_field) if editing_field else None,
        waiting_for_new_entry=bool(payload.get("waiting_for_new_entry", False)),
        last_message_at=_as_float(payload.get("last_message_at")),
        timed_out=bool(payload.get("timed_out", False)),
    )


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
