from __future__ import annotations

from typing import Protocol

from core.enums import Direction, Step
from core.models import DonationRecord


class LedgerError(RuntimeError):
    pass


class LedgerSink(Protocol):
    name: str

    def append_donation(self, record: DonationRecord) -> None:
        ...

    def append_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        ...


class NoopLedger:
    name = "noop"

    def append_donation(self, record: DonationRecord) -> None:
        print(f"ledger-skip record_id={record.record_id}")

    def append_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        return None


def step_cell(step: Step | None) -> str:
    return "" if step is None else str(int(step))
