from __future__ import annotations

from typing import Any, Protocol

TIMEOUT_DELAY_SECONDS = 300
SKIPPED_JOB_ID = "dev-skip"


class SchedulerError(RuntimeError):
    pass


class JobScheduler(Protocol):
    name: str

    def schedule(self, callback_url: str, delay_seconds: int, payload: dict[str, Any]) -> str:
        ...

    def cancel(self, job_id: str) -> bool:
        ...


class NoopScheduler:
    name = "noop"

    def schedule(self, callback_url: str, delay_seconds: int, payload: dict[str, Any]) -> str:
        print(f"timeout-schedule-skipped url={callback_url} delay={delay_seconds}")
        return SKIPPED_JOB_ID

    def cancel(self, job_id: str) -> bool:
        return True


def is_loopback_url(url: str) -> bool:
    text = (url or "").lower()
    return "localhost" in text or "127.0.0.1" in text
