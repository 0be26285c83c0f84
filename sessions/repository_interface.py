from __future__ import annotations

from typing import Protocol

from core.models import Session

DEFAULT_SESSION_TTL_SECONDS = 86400


class SessionStoreError(RuntimeError):
    pass


class SessionStoreProtocol(Protocol):
    def get(self, key: str) -> Session | None: ...

    def set(self, key: str, session: Session, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None: ...

    def delete(self, key: str) -> None: ...

    def get_job_id(self, key: str) -> str | None: ...

    def set_job_id(self, key: str, job_id: str, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None: ...

    def delete_job_id(self, key: str) -> None: ...

    def mark_event_processed(self, event_id: str) -> bool: ...

    def release_event(self, event_id: str) -> None: ...
