from __future__ import annotations

import json
from typing import Any

from core.models import Session, session_from_dict, session_to_dict
from sessions.repository_interface import DEFAULT_SESSION_TTL_SECONDS, SessionStoreError

try:
    import redis  # type: ignore
except Exception as exc:  # pragma: no cover - import guard for local envs
    redis = None
    _REDIS_IMPORT_ERROR = exc
else:
    _REDIS_IMPORT_ERROR = None

SESSION_PREFIX = "session:"
JOB_PREFIX = "qjob:"
EVENT_PREFIX = "event:"


class RedisSessionStore:
    def __init__(
        self,
        *,
        url: str | None = None,
        event_ttl_days: int = 7,
        client: Any | None = None,
    ) -> None:
        if client is None:
            if redis is None:
                raise RuntimeError(f"redis is required for RedisSessionStore: {_REDIS_IMPORT_ERROR}")
            if not url:
                raise RuntimeError("redis url is required for RedisSessionStore")
            client = redis.Redis.from_url(url, decode_responses=True)
        self._client = client
        self.event_ttl_seconds = max(1, int(event_ttl_days)) * 86400

    def get(self, key: str) -> Session | None:
        raw = self._call("get", SESSION_PREFIX + key)
        if raw in (None, ""):
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        return session_from_dict(payload)

    def set(self, key: str, session: Session, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        body = json.dumps(session_to_dict(session), ensure_ascii=False)
        self._call("set", SESSION_PREFIX + key, body, ex=int(ttl_seconds))

    def delete(self, key: str) -> None:
        self._call("delete", SESSION_PREFIX + key)

    def get_job_id(self, key: str) -> str | None:
        raw = self._call("get", JOB_PREFIX + key)
        text = str(raw or "").strip()
        return text or None

    def set_job_id(self, key: str, job_id: str, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self._call("set", JOB_PREFIX + key, job_id, ex=int(ttl_seconds))

    def delete_job_id(self, key: str) -> None:
        self._call("delete", JOB_PREFIX + key)

    def mark_event_processed(self, event_id: str) -> bool:
        key = (event_id or "").strip()
        if not key:
            return False
        return bool(self._call("set", EVENT_PREFIX + key, "1", nx=True, ex=self.event_ttl_seconds))

    def release_event(self, event_id: str) -> None:
        key = (event_id or "").strip()
        if key:
            self._call("delete", EVENT_PREFIX + key)

    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._client, method)(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            raise SessionStoreError(f"redis {method} failed: {exc}") from exc
