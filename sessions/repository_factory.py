from __future__ import annotations

from typing import Any

from sessions.dynamo_repository import DynamoSessionStore
from sessions.redis_repository import RedisSessionStore
from sessions.repository import SqliteSessionStore
from sessions.repository_interface import SessionStoreProtocol


def create_session_store(config: dict[str, Any]) -> SessionStoreProtocol:
    sessions_conf = config.get("sessions", {})
    backend = str(sessions_conf.get("backend", "sqlite") or "sqlite").strip().lower()

    if backend == "dynamodb":
        ddb_conf = sessions_conf.get("dynamodb", {}) if isinstance(sessions_conf, dict) else {}
        tables = ddb_conf.get("tables", {}) if isinstance(ddb_conf, dict) else {}
        return DynamoSessionStore(
            region_name=_as_optional_str(ddb_conf.get("region")),
            table_prefix=str(ddb_conf.get("table_prefix", "sms-donations")),
            sessions_table_name=_as_optional_str(tables.get("sessions")),
            jobs_table_name=_as_optional_str(tables.get("timeout_jobs")),
            event_table_name=_as_optional_str(tables.get("event_dedupe")),
            event_ttl_days=int(ddb_conf.get("event_ttl_days", 7)),
        )

    if backend == "redis":
        redis_conf = sessions_conf.get("redis", {}) if isinstance(sessions_conf, dict) else {}
        return RedisSessionStore(
            url=_as_optional_str(redis_conf.get("url")),
            event_ttl_days=int(redis_conf.get("event_ttl_days", 7)),
        )

    sqlite_path = str(sessions_conf.get("sqlite_path", "data/sessions/sms.db"))
    return SqliteSessionStore(sqlite_path=sqlite_path)


def _as_optional_str(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None
