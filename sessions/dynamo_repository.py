from __future__ import annotations

import json
import time
from typing import Any

from core.models import Session, session_from_dict, session_to_dict
from sessions.repository_interface import DEFAULT_SESSION_TTL_SECONDS, SessionStoreError

try:
    import boto3  # type: ignore
    from botocore.exceptions import BotoCoreError, ClientError  # type: ignore
except Exception as exc:  # pragma: no cover - import guard for local envs
    boto3 = None
    BotoCoreError = Exception
    ClientError = Exception
    _BOTO3_IMPORT_ERROR = exc
else:
    _BOTO3_IMPORT_ERROR = None


class DynamoSessionStore:
    def __init__(
        self,
        *,
        region_name: str | None = None,
        table_prefix: str = "sms-donations",
        sessions_table_name: str | None = None,
        jobs_table_name: str | None = None,
        event_table_name: str | None = None,
        event_ttl_days: int = 7,
        dynamodb_resource: Any | None = None,
        clock: Any = time.time,
    ) -> None:
        if boto3 is None and dynamodb_resource is None:
            raise RuntimeError(f"boto3 is required for DynamoSessionStore: {_BOTO3_IMPORT_ERROR}")

        normalized_prefix = (table_prefix or "sms-donations").strip()
        self.event_ttl_days = max(1, int(event_ttl_days))
        self._clock = clock
        self._ddb = dynamodb_resource or boto3.resource("dynamodb", region_name=region_name)
        self._sessions_table = self._ddb.Table(sessions_table_name or f"{normalized_prefix}-sessions")
        self._jobs_table = self._ddb.Table(jobs_table_name or f"{normalized_prefix}-timeout-jobs")
        self._event_table = self._ddb.Table(event_table_name or f"{normalized_prefix}-event-dedupe")

    def get(self, key: str) -> Session | None:
        row = self._get_item(self._sessions_table, key)
        if row is None:
            return None
        try:
            payload = json.loads(str(row.get("session_json", "")))
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        return session_from_dict(payload)

    def set(self, key: str, session: Session, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        now = int(self._clock())
        self._put_item(
            self._sessions_table,
            {
                "phone": key,
                "session_json": json.dumps(session_to_dict(session), ensure_ascii=False),
                "expires_at_epoch": now + int(ttl_seconds),
                "updated_at_epoch": now,
            },
        )

    def delete(self, key: str) -> None:
        self._delete_item(self._sessions_table, key)

    def get_job_id(self, key: str) -> str | None:
        row = self._get_item(self._jobs_table, key)
        if row is None:
            return None
        job_id = str(row.get("job_id", "")).strip()
        return job_id or None

    def set_job_id(self, key: str, job_id: str, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self._put_item(
            self._jobs_table,
            {
                "phone": key,
                "job_id": job_id,
                "expires_at_epoch": int(self._clock()) + int(ttl_seconds),
            },
        )

    def delete_job_id(self, key: str) -> None:
        self._delete_item(self._jobs_table, key)

    def mark_event_processed(self, event_id: str) -> bool:
        key = (event_id or "").strip()
        if not key:
            return False
        expires = int(self._clock()) + self.event_ttl_days * 86400
        try:
            self._event_table.put_item(
                Item={"event_id": key, "expires_at_epoch": expires},
                ConditionExpression="attribute_not_exists(event_id)",
            )
            return True
        except ClientError as exc:
            code = str(getattr(exc, "response", {}).get("Error", {}).get("Code", ""))
            if code == "ConditionalCheckFailedException":
                return False
            raise SessionStoreError(f"failed to record event {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise SessionStoreError(f"failed to record event {key}: {exc}") from exc

    def release_event(self, event_id: str) -> None:
        key = (event_id or "").strip()
        if not key:
            return
        try:
            self._event_table.delete_item(Key={"event_id": key})
        except (ClientError, BotoCoreError) as exc:
            raise SessionStoreError(f"failed to release event {key}: {exc}") from exc

    def _get_item(self, table: Any, key: str) -> dict[str, Any] | None:
        try:
            row = table.get_item(Key={"phone": key}).get("Item")
        except (ClientError, BotoCoreError) as exc:
            raise SessionStoreError(f"dynamodb get_item failed: {exc}") from exc
        if not row:
            return None
        # TTL deletion is lazy, so expired rows can still be returned for a while.
        expires_at = int(row.get("expires_at_epoch", 0) or 0)
        if expires_at and expires_at <= int(self._clock()):
            return None
        return row

    def _put_item(self, table: Any, item: dict[str, Any]) -> None:
        try:
            table.put_item(Item=item)
        except (ClientError, BotoCoreError) as exc:
            raise SessionStoreError(f"dynamodb put_item failed: {exc}") from exc

    def _delete_item(self, table: Any, key: str) -> None:
        try:
            table.delete_item(Key={"phone": key})
        except (ClientError, BotoCoreError) as exc:
            raise SessionStoreError(f"dynamodb delete_item failed: {exc}") from exc
