from __future__ import annotations

from typing import Any
from urllib.parse import quote

from io_utils.http_client import HttpClient, HttpRequestError
from scheduler.base import SKIPPED_JOB_ID, SchedulerError

QSTASH_BASE_URL = "https://qstash.upstash.io"


class QStashScheduler:
    name = "qstash"

    def __init__(
        self,
        token: str,
        http_client: HttpClient,
        base_url: str = QSTASH_BASE_URL,
        timeout_sec: float = 10.0,
    ) -> None:
        self.token = token.strip()
        self.base_url = (base_url or QSTASH_BASE_URL).rstrip("/")
        self.http_client = http_client
        self.timeout_sec = timeout_sec

    def schedule(self, callback_url: str, delay_seconds: int, payload: dict[str, Any]) -> str:
        if not self.token:
            raise SchedulerError("qstash token is empty")
        url = f"{self.base_url}/v2/publish/{quote(callback_url, safe=':/?=&')}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Upstash-Delay": f"{int(delay_seconds)}s",
        }
        try:
            body = self.http_client.request_json("POST", url, payload, headers=headers, timeout_sec=self.timeout_sec)
        except HttpRequestError as exc:
            raise SchedulerError(f"qstash publish failed: {exc}") from exc
        message_id = str(body.get("messageId", "")).strip()
        if not message_id:
            raise SchedulerError("qstash publish returned no messageId")
        return message_id

    def cancel(self, job_id: str) -> bool:
        key = (job_id or "").strip()
        if not key:
            return False
        if key == SKIPPED_JOB_ID:
            return True
        url = f"{self.base_url}/v2/messages/{quote(key, safe='')}"
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            self.http_client.request_json("DELETE", url, headers=headers, timeout_sec=self.timeout_sec)
        except HttpRequestError as exc:
            # Already delivered or expired jobs come back as 404.
            if exc.status == 404:
                return False
            raise SchedulerError(f"qstash cancel failed: {exc}") from exc
        return True
