from __future__ import annotations

from typing import Any

from io_utils.http_client import HttpClient, UrllibHttpClient
from scheduler.base import JobScheduler, NoopScheduler, SchedulerError, is_loopback_url
from scheduler.qstash import QSTASH_BASE_URL, QStashScheduler

INACTIVITY_PATH = "/api/check-inactivity"


def build_scheduler(config: dict[str, Any], http_client: HttpClient | None = None) -> JobScheduler:
    app_conf = config.get("app", {})
    sched_conf = config.get("scheduler", {})
    backend = str(sched_conf.get("backend", "qstash") or "qstash").strip().lower()
    env = str(app_conf.get("env", "development") or "development").strip().lower()

    if backend == "noop":
        return NoopScheduler()
    if backend != "qstash":
        raise SchedulerError(f"unsupported scheduler backend: {backend}")
    # QStash cannot call back into a local process.
    if env != "production" or is_loopback_url(inactivity_callback_url(config)):
        return NoopScheduler()

    qconf = sched_conf.get("qstash", {}) if isinstance(sched_conf, dict) else {}
    return QStashScheduler(
        token=str(qconf.get("token", "") or ""),
        base_url=str(qconf.get("base_url", QSTASH_BASE_URL) or QSTASH_BASE_URL),
        http_client=http_client or UrllibHttpClient(),
        timeout_sec=float(qconf.get("timeout_sec", 10.0)),
    )


def inactivity_callback_url(config: dict[str, Any]) -> str:
    base_url = str(config.get("app", {}).get("base_url", "") or "").rstrip("/")
    return f"{base_url}{INACTIVITY_PATH}"
