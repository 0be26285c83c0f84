from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "env": "development",
        "base_url": "http://localhost:3000",
        "timeout_seconds": 300,
        "session_ttl_seconds": 86400,
    },
    "sms": {
        "platform": "twilio",
        "verify_signature": False,
        "timeout_sec": 10,
        "twilio": {
            "account_sid": None,
            "auth_token": None,
            "phone_number": None,
            "messaging_service_sid": None,
        },
        "messagecollab": {
            "account_id": None,
            "phone_number": None,
            "token": None,
        },
    },
    "sessions": {
        "backend": "sqlite",
        "sqlite_path": "data/sessions/sms.db",
        "dynamodb": {
            "region": None,
            "table_prefix": "sms-donations",
            "event_ttl_days": 7,
            "tables": {
                "sessions": None,
                "timeout_jobs": None,
                "event_dedupe": None,
            },
        },
        "redis": {
            "url": None,
            "event_ttl_days": 7,
        },
    },
    "scheduler": {
        "backend": "qstash",
        "qstash": {
            "token": None,
            "base_url": "https://qstash.upstash.io",
            "timeout_sec": 10,
        },
    },
    "ledger": {
        "backend": "sqlite",
        "sqlite_path": "data/ledger/donations.db",
        "sheets": {
            "sheet_id": None,
            "service_email": None,
            "private_key": None,
            "donations_range": "Donations!A:H",
            "messages_range": "Messages!A:E",
            "timeout_sec": 10,
        },
    },
}

# Deployment environment variables and the config keys they override.
ENV_OVERRIDES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("NODE_ENV", ("app", "env")),
    ("APP_ENV", ("app", "env")),
    ("APP_BASE_URL", ("app", "base_url")),
    ("MESSAGE_SENDING_PLATFORM", ("sms", "platform")),
    ("TWILIO_ACCOUNT_SID", ("sms", "twilio", "account_sid")),
    ("TWILIO_AUTH_TOKEN", ("sms", "twilio", "auth_token")),
    ("TWILIO_PHONE_NUMBER", ("sms", "twilio", "phone_number")),
    ("TWILIO_MESSAGING_SERVICE_SID", ("sms", "twilio", "messaging_service_sid")),
    ("MESSAGECOLLAB_ACCOUNT_ID", ("sms", "messagecollab", "account_id")),
    ("MESSAGECOLLAB_PHONE_NUMBER", ("sms", "messagecollab", "phone_number")),
    ("MESSAGECOLLAB_TOKEN", ("sms", "messagecollab", "token")),
    ("SESSION_BACKEND", ("sessions", "backend")),
    ("UPSTASH_REDIS_URL", ("sessions", "redis", "url")),
    ("REDIS_URL", ("sessions", "redis", "url")),
    ("QSTASH_TOKEN", ("scheduler", "qstash", "token")),
    ("LEDGER_BACKEND", ("ledger", "backend")),
    ("SHEET_ID", ("ledger", "sheets", "sheet_id")),
    ("SHEET_RANGE_DONATIONS", ("ledger", "sheets", "donations_range")),
    ("SHEET_RANGE_MESSAGES", ("ledger", "sheets", "messages_range")),
    ("GOOGLE_SERVICE_EMAIL", ("ledger", "sheets", "service_email")),
    ("GOOGLE_PRIVATE_KEY", ("ledger", "sheets", "private_key")),
)


class ConfigurationError(ValueError):
    def __init__(self, problems: list[str]) -> None:
        super().__init__("invalid configuration: " + "; ".join(problems))
        self.problems = list(problems)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | None = None) -> dict[str, Any]:
    if not config_path:
        return DEFAULT_CONFIG

    path = Path(config_path)
    if not path.exists():
        return DEFAULT_CONFIG

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return DEFAULT_CONFIG

    data: dict[str, Any] | None = None
    if path.suffix.lower() == ".json":
        import json

        data = json.loads(text)
    else:
        import yaml

        loaded = yaml.safe_load(text)
        data = loaded if isinstance(loaded, dict) else {}

    if data is None:
        data = {}
    return deep_merge(DEFAULT_CONFIG, data)


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    override: dict[str, Any] = {}
    for name, keys in ENV_OVERRIDES:
        value = str(env.get(name, "") or "").strip()
        if not value:
            continue
        node = override
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value
    return deep_merge(config, override)


def load_runtime_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    config = apply_env_overrides(load_config(config_path), environ)
    validate_config(config)
    return config


def validate_config(config: dict[str, Any]) -> None:
    problems: list[str] = []
    app_conf = config.get("app", {})
    sms_conf = config.get("sms", {})
    production = str(app_conf.get("env", "") or "").strip().lower() == "production"

    platform = _lower(sms_conf.get("platform"))
    if platform == "twilio":
        tconf = sms_conf.get("twilio", {})
        for key in ("account_sid", "auth_token"):
            if not _text(tconf, key):
                problems.append(f"sms.twilio.{key} is required")
        if not _text(tconf, "messaging_service_sid") and not _text(tconf, "phone_number"):
            problems.append("sms.twilio.messaging_service_sid or sms.twilio.phone_number is required")
    elif platform == "messagecollab":
        mconf = sms_conf.get("messagecollab", {})
        for key in ("account_id", "phone_number", "token"):
            if not _text(mconf, key):
                problems.append(f"sms.messagecollab.{key} is required")
    elif platform != "console":
        problems.append(f"unsupported sms.platform: {platform}")

    if bool(sms_conf.get("verify_signature", False)) and platform != "twilio":
        problems.append("sms.verify_signature is only supported for the twilio platform")

    sessions_conf = config.get("sessions", {})
    session_backend = _lower(sessions_conf.get("backend"))
    if session_backend == "redis":
        if not _text(sessions_conf.get("redis", {}), "url"):
            problems.append("sessions.redis.url is required")
    elif session_backend not in ("sqlite", "dynamodb"):
        problems.append(f"unsupported sessions.backend: {session_backend}")

    sched_conf = config.get("scheduler", {})
    sched_backend = _lower(sched_conf.get("backend"))
    if sched_backend == "qstash":
        if production and not _text(sched_conf.get("qstash", {}), "token"):
            problems.append("scheduler.qstash.token is required in production")
    elif sched_backend != "noop":
        problems.append(f"unsupported scheduler.backend: {sched_backend}")

    if production and not str(app_conf.get("base_url", "") or "").strip():
        problems.append("app.base_url is required in production")

    ledger_conf = config.get("ledger", {})
    ledger_backend = _lower(ledger_conf.get("backend"))
    if ledger_backend == "sheets":
        sconf = ledger_conf.get("sheets", {})
        for key in ("sheet_id", "service_email", "private_key", "donations_range", "messages_range"):
            if not _text(sconf, key):
                problems.append(f"ledger.sheets.{key} is required")
    elif ledger_backend not in ("sqlite", "noop"):
        problems.append(f"unsupported ledger.backend: {ledger_backend}")

    if problems:
        raise ConfigurationError(problems)


def _text(value: Any, key: str) -> str:
    if not isinstance(value, dict):
        return ""
    return str(value.get(key, "") or "").strip()


def _lower(value: Any) -> str:
    return str(value or "").strip().lower()
