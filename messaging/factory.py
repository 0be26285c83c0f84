from __future__ import annotations

from typing import Any

from io_utils.http_client import HttpClient, UrllibHttpClient
from messaging.base import GatewayError, MessageGateway
from messaging.channels import ConsoleGateway, MessageCollabGateway, TwilioSmsGateway

SUPPORTED_PLATFORMS = ("twilio", "messagecollab", "console")


def build_message_gateway(
    config: dict[str, Any],
    http_client: HttpClient | None = None,
    platform: str | None = None,
) -> MessageGateway:
    sms_conf = config.get("sms", {})
    name = str(platform or sms_conf.get("platform", "twilio") or "twilio").strip().lower()
    client = http_client or UrllibHttpClient()
    timeout_sec = float(sms_conf.get("timeout_sec", 10.0))

    if name == "twilio":
        tconf = sms_conf.get("twilio", {})
        return TwilioSmsGateway(
            account_sid=_str_from_dict(tconf, "account_sid"),
            auth_token=_str_from_dict(tconf, "auth_token"),
            from_number=_str_from_dict(tconf, "phone_number"),
            messaging_service_sid=_str_from_dict(tconf, "messaging_service_sid"),
            http_client=client,
            timeout_sec=timeout_sec,
        )

    if name == "messagecollab":
        mconf = sms_conf.get("messagecollab", {})
        return MessageCollabGateway(
            account_id=_str_from_dict(mconf, "account_id"),
            phone_number=_str_from_dict(mconf, "phone_number"),
            token=_str_from_dict(mconf, "token"),
            http_client=client,
            timeout_sec=timeout_sec,
        )

    if name == "console":
        return ConsoleGateway()

    raise GatewayError(f"unsupported sms platform: {name}")


def _str_from_dict(value: Any, key: str) -> str:
    if not isinstance(value, dict):
        return ""
    return str(value.get(key, "") or "").strip()
