from __future__ import annotations

from typing import Any, Mapping


def build_twilio_event_id(params: Mapping[str, str]) -> str:
    for key in ("MessageSid", "SmsMessageSid", "SmsSid"):
        value = str(params.get(key, "") or "").strip()
        if value:
            return f"twilio:{value}"
    return ""


def build_messagecollab_event_id(payload: Mapping[str, Any]) -> str:
    value = str(payload.get("mId", "") or payload.get("id", "") or "").strip()
    return f"messagecollab:{value}" if value else ""
