from __future__ import annotations

import base64
import os
from typing import Any

from app.config import load_runtime_config
from webhook.handler import (
    DONOR_CONFIRMATION_PATH,
    INACTIVITY_PATH,
    MESSAGECOLLAB_PATH,
    TWILIO_PATH,
    SmsWebhookHandler,
)

SMS_CONFIG_PATH = os.getenv("SMS_CONFIG_PATH", "")

_handler: SmsWebhookHandler | None = None


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    _ = context
    method = str(event.get("requestContext", {}).get("http", {}).get("method", "")).upper()
    path = str(event.get("rawPath", ""))
    if method == "GET" and path == "/healthz":
        return _response(200, '{"ok": true}', content_type="application/json; charset=utf-8")
    if method != "POST":
        return _response(405, "method not allowed")

    body_bytes = _decode_body(event)
    handler = _get_handler()
    if path == TWILIO_PATH:
        signature = _get_header(event.get("headers", {}), "x-twilio-signature")
        status_code, content = handler.handle_twilio(body=body_bytes, signature=signature)
    elif path == MESSAGECOLLAB_PATH:
        status_code, content = handler.handle_messagecollab(body=body_bytes)
    elif path == INACTIVITY_PATH:
        job_id = _get_header(event.get("headers", {}), "upstash-message-id")
        status_code, content = handler.handle_inactivity(body=body_bytes, job_id=job_id)
    elif path == DONOR_CONFIRMATION_PATH:
        status_code, content = handler.handle_donor_confirmation(body=body_bytes)
    else:
        return _response(404, "not found")
    return _response(status_code, content)


def _get_handler() -> SmsWebhookHandler:
    global _handler
    if _handler is None:
        _handler = SmsWebhookHandler(load_runtime_config(SMS_CONFIG_PATH or None))
    return _handler


def _decode_body(event: dict[str, Any]) -> bytes:
    body = event.get("body", "")
    if body is None:
        return b""
    if bool(event.get("isBase64Encoded", False)):
        return base64.b64decode(str(body))
    return str(body).encode("utf-8")


def _get_header(headers: Any, name: str) -> str | None:
    if not isinstance(headers, dict):
        return None
    needle = name.lower()
    for key, value in headers.items():
        if str(key).lower() == needle:
            return str(value)
    return None


def _response(status_code: int, body: str, content_type: str = "text/plain; charset=utf-8") -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {
            "content-type": content_type,
        },
        "body": body,
    }
