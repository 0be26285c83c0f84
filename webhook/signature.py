from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Mapping


def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_twilio_signature(
    auth_token: str,
    url: str,
    params: Mapping[str, str],
    signature: str | None,
) -> bool:
    token = (auth_token or "").strip()
    received = (signature or "").strip()
    if not token or not received or not url:
        return False
    expected = compute_twilio_signature(token, url, params)
    return hmac.compare_digest(expected, received)
