from __future__ import annotations

import re
from typing import Protocol

from core.models import DeliveryReceipt


class GatewayError(RuntimeError):
    pass


class MessageGateway(Protocol):
    name: str

    def send(self, to: str, text: str) -> DeliveryReceipt:
        ...


def to_e164(phone: str) -> str:
    """Normalize a US number to +1XXXXXXXXXX; other values are returned trimmed."""
    text = (phone or "").strip()
    if text.startswith("+"):
        return text
    digits = "".join(ch for ch in text if ch.isdigit())
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return text


def normalize_donor_phone(phone: str) -> str:
    """Coerce a spreadsheet phone value to +1XXXXXXXXXX.

    Raises ValueError when fewer than 10 digits are present. Longer values keep
    the first "1" followed by ten digits, otherwise their last ten digits.
    """
    text = (phone or "").strip()
    digits = re.sub(r"\D", "", text)
    if len(digits) < 10:
        raise ValueError(f"must contain at least 10 digits (received: {phone})")
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if text.startswith("+"):
        return f"+1{digits}" if len(digits) == 10 else f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) > 11:
        match = re.search(r"1\d{10}", digits)
        if match:
            return f"+{match.group(0)}"
    return f"+1{digits[-10:]}"
