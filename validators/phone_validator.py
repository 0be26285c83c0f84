from __future__ import annotations

from core.enums import FieldName
from validators.common import ValidationError, only_digits

PHONE_DIGITS = 10


def validate_phone(raw: str) -> str:
    digits = only_digits(raw or "")
    if len(digits) != PHONE_DIGITS:
        raise ValidationError(FieldName.PERSON_PHONE, f"expected {PHONE_DIGITS} digits, got {len(digits)}")
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
