from __future__ import annotations

import re

from core.enums import FieldName
from validators.common import ValidationError

TAX_ID_DIGITS = 9


def validate_tax_id(raw: str) -> str:
    kept = re.sub(r"[^\d\-]", "", raw or "")
    digits = kept.replace("-", "")
    if len(digits) != TAX_ID_DIGITS:
        raise ValidationError(FieldName.TAX_ID, f"expected {TAX_ID_DIGITS} digits, got {len(digits)}")
    return f"{digits[:2]}-{digits[2:]}"
