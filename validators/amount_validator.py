from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from core.enums import FieldName
from core.models import AmountValue
from validators.common import ValidationError

AMOUNT_RE = re.compile(r"^\d+(?:\.\d{1,2})?$")
CURRENCY_SUFFIX_RE = re.compile(r"(?:dollars?|usd|bucks)$", re.IGNORECASE)

NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}
MULTIPLIER_WORDS = {
    "hundred": 100,
    "thousand": 1000,
    "million": 1_000_000,
}


def validate_amount(raw: str) -> AmountValue:
    text = (raw or "").strip()
    from_words = words_to_number(text)
    if from_words is not None:
        cleaned = str(from_words)
    else:
        cleaned = re.sub(r"[$,\s]", "", text)
        cleaned = CURRENCY_SUFFIX_RE.sub("", cleaned)

    if not AMOUNT_RE.match(cleaned):
        raise ValidationError(FieldName.AMOUNT, "expected digits like 125 or 125.50")
    try:
        value = Decimal(cleaned).quantize(Decimal("0.01"))
    except InvalidOperation as exc:
        raise ValidationError(FieldName.AMOUNT, "expected digits like 125 or 125.50") from exc
    if value <= 0:
        raise ValidationError(FieldName.AMOUNT, "amount must be greater than zero")
    return AmountValue(formatted=f"${value}", numeric=float(value))


def words_to_number(text: str) -> int | None:
    tokens = [token for token in re.split(r"[\s\-]+", text.lower()) if token]
    if not tokens:
        return None

    total = 0
    current = 0
    matched = False
    for token in tokens:
        if token in NUMBER_WORDS:
            current += NUMBER_WORDS[token]
            matched = True
        elif token in MULTIPLIER_WORDS:
            multiplier = MULTIPLIER_WORDS[token]
            if multiplier == 100:
                current = max(current, 1) * multiplier
            else:
                total += max(current, 1) * multiplier
                current = 0
            matched = True
        elif token in {"and", "a", "dollars", "dollar"}:
            continue
        else:
            return None
    if not matched:
        return None
    return total + current
