from __future__ import annotations

import re

from core.enums import FieldName
from validators.common import NAME_CHARSET_RE, ValidationError, capitalize_words, normalize_spaces

CONGREGATION_PREFIX_RE = re.compile(
    r"^(?:the|congregation|organization|org|church|synagogue|temple|shul)\s+",
    re.IGNORECASE,
)
PERSON_NAME_PREFIX_RE = re.compile(
    r"^(?:(?:hi|hello),?\s*my name is|my name is|name is|this is|i am|i'm)\s+",
    re.IGNORECASE,
)
MIN_NAME_LENGTH = 2


def validate_congregation(raw: str) -> str:
    cleaned = _clean(raw, CONGREGATION_PREFIX_RE)
    _check_charset(FieldName.CONGREGATION, cleaned)
    return cleaned


def validate_person_name(raw: str) -> str:
    cleaned = _clean(raw, PERSON_NAME_PREFIX_RE)
    _check_charset(FieldName.PERSON_NAME, cleaned)
    if len(cleaned.split(" ")) < 2:
        raise ValidationError(FieldName.PERSON_NAME, "first and last name are required")
    return cleaned


def _clean(raw: str, prefix_re: re.Pattern[str]) -> str:
    text = normalize_spaces(raw or "")
    stripped = prefix_re.sub("", text, count=1)
    # A bare filler word ("The") is kept as-is and then fails the length / token rules.
    if stripped:
        text = stripped
    return capitalize_words(normalize_spaces(text))


def _check_charset(field_name: str, value: str) -> None:
    if len(value) < MIN_NAME_LENGTH:
        raise ValidationError(field_name, f"must be at least {MIN_NAME_LENGTH} characters")
    if not NAME_CHARSET_RE.match(value):
        raise ValidationError(field_name, "only letters, spaces, hyphens, apostrophes and periods are allowed")
