from __future__ import annotations

import re

from core.enums import FieldName
from validators.common import ValidationError

MAX_NOTE_LENGTH = 500
SKIP_NOTE_RE = re.compile(r"^(?:skip|no note|none|n/a|nothing)$", re.IGNORECASE)


def is_skip_note(text: str) -> bool:
    return bool(SKIP_NOTE_RE.match((text or "").strip()))


def validate_note(raw: str) -> str:
    text = (raw or "").strip()
    if not text:
        raise ValidationError(FieldName.NOTE, "note is empty")
    if len(text) > MAX_NOTE_LENGTH:
        raise ValidationError(FieldName.NOTE, f"note must be at most {MAX_NOTE_LENGTH} characters")
    return text
