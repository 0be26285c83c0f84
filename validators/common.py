from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_WORD_START_RE = re.compile(r"(^|[\s\-])([a-z])")
NAME_CHARSET_RE = re.compile(r"^[A-Za-z\s\-'.]+$")


class ValidationError(ValueError):
    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(f"{field_name}: {reason}")
        self.field_name = field_name
        self.reason = reason


def normalize_spaces(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def capitalize_words(text: str) -> str:
    return _WORD_START_RE.sub(lambda match: match.group(1) + match.group(2).upper(), text)


def only_digits(text: str) -> str:
    return re.sub(r"\D", "", text)
