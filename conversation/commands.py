from __future__ import annotations

import re
from typing import Callable

from core.enums import Command, FieldName
from core.models import Session

GREETING_RE = re.compile(
    r"^(?:hi|hello|hey|good morning|good afternoon|good evening|greetings|hi there|hello there)$",
    re.IGNORECASE,
)
CANCEL_RE = re.compile(r"^(?:cancel|stop|quit|end)$", re.IGNORECASE)
START_OVER_RE = re.compile(r"^(?:start over|restart|begin again|new entry|start again)$", re.IGNORECASE)
CHANGE_RE = re.compile(r"^(?:change|edit|fix|update|modify)\s+", re.IGNORECASE)
FINISH_RE = re.compile(r"^(?:finish|continue|complete)$", re.IGNORECASE)
NEW_RE = re.compile(r"^(?:new|new entry|start over|restart)$", re.IGNORECASE)
YES_RE = re.compile(
    r"^(?:yes|yeah|yep|y|correct|right|ok|okay|confirm|yes\s*,?\s*that'?s?\s*correct"
    r"|that'?s?\s*correct|looks?\s*good|perfect|sounds?\s*good)",
    re.IGNORECASE,
)
NO_RE = re.compile(r"^(?:no|nope|n|incorrect|wrong|fix|change)$", re.IGNORECASE)
END_CONVERSATION_RE = re.compile(
    r"^(?:no|nope|n|thanks|thank you|that'?s?\s*all|done|finished|goodbye|bye)$",
    re.IGNORECASE,
)
NUMBERED_EDIT_RE = re.compile(r"^(\d+)\.\s*(.+)$", re.DOTALL)

# Bare greetings and filler that should not be taken as an answer mid-flow.
MIDWAY_GREETING_RE = re.compile(
    r"^(?:hi|hello|hey|good morning|good afternoon|good evening|greetings|hi there|hello there|start|begin)$",
    re.IGNORECASE,
)
AMBIGUOUS_RE = re.compile(r"^(?:ok|yes|no|maybe|sure|alright)$", re.IGNORECASE)
MIN_ANSWER_LENGTH = 3

EDIT_TARGET_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (FieldName.CONGREGATION, ("congregation", "organization")),
    (FieldName.PERSON_NAME, ("name", "person")),
    (FieldName.PERSON_PHONE, ("phone", "number")),
    (FieldName.TAX_ID, ("tax", "id")),
    (FieldName.AMOUNT, ("amount", "donation")),
    (FieldName.NOTE, ("note",)),
)


class UnknownCommandError(ValueError):
    pass


def _matches(pattern: re.Pattern[str]) -> Callable[[str], bool]:
    return lambda text: bool(pattern.search(text))


# Evaluated top to bottom; the first predicate that accepts the text wins.
COMMAND_TABLE: tuple[tuple[Command, Callable[[str], bool]], ...] = (
    (Command.GREETING, _matches(GREETING_RE)),
    (Command.CANCEL, _matches(CANCEL_RE)),
    (Command.START_OVER, _matches(START_OVER_RE)),
    (Command.CHANGE, _matches(CHANGE_RE)),
    (Command.FINISH, _matches(FINISH_RE)),
    (Command.NEW, _matches(NEW_RE)),
    (Command.HELP, lambda text: "help" in text.lower()),
)

WAITING_COMMAND_TABLE: tuple[tuple[Command, Callable[[str], bool]], ...] = (
    (Command.NEW, _matches(NEW_RE)),
    (Command.END_CONVERSATION, _matches(END_CONVERSATION_RE)),
)

CONFIRMATION_TABLE: tuple[tuple[Command, Callable[[str], bool]], ...] = (
    (Command.CONFIRM_YES, _matches(YES_RE)),
    (Command.CONFIRM_NO_OR_EDIT, _matches(NO_RE)),
)


def classify(text: str, session: Session | None = None) -> Command:
    normalized = (text or "").strip()
    if not normalized:
        return Command.NONE
    table = COMMAND_TABLE
    if session is not None and session.waiting_for_new_entry:
        table = WAITING_COMMAND_TABLE
    return _first_match(table, normalized)


def classify_confirmation(text: str) -> Command:
    return _first_match(CONFIRMATION_TABLE, (text or "").strip())


def _first_match(table: tuple[tuple[Command, Callable[[str], bool]], ...], text: str) -> Command:
    for command, predicate in table:
        if predicate(text):
            return command
    return Command.NONE


def is_midway_interruption(text: str) -> bool:
    normalized = (text or "").strip()
    if MIDWAY_GREETING_RE.match(normalized):
        return True
    return len(normalized) < MIN_ANSWER_LENGTH or bool(AMBIGUOUS_RE.match(normalized))


def edit_target(text: str) -> str:
    """Return the field named in a change request such as "change the amount"."""
    target = CHANGE_RE.sub("", (text or "").strip(), count=1).lower()
    for field_name, keywords in EDIT_TARGET_KEYWORDS:
        if any(keyword in target for keyword in keywords):
            return field_name
    raise UnknownCommandError(f"no editable field in {target!r}")


def parse_numbered_edit(text: str) -> tuple[str, str] | None:
    """Parse "<n>. <value>"; returns None when the text is not in that form."""
    match = NUMBERED_EDIT_RE.match((text or "").strip())
    if match is None:
        return None
    number = int(match.group(1))
    value = match.group(2).strip()
    if number < 1 or number > len(FieldName.NUMBERED_FIELDS):
        raise UnknownCommandError(f"field number out of range: {number}")
    return FieldName.NUMBERED_FIELDS[number - 1], value
