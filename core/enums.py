from __future__ import annotations

from enum import Enum, IntEnum


class Step(IntEnum):
    GREETING = 0
    CONGREGATION = 1
    PERSON_NAME = 2
    PHONE_NUMBER = 3
    TAX_ID = 4
    AMOUNT = 5
    NOTE = 6
    CONFIRMATION = 7


class Command(str, Enum):
    GREETING = "GREETING"
    CANCEL = "CANCEL"
    START_OVER = "START_OVER"
    NEW = "NEW"
    CHANGE = "CHANGE"
    FINISH = "FINISH"
    HELP = "HELP"
    CONFIRM_YES = "CONFIRM_YES"
    CONFIRM_NO_OR_EDIT = "CONFIRM_NO_OR_EDIT"
    END_CONVERSATION = "END_CONVERSATION"
    NONE = "NONE"


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class FieldName:
    CONGREGATION = "congregation"
    PERSON_NAME = "person_name"
    PERSON_PHONE = "person_phone"
    TAX_ID = "tax_id"
    AMOUNT = "amount"
    AMOUNT_NUMERIC = "amount_numeric"
    NOTE = "note"

    # Numbering used by "<n>. <value>" edits at confirmation.
    NUMBERED_FIELDS = (
        CONGREGATION,
        PERSON_NAME,
        PERSON_PHONE,
        TAX_ID,
        AMOUNT,
        NOTE,
    )
