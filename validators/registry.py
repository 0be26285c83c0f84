from __future__ import annotations

from typing import Any, Callable

from core.enums import FieldName
from core.models import AmountValue
from validators.amount_validator import validate_amount
from validators.name_validator import validate_congregation, validate_person_name
from validators.note_validator import is_skip_note, validate_note
from validators.phone_validator import validate_phone
from validators.tax_id_validator import validate_tax_id

FIELD_VALIDATORS: dict[str, Callable[[str], Any]] = {
    FieldName.CONGREGATION: validate_congregation,
    FieldName.PERSON_NAME: validate_person_name,
    FieldName.PERSON_PHONE: validate_phone,
    FieldName.TAX_ID: validate_tax_id,
    FieldName.AMOUNT: validate_amount,
    FieldName.NOTE: validate_note,
}


def validate_field(field_name: str, raw: str) -> dict[str, Any]:
    """Validate ``raw`` for ``field_name`` and return the session values to store.

    Amount expands to both the formatted string and the numeric value; a skip
    command for the note stores an empty note. Raises ``ValidationError``.
    """
    if field_name == FieldName.NOTE and is_skip_note(raw):
        return {FieldName.NOTE: ""}
    validator = FIELD_VALIDATORS[field_name]
    value = validator(raw)
    if isinstance(value, AmountValue):
        return {FieldName.AMOUNT: value.formatted, FieldName.AMOUNT_NUMERIC: value.numeric}
    return {field_name: value}
