from __future__ import annotations

from typing import Any

from core.enums import FieldName, Step

FIELD_BY_STEP: dict[Step, str] = {
    Step.CONGREGATION: FieldName.CONGREGATION,
    Step.PERSON_NAME: FieldName.PERSON_NAME,
    Step.PHONE_NUMBER: FieldName.PERSON_PHONE,
    Step.TAX_ID: FieldName.TAX_ID,
    Step.AMOUNT: FieldName.AMOUNT,
    Step.NOTE: FieldName.NOTE,
}
STEP_BY_FIELD: dict[str, Step] = {field_name: step for step, field_name in FIELD_BY_STEP.items()}

FIELD_STEPS = tuple(FIELD_BY_STEP.keys())


def next_step(step: Step) -> Step:
    if step >= Step.CONFIRMATION:
        return Step.CONFIRMATION
    return Step(int(step) + 1)


def first_missing_step(data: dict[str, Any]) -> Step:
    for step in FIELD_STEPS:
        field_name = FIELD_BY_STEP[step]
        if field_name not in data:
            return step
    return Step.CONFIRMATION


def is_collected(field_name: str, data: dict[str, Any]) -> bool:
    return field_name in data


def can_transition(current: Step, target: Step) -> bool:
    if current == target:
        return True

    # Field steps may jump anywhere in the field range: edits move backward and
    # finishing an edit resumes at the first missing field.
    field_targets = set(FIELD_STEPS) | {Step.CONFIRMATION}
    allowed: dict[Step, set[Step]] = {step: field_targets for step in FIELD_STEPS}
    allowed[Step.GREETING] = {Step.CONGREGATION}
    allowed[Step.CONFIRMATION] = set(FIELD_STEPS) | {Step.GREETING}
    return target in allowed.get(current, set())


class InvalidTransitionError(RuntimeError):
    pass


def ensure_transition(current: Step, target: Step) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(f"step {int(current)} cannot move to step {int(target)}")
