from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from conversation import message_templates
from conversation.commands import (
    MIDWAY_GREETING_RE,
    UnknownCommandError,
    classify_confirmation,
    edit_target,
    parse_numbered_edit,
)
from conversation.state_machine import (
    FIELD_BY_STEP,
    STEP_BY_FIELD,
    first_missing_step,
    is_collected,
    next_step,
)
from core.enums import Command, FieldName, Step
from core.models import DonationRecord, Session, utc_now_iso
from validators.common import ValidationError
from validators.registry import validate_field


@dataclass(slots=True)
class StepOutcome:
    """Result of one handler call.

    ``session`` is the snapshot to persist; ``None`` means the session is deleted.
    ``reset`` asks the engine to delete the stored session before writing the new one.
    """

    session: Session | None
    messages: list[str] = field(default_factory=list)
    record: DonationRecord | None = None
    reset: bool = False


@dataclass(slots=True)
class StepContext:
    now: float
    new_record_id: Callable[[], str]
    timestamp: Callable[[], str] = utc_now_iso


def handle_greeting(session: Session, text: str, context: StepContext) -> StepOutcome:
    if session.step == Step.CONFIRMATION:
        return StepOutcome(session, [message_templates.build_summary(session.data)])
    moved = session.evolve(step=Step.CONGREGATION, editing_field=None)
    return StepOutcome(moved, [message_templates.GREETING])


def handle_field(session: Session, text: str, context: StepContext) -> StepOutcome:
    field_name = FIELD_BY_STEP[session.step]
    if field_name == FieldName.CONGREGATION and MIDWAY_GREETING_RE.match(text.strip()):
        return StepOutcome(session, [message_templates.START])

    try:
        values = validate_field(field_name, text)
    except ValidationError:
        return StepOutcome(session, [message_templates.INVALID_BY_FIELD[field_name]])

    updated = session.with_values(values)
    if session.editing_field == field_name:
        return _resume_after_edit(updated)

    target = next_step(session.step)
    moved = updated.evolve(step=target, editing_field=None)
    if target == Step.CONFIRMATION:
        return StepOutcome(moved, [message_templates.build_summary(moved.data)])
    return StepOutcome(moved, [message_templates.build_success(field_name, moved.data)])


def _resume_after_edit(session: Session) -> StepOutcome:
    # Resumes at the first missing field rather than jumping to CONFIRMATION;
    # edits made from the summary still land back on it.
    target = first_missing_step(session.data)
    moved = session.evolve(step=target, editing_field=None)
    return StepOutcome(moved, [message_templates.build_prompt(target, moved.data)])


def handle_confirmation(session: Session, text: str, context: StepContext) -> StepOutcome:
    command = classify_confirmation(text)
    if command == Command.CONFIRM_YES:
        return _confirm(session, context)

    try:
        numbered = parse_numbered_edit(text)
    except UnknownCommandError:
        return StepOutcome(session, [message_templates.CONFIRMATION_RANGE_HINT])
    if numbered is not None:
        field_name, value = numbered
        try:
            values = validate_field(field_name, value)
        except ValidationError:
            return StepOutcome(session, [message_templates.EDIT_INVALID_BY_FIELD[field_name]])
        updated = session.with_values(values, editing_field=None)
        return StepOutcome(updated, [message_templates.build_summary(updated.data)])

    if command == Command.CONFIRM_NO_OR_EDIT:
        return StepOutcome(session, [message_templates.CONFIRMATION_CHANGE])
    return StepOutcome(session, [message_templates.CONFIRMATION_INVALID_FORMAT])


def _confirm(session: Session, context: StepContext) -> StepOutcome:
    data = session.data
    record = DonationRecord(
        record_id=context.new_record_id(),
        congregation=str(data.get(FieldName.CONGREGATION, "")),
        person_name=str(data.get(FieldName.PERSON_NAME, "")),
        person_phone=str(data.get(FieldName.PERSON_PHONE, "")),
        tax_id=str(data.get(FieldName.TAX_ID, "")),
        amount=str(data.get(FieldName.AMOUNT, "")),
        timestamp=context.timestamp(),
        note=str(data.get(FieldName.NOTE, "")),
    )
    waiting = Session(
        step=Step.GREETING,
        data={},
        editing_field=None,
        waiting_for_new_entry=True,
        last_message_at=session.last_message_at,
        timed_out=False,
    )
    return StepOutcome(
        waiting,
        [message_templates.build_confirmation_success(record.record_id)],
        record=record,
    )


def handle_edit_request(session: Session, text: str, context: StepContext) -> StepOutcome:
    try:
        field_name = edit_target(text)
    except UnknownCommandError:
        return StepOutcome(session, [message_templates.build_current_info(session.data)])

    target = STEP_BY_FIELD[field_name]
    if target == session.step:
        return StepOutcome(session, [message_templates.build_prompt(target, session.data)])
    if not is_collected(field_name, session.data):
        return StepOutcome(
            session,
            [message_templates.build_not_collected(field_name, session.step, session.data)],
        )
    moved = session.evolve(step=target, editing_field=field_name)
    return StepOutcome(moved, [message_templates.build_prompt(target, moved.data)])


def handle_cancel(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(None, [message_templates.CANCEL_MESSAGE])


def handle_start_over(session: Session, text: str, context: StepContext) -> StepOutcome:
    fresh = Session.new(now=context.now, step=Step.CONGREGATION)
    return StepOutcome(fresh, [message_templates.START_OVER], reset=True)


def handle_new_entry(session: Session, text: str, context: StepContext) -> StepOutcome:
    fresh = Session.new(now=context.now, step=Step.CONGREGATION)
    return StepOutcome(fresh, [message_templates.START], reset=True)


def handle_end_conversation(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(None, [message_templates.CONVERSATION_END])


def handle_waiting(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(session, [message_templates.WAITING_FOR_NEW_ENTRY])


def handle_finish(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(session, [message_templates.build_prompt(session.step, session.data)])


def handle_help(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(session, [message_templates.build_help(session.step)])


def handle_midway_interruption(session: Session, text: str, context: StepContext) -> StepOutcome:
    return StepOutcome(session, [message_templates.MIDWAY_INTERRUPTION])


StepHandler = Callable[[Session, str, StepContext], StepOutcome]

STEP_HANDLERS: dict[Step, StepHandler] = {
    Step.GREETING: handle_greeting,
    Step.CONGREGATION: handle_field,
    Step.PERSON_NAME: handle_field,
    Step.PHONE_NUMBER: handle_field,
    Step.TAX_ID: handle_field,
    Step.AMOUNT: handle_field,
    Step.NOTE: handle_field,
    Step.CONFIRMATION: handle_confirmation,
}

COMMAND_HANDLERS: dict[Command, StepHandler] = {
    Command.CANCEL: handle_cancel,
    Command.START_OVER: handle_start_over,
    Command.NEW: handle_start_over,
    Command.CHANGE: handle_edit_request,
    Command.FINISH: handle_finish,
    Command.HELP: handle_help,
}
