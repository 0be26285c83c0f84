from __future__ import annotations

from typing import Any

from core.enums import FieldName, Step

GREETING = (
    "Hello! Thank you for your interest in making a donation. "
    "Let's begin — what's the congregation or organization name?"
)
START = "Let's begin — what's the congregation or organization name?"
START_OVER = "No problem. Let's start again — what's the congregation or organization name?"

CONGREGATION_SUCCESS = "Got it — the congregation is {congregation}.\nNow, what's the person's full name?"
CONGREGATION_INVALID = (
    "Hmm, I didn't catch that. Please send the congregation or organization name in words (like Bais Shalom).\n"
    "Let's try again — what's the congregation or organization name?"
)
NAME_SUCCESS = (
    "Thanks! I've got the person's name as {person_name}.\n"
    "Now please send the person's phone number (10 digits, like 2124441100)."
)
NAME_INVALID = (
    "That doesn't look like a full name. Please send the person's first and last name, "
    "for example Moshe Cohen."
)
PHONE_SUCCESS = (
    "Thanks! I've got the person's phone number as {person_phone}.\n"
    "Now please send the Tax ID (9 digits, like 123456789 or 12-3456789)."
)
PHONE_INVALID = "That doesn't look like a phone number. Please send 10 digits (for example 2124441100)."
TAX_ID_SUCCESS = (
    "Great — the Tax ID is {tax_id}.\n"
    "Now, what's the donation amount? (You can write 125, $125, or $125.00)"
)
TAX_ID_INVALID = (
    "That doesn't look like a Tax ID, a Tax ID should have 9 digits (for example 123456789).\n"
    "Please try again — what's the Tax ID?"
)
AMOUNT_SUCCESS = (
    "Perfect — the donation amount is {amount}.\n"
    "Would you like to add a note to this donation? Send it now, or reply \"Skip\"."
)
AMOUNT_INVALID = "Please write the number as digits, like 180 or $180.00.\nWhat's the donation amount?"
NOTE_INVALID = "Please provide a note (up to 500 characters) or say 'skip' to continue without a note."

PROMPTS = {
    Step.GREETING: START,
    Step.CONGREGATION: START,
    Step.PERSON_NAME: "What's the person's full name?",
    Step.PHONE_NUMBER: "Please send the person's phone number (10 digits, like 2124441100).",
    Step.TAX_ID: "Please send the Tax ID (9 digits, like 123456789 or 12-3456789).",
    Step.AMOUNT: "What's the donation amount? (You can write 125, $125, or $125.00)",
    Step.NOTE: "Would you like to add a note to this donation? Send it now, or reply \"Skip\".",
}

SUCCESS_BY_FIELD = {
    FieldName.CONGREGATION: CONGREGATION_SUCCESS,
    FieldName.PERSON_NAME: NAME_SUCCESS,
    FieldName.PERSON_PHONE: PHONE_SUCCESS,
    FieldName.TAX_ID: TAX_ID_SUCCESS,
    FieldName.AMOUNT: AMOUNT_SUCCESS,
}

INVALID_BY_FIELD = {
    FieldName.CONGREGATION: CONGREGATION_INVALID,
    FieldName.PERSON_NAME: NAME_INVALID,
    FieldName.PERSON_PHONE: PHONE_INVALID,
    FieldName.TAX_ID: TAX_ID_INVALID,
    FieldName.AMOUNT: AMOUNT_INVALID,
    FieldName.NOTE: NOTE_INVALID,
}

# Shorter variants used for "<n>. <value>" edits, where the step prompt would be misleading.
EDIT_INVALID_BY_FIELD = {
    FieldName.CONGREGATION: (
        "Hmm, I didn't catch that. Please send the congregation or organization name in words (like Bais Shalom)."
    ),
    FieldName.PERSON_NAME: NAME_INVALID,
    FieldName.PERSON_PHONE: PHONE_INVALID,
    FieldName.TAX_ID: "That doesn't look like a Tax ID, a Tax ID should have 9 digits (for example 123456789).",
    FieldName.AMOUNT: "Please write the number as digits, like 180 or $180.00.",
    FieldName.NOTE: NOTE_INVALID,
}

FIELD_LABELS = {
    FieldName.CONGREGATION: "Congregation",
    FieldName.PERSON_NAME: "Person",
    FieldName.PERSON_PHONE: "Phone",
    FieldName.TAX_ID: "Tax ID",
    FieldName.AMOUNT: "Amount",
    FieldName.NOTE: "Note",
}

CONFIRMATION_SUCCESS = (
    "Great! Your donation record has been saved.\n"
    "Record ID: {record_id}\n"
    "Would you like to enter another donation? Just say \"New entry.\""
)
CONFIRMATION_CHANGE = "Please reply \"Yes\" to confirm or tell me what to change."
CONFIRMATION_INVALID_FORMAT = (
    "Please reply 'Yes' to confirm or use the format 'number. new value' to edit (e.g., '2. Moshe Kohn')"
)
CONFIRMATION_RANGE_HINT = "Please enter a number between 1-6 followed by the new value (e.g., '2. Moshe Kohn')"
SAVE_FAILED = "Sorry, I couldn't save your donation just now. Please reply \"Yes\" to try again."

CONVERSATION_END = "Okay, thank you for your donation! Have a great day!"
WAITING_FOR_NEW_ENTRY = "Please say \"New entry\" to start another donation, or \"No\" to end."
TIMEOUT_MESSAGE = "Still with me? Would you like to finish entering this donation or start over?"
CANCEL_MESSAGE = (
    "Okay, I've stopped and nothing was saved.\n"
    "You can start again anytime by saying \"New entry.\""
)
MIDWAY_INTERRUPTION = "You're in the middle of a donation. Reply 'Finish' to continue or 'New' to restart."
GENERIC_ERROR = "Sorry, there was an error processing your message. Please try again."
DONOR_THANK_YOU = "Thank you {name}! Your donation of {amount} has been confirmed. We appreciate your generosity."

HELP_TEMPLATE = (
    "I'm here to help you enter donation information. Here's what you can do:\n\n"
    "• Continue with the current step\n"
    "• Say \"change [field]\" to edit something\n"
    "• Say \"start over\" to restart\n"
    "• Say \"cancel\" to stop\n"
    "• Say \"help\" for this message\n\n"
    "Current step: {step}"
)

NOT_COLLECTED_TEMPLATE = "We haven't reached the {label} yet, so there's nothing to change there."


def _text(value: Any) -> str:
    if value in (None, ""):
        return "-"
    return str(value)


def _summary_lines(data: dict[str, Any]) -> list[str]:
    return [
        f"{index}. {FIELD_LABELS[field_name]}: {_text(data.get(field_name))}"
        for index, field_name in enumerate(FieldName.NUMBERED_FIELDS, start=1)
    ]


def build_summary(data: dict[str, Any]) -> str:
    lines = ["Here's what I have so far:"]
    lines.extend(_summary_lines(data))
    lines.append("")
    lines.append("Does everything look right?")
    lines.append(
        "Please reply \"Yes\" to confirm, or tell me what to fix "
        "(for example \"Change the amount\" or \"5. $180\")."
    )
    return "\n".join(lines)


def build_current_info(data: dict[str, Any]) -> str:
    lines = ["Your current info:"]
    lines.extend(_summary_lines(data))
    lines.append("")
    lines.append("What would you like to change?")
    return "\n".join(lines)


def build_success(field_name: str, data: dict[str, Any]) -> str:
    template = SUCCESS_BY_FIELD[field_name]
    return template.format(**{field_name: _text(data.get(field_name))})


def build_prompt(step: Step, data: dict[str, Any]) -> str:
    if step == Step.CONFIRMATION:
        return build_summary(data)
    return PROMPTS[step]


def build_help(step: Step) -> str:
    return HELP_TEMPLATE.format(step=int(step))


def build_not_collected(field_name: str, step: Step, data: dict[str, Any]) -> str:
    label = FIELD_LABELS.get(field_name, field_name).lower()
    return f"{NOT_COLLECTED_TEMPLATE.format(label=label)}\n{build_prompt(step, data)}"


def build_confirmation_success(record_id: str) -> str:
    return CONFIRMATION_SUCCESS.format(record_id=record_id)


def build_donor_thank_you(name: str, amount: str) -> str:
    return DONOR_THANK_YOU.format(name=name, amount=amount)
