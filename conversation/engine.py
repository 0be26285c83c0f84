from __future__ import annotations

import re
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from conversation import message_templates
from conversation.commands import classify, is_midway_interruption
from conversation.state_machine import ensure_transition
from conversation.step_handlers import (
    COMMAND_HANDLERS,
    STEP_HANDLERS,
    StepContext,
    StepOutcome,
    handle_end_conversation,
    handle_greeting,
    handle_midway_interruption,
    handle_new_entry,
    handle_waiting,
)
from core.enums import Command, Direction, Step
from core.models import Session
from ledger.base import LedgerError, LedgerSink
from ledger.record_ids import generate_record_id
from messaging.base import MessageGateway
from scheduler.base import TIMEOUT_DELAY_SECONDS, JobScheduler, SchedulerError
from sessions.repository_interface import (
    DEFAULT_SESSION_TTL_SECONDS,
    SessionStoreError,
    SessionStoreProtocol,
)

_DIGITS_AMOUNT_RE = re.compile(r"^\$?\d+$")


class ConversationEngine:
    def __init__(
        self,
        store: SessionStoreProtocol,
        gateway: MessageGateway,
        scheduler: JobScheduler,
        ledger: LedgerSink,
        callback_url: str,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        timeout_seconds: int = TIMEOUT_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
        record_id_factory: Callable[[], str] = generate_record_id,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.scheduler = scheduler
        self.ledger = ledger
        self.callback_url = callback_url
        self.session_ttl_seconds = max(60, int(session_ttl_seconds))
        self.timeout_seconds = max(1, int(timeout_seconds))
        self.clock = clock
        self.record_id_factory = record_id_factory
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()

    def handle_inbound(self, phone: str, text: str) -> list[str]:
        sender = (phone or "").strip()
        body = (text or "").strip()
        with self._sender_lock(sender):
            now = self.clock()
            stored = self.store.get(sender)
            self._log_message(sender, body, Direction.INBOUND, stored.step if stored else Step.GREETING)

            session = stored or Session.new(now=now)
            self._cancel_pending_job(sender)
            session = session.evolve(last_message_at=now, timed_out=False)

            context = StepContext(now=now, new_record_id=self.record_id_factory)
            outcome = self._dispatch(session, body, context)
            # Session first, ledger second: a failed persist must not leave a saved record.
            self._persist(sender, outcome)
            if outcome.record is not None:
                outcome = self._save_donation(sender, session, outcome)

            if outcome.session is not None and not outcome.session.waiting_for_new_entry:
                self._schedule_timeout(sender)

        step = outcome.session.step if outcome.session is not None else None
        for message in outcome.messages:
            self._send(sender, message, step)
        return list(outcome.messages)

    def check_inactivity(self, phone: str, job_id: str | None = None) -> bool:
        sender = (phone or "").strip()
        with self._sender_lock(sender):
            session = self.store.get(sender)
            self._forget_job(sender, job_id)
            if session is None or session.waiting_for_new_entry or session.timed_out:
                return False
            idle_seconds = self.clock() - session.last_message_at
            if idle_seconds <= self.timeout_seconds:
                return False
            updated = session.evolve(timed_out=True)
            self.store.set(sender, updated, self.session_ttl_seconds)

        print(f"sms-inactivity-nudge phone={sender} step={int(updated.step)} idle_sec={int(idle_seconds)}")
        self._send(sender, message_templates.TIMEOUT_MESSAGE, updated.step)
        return True

    def _dispatch(self, session: Session, text: str, context: StepContext) -> StepOutcome:
        command = classify(text, session)

        if session.waiting_for_new_entry:
            if command == Command.NEW:
                return handle_new_entry(session, text, context)
            if command == Command.END_CONVERSATION:
                return handle_end_conversation(session, text, context)
            return handle_waiting(session, text, context)

        if command == Command.GREETING:
            if session.is_mid_flow():
                return handle_midway_interruption(session, text, context)
            return self._checked(session, handle_greeting(session, text, context))

        handler = COMMAND_HANDLERS.get(command)
        if handler is not None:
            return self._checked(session, handler(session, text, context))

        if session.step == Step.GREETING:
            session = session.evolve(step=Step.CONGREGATION)
        elif session.is_mid_flow() and is_midway_interruption(text) and not self._is_short_amount(session, text):
            return handle_midway_interruption(session, text, context)

        return self._checked(session, STEP_HANDLERS[session.step](session, text, context))

    @staticmethod
    def _checked(session: Session, outcome: StepOutcome) -> StepOutcome:
        # Start-over and cancel discard the session, so only in-place moves are checked.
        if outcome.session is not None and not outcome.reset:
            ensure_transition(session.step, outcome.session.step)
        return outcome

    @staticmethod
    def _is_short_amount(session: Session, text: str) -> bool:
        return session.step == Step.AMOUNT and bool(_DIGITS_AMOUNT_RE.match(text))

    def _save_donation(self, phone: str, session: Session, outcome: StepOutcome) -> StepOutcome:
        record = outcome.record
        try:
            self.ledger.append_donation(record)
        except LedgerError as exc:
            print(f"donation-append-failed phone={phone} record_id={record.record_id} error={exc}")
            restored = StepOutcome(session, [message_templates.SAVE_FAILED])
            self._persist(phone, restored)
            return restored
        print(f"donation-saved phone={phone} record_id={record.record_id}")
        return outcome

    def _persist(self, phone: str, outcome: StepOutcome) -> None:
        if outcome.session is None:
            self.store.delete(phone)
            return
        if outcome.reset:
            self.store.delete(phone)
        self.store.set(phone, outcome.session, self.session_ttl_seconds)

    def _cancel_pending_job(self, phone: str) -> None:
        try:
            job_id = self.store.get_job_id(phone)
            if not job_id:
                return
            cancelled = self.scheduler.cancel(job_id)
            self.store.delete_job_id(phone)
        except (SchedulerError, SessionStoreError) as exc:
            print(f"timeout-cancel-failed phone={phone} error={exc}")
            return
        print(f"timeout-cancelled phone={phone} job_id={job_id} cancelled={cancelled}")

    def _schedule_timeout(self, phone: str) -> None:
        try:
            job_id = self.scheduler.schedule(self.callback_url, self.timeout_seconds, {"phone": phone})
            self.store.set_job_id(phone, job_id, self.session_ttl_seconds)
        except (SchedulerError, SessionStoreError) as exc:
            print(f"timeout-schedule-failed phone={phone} error={exc}")

    def _forget_job(self, phone: str, job_id: str | None) -> None:
        # A late callback must not clear the id of a job scheduled after it.
        if not job_id:
            return
        try:
            if self.store.get_job_id(phone) == job_id:
                self.store.delete_job_id(phone)
        except SessionStoreError as exc:
            print(f"timeout-job-clear-failed phone={phone} error={exc}")

    def _send(self, phone: str, text: str, step: Step | None) -> None:
        try:
            receipt = self.gateway.send(phone, text)
        except Exception as exc:  # noqa: BLE001
            print(f"sms-send-failed phone={phone} platform={getattr(self.gateway, 'name', '-')} error={exc}")
        else:
            print(f"sms-sent phone={phone} platform={receipt.platform} message_id={receipt.message_id}")
        self._log_message(phone, text, Direction.OUTBOUND, step)

    def _log_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        try:
            self.ledger.append_message(phone, text, direction, step)
        except Exception as exc:  # noqa: BLE001
            print(f"message-log-failed phone={phone} direction={direction.value} error={exc}")

    @contextmanager
    def _sender_lock(self, phone: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(phone)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[phone] = entry
            entry[1] += 1
        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(phone, None)


def build_engine(
    config: dict[str, Any],
    store: SessionStoreProtocol | None = None,
    gateway: MessageGateway | None = None,
    scheduler: JobScheduler | None = None,
    ledger: LedgerSink | None = None,
) -> ConversationEngine:
    from ledger.factory import build_ledger
    from messaging.factory import build_message_gateway
    from scheduler.factory import build_scheduler, inactivity_callback_url
    from sessions.repository_factory import create_session_store

    app_conf = config.get("app", {})
    return ConversationEngine(
        store=store or create_session_store(config),
        gateway=gateway or build_message_gateway(config),
        scheduler=scheduler or build_scheduler(config),
        ledger=ledger or build_ledger(config),
        callback_url=inactivity_callback_url(config),
        session_ttl_seconds=int(app_conf.get("session_ttl_seconds", DEFAULT_SESSION_TTL_SECONDS)),
        timeout_seconds=int(app_conf.get("timeout_seconds", TIMEOUT_DELAY_SECONDS)),
    )
