from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path
from typing import Any
from unittest import mock

from conversation import message_templates
from conversation.engine import ConversationEngine
from conversation.state_machine import FIELD_BY_STEP, InvalidTransitionError
from conversation.step_handlers import STEP_HANDLERS, StepContext, StepOutcome
from core.enums import Direction, FieldName, Step
from core.models import DeliveryReceipt, DonationRecord, Session
from ledger.base import LedgerError
from messaging.base import GatewayError
from scheduler.base import SchedulerError
from sessions.repository import SqliteSessionStore
from sessions.repository_interface import DEFAULT_SESSION_TTL_SECONDS, SessionStoreError

PHONE = "+12125550000"


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _DummyGateway:
    name = "dummy"

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send(self, to: str, text: str) -> DeliveryReceipt:
        if self.fail:
            raise GatewayError("provider down")
        self.sent.append((to, text))
        return DeliveryReceipt(platform=self.name, message_id=f"m{len(self.sent)}")


class _DummyScheduler:
    name = "dummy"

    def __init__(self) -> None:
        self.scheduled: list[tuple[str, int, dict[str, Any]]] = []
        self.cancelled: list[str] = []
        self.fail = False

    def schedule(self, callback_url: str, delay_seconds: int, payload: dict[str, Any]) -> str:
        if self.fail:
            raise SchedulerError("qstash down")
        self.scheduled.append((callback_url, delay_seconds, payload))
        return f"job-{len(self.scheduled)}"

    def cancel(self, job_id: str) -> bool:
        self.cancelled.append(job_id)
        return True


class _DummyLedger:
    name = "dummy"

    def __init__(self) -> None:
        self.donations: list[DonationRecord] = []
        self.messages: list[tuple[str, str, Direction, Step | None]] = []
        self.fail_donations = False

    def append_donation(self, record: DonationRecord) -> None:
        if self.fail_donations:
            raise LedgerError("sheet unavailable")
        self.donations.append(record)

    def append_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        self.messages.append((phone, text, direction, step))


class _GatedStore(SqliteSessionStore):
    """Records get/set order per thread and can hold the next get open."""

    def __init__(self, sqlite_path: str, clock: Any) -> None:
        super().__init__(sqlite_path, clock=clock)
        self.calls: list[tuple[str, str]] = []
        self.entered = threading.Event()
        self.release = threading.Event()
        self._armed = False
        self._calls_lock = threading.Lock()

    def arm(self) -> None:
        self.calls.clear()
        self._armed = True

    def _record(self, name: str) -> None:
        with self._calls_lock:
            self.calls.append((name, threading.current_thread().name))

    def get(self, key: str) -> Session | None:
        self._record("get")
        if self._armed:
            self._armed = False
            self.entered.set()
            self.release.wait(timeout=5)
        return super().get(key)

    def set(self, key: str, session: Session, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self._record("set")
        super().set(key, session, ttl_seconds)


class ConversationEngineTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.clock = _Clock()
        self.store = SqliteSessionStore(str(Path(self._tmp.name) / "sms.db"), clock=self.clock)
        self.gateway = _DummyGateway()
        self.scheduler = _DummyScheduler()
        self.ledger = _DummyLedger()
        self.record_ids = iter(["D-000001-001", "D-000002-002", "D-000003-003"])
        self.engine = ConversationEngine(
            store=self.store,
            gateway=self.gateway,
            scheduler=self.scheduler,
            ledger=self.ledger,
            callback_url="https://example.com/api/check-inactivity",
            clock=self.clock,
            record_id_factory=lambda: next(self.record_ids),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _say(self, *texts: str) -> list[str]:
        replies: list[str] = []
        for text in texts:
            replies = self.engine.handle_inbound(PHONE, text)
        return replies

    def _reach_confirmation(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen", "2124441100", "123456789", "$125", "skip")

    def test_happy_path_saves_one_record(self) -> None:
        self.assertEqual(self._say("Hi"), [message_templates.GREETING])
        self.assertEqual(self.store.get(PHONE).step, Step.CONGREGATION)

        replies = self._say("Bais Shalom")
        self.assertIn("Bais Shalom", replies[0])
        self._say("Moshe Cohen", "2124441100", "123456789")
        replies = self._say("$125")
        self.assertIn("$125.00", replies[0])
        self.assertEqual(self.store.get(PHONE).step, Step.NOTE)

        replies = self._say("skip")
        self.assertIn("5. Amount: $125.00", replies[0])
        self.assertEqual(self.store.get(PHONE).step, Step.CONFIRMATION)

        replies = self._say("Yes")
        self.assertIn("D-000001-001", replies[0])
        self.assertEqual(len(self.ledger.donations), 1)
        record = self.ledger.donations[0]
        self.assertEqual(record.congregation, "Bais Shalom")
        self.assertEqual(record.person_phone, "212-444-1100")
        self.assertEqual(record.tax_id, "12-3456789")
        self.assertEqual(record.amount, "$125.00")
        self.assertEqual(record.note, "")

        session = self.store.get(PHONE)
        self.assertTrue(session.waiting_for_new_entry)
        self.assertEqual(session.data, {})

    def test_duplicate_yes_writes_one_record(self) -> None:
        self._reach_confirmation()
        self._say("Yes")
        replies = self._say("Yes")
        self.assertEqual(replies, [message_templates.WAITING_FOR_NEW_ENTRY])
        self.assertEqual(len(self.ledger.donations), 1)

    def test_conversation_end_and_new_entry_after_confirmation(self) -> None:
        self._reach_confirmation()
        self._say("Yes")
        replies = self._say("new entry")
        self.assertEqual(replies, [message_templates.START])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.CONGREGATION)
        self.assertFalse(session.waiting_for_new_entry)

        self._reach_confirmation()
        self._say("Yes")
        replies = self._say("no")
        self.assertEqual(replies, [message_templates.CONVERSATION_END])
        self.assertIsNone(self.store.get(PHONE))
        self.assertEqual(len(self.ledger.donations), 2)

    def test_validation_failure_keeps_step(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen")
        replies = self._say("12345")
        self.assertEqual(replies, [message_templates.PHONE_INVALID])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.PHONE_NUMBER)
        self.assertNotIn(FieldName.PERSON_PHONE, session.data)

    def test_too_short_name_keeps_step(self) -> None:
        self._say("Hi", "Bais Shalom")
        self._say("J")
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.PERSON_NAME)
        self.assertNotIn(FieldName.PERSON_NAME, session.data)

    def test_edit_from_confirmation_returns_to_summary(self) -> None:
        self._reach_confirmation()
        replies = self._say("change the amount")
        self.assertEqual(replies, [message_templates.PROMPTS[Step.AMOUNT]])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.AMOUNT)
        self.assertEqual(session.editing_field, FieldName.AMOUNT)

        replies = self._say("$200")
        self.assertIn("5. Amount: $200.00", replies[0])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.CONFIRMATION)
        self.assertIsNone(session.editing_field)
        self.assertEqual(session.data[FieldName.PERSON_NAME], "Moshe Cohen")

    def test_mid_flow_edit_resumes_at_first_missing_step(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen", "2124441100")
        self._say("change the name")
        self.assertEqual(self.store.get(PHONE).step, Step.PERSON_NAME)
        replies = self._say("Sarah Levi")
        self.assertEqual(replies, [message_templates.PROMPTS[Step.TAX_ID]])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.TAX_ID)
        self.assertEqual(session.data[FieldName.PERSON_NAME], "Sarah Levi")

    def test_cancel_deletes_session_without_record(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen")
        scheduled_before = len(self.scheduler.scheduled)
        replies = self._say("cancel")
        self.assertEqual(replies, [message_templates.CANCEL_MESSAGE])
        self.assertIsNone(self.store.get(PHONE))
        self.assertIsNone(self.store.get_job_id(PHONE))
        self.assertEqual(len(self.scheduler.scheduled), scheduled_before)
        self.assertEqual(self.ledger.donations, [])

        self.assertEqual(self._say("Hi"), [message_templates.GREETING])
        self.assertEqual(self.store.get(PHONE).step, Step.CONGREGATION)

    def test_start_over_recreates_session(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen")
        replies = self._say("start over")
        self.assertEqual(replies, [message_templates.START_OVER])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.CONGREGATION)
        self.assertEqual(session.data, {})

    def test_midway_greeting_asks_to_finish_or_restart(self) -> None:
        self._say("Hi", "Bais Shalom")
        for text in ("hello", "ok"):
            with self.subTest(text=text):
                self.assertEqual(self._say(text), [message_templates.MIDWAY_INTERRUPTION])
        self.assertEqual(self.store.get(PHONE).step, Step.PERSON_NAME)
        self.assertEqual(self._say("finish"), [message_templates.PROMPTS[Step.PERSON_NAME]])

    def test_short_digit_amount_is_not_an_interruption(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen", "2124441100", "123456789")
        self._say("50")
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.NOTE)
        self.assertEqual(session.data[FieldName.AMOUNT], "$50.00")

    def test_first_answer_without_greeting_is_congregation(self) -> None:
        replies = self._say("Bais Shalom")
        self.assertIn("Bais Shalom", replies[0])
        self.assertEqual(self.store.get(PHONE).step, Step.PERSON_NAME)

    def test_help_does_not_mutate(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen")
        replies = self._say("help")
        self.assertIn("Current step: 3", replies[0])
        self.assertEqual(self.store.get(PHONE).step, Step.PHONE_NUMBER)

    def test_each_message_replaces_the_timeout_job(self) -> None:
        self._say("Hi", "Bais Shalom", "Moshe Cohen")
        self.assertEqual(len(self.scheduler.scheduled), 3)
        self.assertEqual(self.scheduler.cancelled, ["job-1", "job-2"])
        self.assertEqual(self.store.get_job_id(PHONE), "job-3")
        url, delay, payload = self.scheduler.scheduled[-1]
        self.assertEqual(url, "https://example.com/api/check-inactivity")
        self.assertEqual(delay, 300)
        self.assertEqual(payload, {"phone": PHONE})

    def test_no_timeout_job_while_waiting_for_new_entry(self) -> None:
        self._reach_confirmation()
        self._say("Yes")
        self.assertIsNone(self.store.get_job_id(PHONE))
        scheduled = len(self.scheduler.scheduled)
        self._say("maybe")
        self.assertEqual(len(self.scheduler.scheduled), scheduled)

    def test_inactivity_sends_one_nudge(self) -> None:
        self._say("Hi")
        self.clock.now += 200
        self.assertFalse(self.engine.check_inactivity(PHONE))

        self.clock.now += 200
        self.assertTrue(self.engine.check_inactivity(PHONE, job_id="job-1"))
        self.assertEqual(self.gateway.sent[-1], (PHONE, message_templates.TIMEOUT_MESSAGE))
        session = self.store.get(PHONE)
        self.assertTrue(session.timed_out)
        self.assertEqual(session.step, Step.CONGREGATION)
        self.assertIsNone(self.store.get_job_id(PHONE))

        sent_count = len(self.gateway.sent)
        self.assertFalse(self.engine.check_inactivity(PHONE))
        self.assertEqual(len(self.gateway.sent), sent_count)

        self._say("Bais Shalom")
        session = self.store.get(PHONE)
        self.assertFalse(session.timed_out)
        self.assertEqual(session.last_message_at, self.clock.now)
        self.assertEqual(session.step, Step.PERSON_NAME)

    def test_inactivity_for_unknown_sender(self) -> None:
        self.assertFalse(self.engine.check_inactivity("+19999999999"))
        self.assertEqual(self.gateway.sent, [])

    def test_ledger_failure_keeps_confirmation(self) -> None:
        self._reach_confirmation()
        self.ledger.fail_donations = True
        replies = self._say("Yes")
        self.assertEqual(replies, [message_templates.SAVE_FAILED])
        session = self.store.get(PHONE)
        self.assertEqual(session.step, Step.CONFIRMATION)
        self.assertEqual(session.data[FieldName.CONGREGATION], "Bais Shalom")

        self.ledger.fail_donations = False
        replies = self._say("Yes")
        self.assertIn("D-000002-002", replies[0])
        self.assertEqual(len(self.ledger.donations), 1)

    def test_gateway_and_scheduler_failures_do_not_abort(self) -> None:
        self.gateway.fail = True
        self.scheduler.fail = True
        self._say("Hi", "Bais Shalom")
        self.assertEqual(self.store.get(PHONE).step, Step.PERSON_NAME)
        self.assertIsNone(self.store.get_job_id(PHONE))

    def test_messages_are_logged_in_both_directions(self) -> None:
        self._say("Hi")
        self.assertEqual(
            [(direction, step) for _, _, direction, step in self.ledger.messages],
            [(Direction.INBOUND, Step.GREETING), (Direction.OUTBOUND, Step.CONGREGATION)],
        )

    def test_editing_field_matches_current_step_after_every_message(self) -> None:
        script = [
            "Hi",
            "Bais Shalom",
            "Moshe Cohen",
            "change the congregation",
            "help",
            "change the name",
            "x",
            "Sarah Levi",
            "2124441100",
            "123456789",
            "change the tax id",
            "finish",
            "987654321",
            "100",
            "In memory of Avi",
            "change the note",
            "skip",
            "4. 111111111",
            "Yes",
        ]
        for text in script:
            self.engine.handle_inbound(PHONE, text)
            session = self.store.get(PHONE)
            with self.subTest(text=text):
                self.assertTrue(
                    session.editing_field is None or session.editing_field == FIELD_BY_STEP.get(session.step)
                )
        self.assertEqual(len(self.ledger.donations), 1)
        self.assertEqual(self.ledger.donations[0].tax_id, "11-1111111")
        self.assertEqual(self.ledger.donations[0].person_name, "Sarah Levi")

    def test_inactivity_at_exactly_timeout_is_not_idle(self) -> None:
        self._say("Hi")
        self.clock.now += 300
        self.assertFalse(self.engine.check_inactivity(PHONE, job_id="job-1"))
        self.assertEqual(self.gateway.sent, [(PHONE, message_templates.GREETING)])
        self.assertFalse(self.store.get(PHONE).timed_out)

        self.clock.now += 1
        self.assertTrue(self.engine.check_inactivity(PHONE))

    def test_late_inactivity_job_keeps_newer_job_id(self) -> None:
        self._say("Hi", "Bais Shalom")
        self.assertEqual(self.store.get_job_id(PHONE), "job-2")

        self.clock.now += 400
        self.engine.check_inactivity(PHONE, job_id="job-1")
        self.assertEqual(self.store.get_job_id(PHONE), "job-2")

        self.engine.check_inactivity(PHONE, job_id="job-2")
        self.assertIsNone(self.store.get_job_id(PHONE))

    def test_failed_persist_on_yes_writes_no_record(self) -> None:
        self._reach_confirmation()
        with mock.patch.object(self.store, "set", side_effect=SessionStoreError("store down")):
            with self.assertRaises(SessionStoreError):
                self.engine.handle_inbound(PHONE, "Yes")
        self.assertEqual(self.ledger.donations, [])
        self.assertEqual(self.store.get(PHONE).step, Step.CONFIRMATION)

        replies = self._say("Yes")
        self.assertIn("D-000002-002", replies[0])
        self.assertEqual([record.record_id for record in self.ledger.donations], ["D-000002-002"])
        self.assertTrue(self.store.get(PHONE).waiting_for_new_entry)

    def test_illegal_step_change_is_rejected(self) -> None:
        self._say("Hi", "Bais Shalom")

        def jump_to_greeting(session: Session, text: str, context: StepContext) -> StepOutcome:
            return StepOutcome(session.evolve(step=Step.GREETING), ["back to the start"])

        with mock.patch.dict(STEP_HANDLERS, {Step.PERSON_NAME: jump_to_greeting}):
            with self.assertRaises(InvalidTransitionError):
                self.engine.handle_inbound(PHONE, "Moshe Cohen")
        self.assertEqual(self.store.get(PHONE).step, Step.PERSON_NAME)
        self.assertEqual(self.engine._locks, {})

    def test_locks_are_dropped_after_use(self) -> None:
        self._say("Hi", "Bais Shalom")
        self.engine.handle_inbound("+12125551111", "Hi")
        self.engine.check_inactivity(PHONE)
        self.assertEqual(self.engine._locks, {})

    def test_same_sender_messages_do_not_interleave(self) -> None:
        store = _GatedStore(str(Path(self._tmp.name) / "gated.db"), clock=self.clock)
        engine = ConversationEngine(
            store=store,
            gateway=self.gateway,
            scheduler=self.scheduler,
            ledger=self.ledger,
            callback_url="https://example.com/api/check-inactivity",
            clock=self.clock,
        )
        engine.handle_inbound(PHONE, "Hi")
        store.arm()

        first = threading.Thread(target=engine.handle_inbound, args=(PHONE, "Bais Shalom"), name="first")
        second = threading.Thread(target=engine.handle_inbound, args=(PHONE, "Moshe Cohen"), name="second")
        first.start()
        self.assertTrue(store.entered.wait(timeout=5))
        second.start()
        second.join(timeout=0.2)
        self.assertTrue(second.is_alive())
        self.assertEqual(store.calls, [("get", "first")])
        self.assertIn(PHONE, engine._locks)

        store.release.set()
        first.join(timeout=5)
        second.join(timeout=5)
        self.assertFalse(first.is_alive() or second.is_alive())
        self.assertEqual(
            store.calls,
            [("get", "first"), ("set", "first"), ("get", "second"), ("set", "second")],
        )
        session = store.get(PHONE)
        self.assertEqual(session.step, Step.PHONE_NUMBER)
        self.assertEqual(session.data[FieldName.PERSON_NAME], "Moshe Cohen")
        self.assertEqual(engine._locks, {})


if __name__ == "__main__":
    unittest.main()
