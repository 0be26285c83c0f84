from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

from conversation import message_templates
from conversation.engine import ConversationEngine, build_engine
from messaging.base import MessageGateway, normalize_donor_phone
from messaging.factory import build_message_gateway
from sessions.repository_factory import create_session_store
from sessions.repository_interface import SessionStoreError, SessionStoreProtocol
from webhook.event_ids import build_messagecollab_event_id, build_twilio_event_id
from webhook.signature import verify_twilio_signature

TWILIO_PATH = "/api/sms"
MESSAGECOLLAB_PATH = "/api/messagecollab"
INACTIVITY_PATH = "/api/check-inactivity"
DONOR_CONFIRMATION_PATH = "/send-donation-confirmation-to-donor"


class SmsWebhookHandler:
    def __init__(
        self,
        config: dict[str, Any],
        engine: ConversationEngine | None = None,
        store: SessionStoreProtocol | None = None,
        gateway: MessageGateway | None = None,
    ) -> None:
        self.config = config
        self.sms_conf = config.get("sms", {})
        self.base_url = str(config.get("app", {}).get("base_url", "") or "").rstrip("/")
        self.verify_signature = bool(self.sms_conf.get("verify_signature", False))
        twilio_conf = self.sms_conf.get("twilio", {})
        self.auth_token = str(twilio_conf.get("auth_token", "") or "").strip() if isinstance(twilio_conf, dict) else ""

        self.store = store or (engine.store if engine is not None else create_session_store(config))
        self.gateway = gateway or (engine.gateway if engine is not None else build_message_gateway(config))
        self.engine = engine or build_engine(config, store=self.store, gateway=self.gateway)

    def handle_twilio(self, body: bytes, signature: str | None, url: str | None = None) -> tuple[int, str]:
        try:
            params = dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError:
            return 400, "invalid form payload"
        if self.verify_signature:
            request_url = url or f"{self.base_url}{TWILIO_PATH}"
            if not verify_twilio_signature(self.auth_token, request_url, params, signature):
                print(f"sms-webhook-signature-rejected url={request_url}")
                return 401, "invalid signature"
        return self._handle_inbound(
            phone=str(params.get("From", "") or ""),
            text=str(params.get("Body", "") or ""),
            event_id=build_twilio_event_id(params),
        )

    def handle_messagecollab(self, body: bytes) -> tuple[int, str]:
        payload = _load_json_object(body)
        if payload is None:
            return 400, "invalid json payload"
        return self._handle_inbound(
            phone=str(payload.get("from", "") or ""),
            text=str(payload.get("message", "") or ""),
            event_id=build_messagecollab_event_id(payload),
        )

    def handle_inactivity(self, body: bytes, job_id: str | None = None) -> tuple[int, str]:
        payload = _load_json_object(body)
        if payload is None:
            return 400, "invalid json payload"
        phone = str(payload.get("phone", "") or "").strip()
        if not phone:
            return 400, "phone is required"
        try:
            nudged = self.engine.check_inactivity(phone, job_id=(job_id or "").strip() or None)
        except Exception as exc:  # noqa: BLE001
            print(f"sms-inactivity-failed phone={phone} error={exc}")
            return 500, "internal error"
        print(f"sms-inactivity-checked phone={phone} nudged={nudged}")
        return 200, ""

    def handle_donor_confirmation(self, body: bytes) -> tuple[int, str]:
        payload = _load_json_object(body)
        if payload is None:
            return 400, "invalid json payload"
        name = str(payload.get("name", "") or "").strip()
        amount = str(payload.get("amount", "") or "").strip()
        raw_phone = str(payload.get("phoneNumber", "") or "").strip()
        if not name or not amount or not raw_phone:
            return 400, "missing required fields: name, amount, phoneNumber"
        try:
            phone = normalize_donor_phone(raw_phone)
        except ValueError as exc:
            print(f"donor-confirmation-invalid-phone phone={raw_phone} error={exc}")
            return 400, f"invalid phone number format: {exc}"

        try:
            receipt = self.gateway.send(phone, message_templates.build_donor_thank_you(name, amount))
        except Exception as exc:  # noqa: BLE001
            print(f"donor-confirmation-failed phone={phone} error={exc}")
            return 500, "internal error"
        print(f"donor-confirmation-sent phone={phone} message_id={receipt.message_id}")
        return 200, ""

    def _handle_inbound(self, phone: str, text: str, event_id: str) -> tuple[int, str]:
        sender = phone.strip()
        if not sender or not text.strip():
            return 400, "from and body are required"
        marked = False
        try:
            if event_id:
                if not self.store.mark_event_processed(event_id):
                    print(f"sms-webhook-duplicate phone={sender} event_id={event_id}")
                    return 200, ""
                marked = True
            self.engine.handle_inbound(sender, text)
        except SessionStoreError as exc:
            print(f"sms-webhook-store-error phone={sender} error={exc}")
            return self._fail(sender, event_id if marked else "")
        except Exception as exc:  # noqa: BLE001
            print(f"sms-webhook-failed phone={sender} error={exc}")
            return self._fail(sender, event_id if marked else "")
        return 200, ""

    def _fail(self, phone: str, event_id: str) -> tuple[int, str]:
        # A failed delivery must stay retryable under the same event id.
        if event_id:
            try:
                self.store.release_event(event_id)
            except SessionStoreError as exc:
                print(f"sms-webhook-event-release-failed event_id={event_id} error={exc}")
        self._send_apology(phone)
        return 500, "internal error"

    def _send_apology(self, phone: str) -> None:
        try:
            self.gateway.send(phone, message_templates.GENERIC_ERROR)
        except Exception as exc:  # noqa: BLE001
            print(f"sms-apology-failed phone={phone} error={exc}")


def _load_json_object(body: bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None
