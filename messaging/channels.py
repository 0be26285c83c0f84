from __future__ import annotations

from typing import Any, Callable

from core.models import DeliveryReceipt
from io_utils.http_client import HttpClient, HttpRequestError, basic_auth_header
from messaging.base import GatewayError, to_e164

TWILIO_MESSAGES_ENDPOINT = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"
MESSAGECOLLAB_ENDPOINT = "https://messaging.entpher.io/api/v1/sms/{account_id}"
MAX_SMS_CHARS = 1600


class TwilioSmsGateway:
    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        http_client: HttpClient,
        from_number: str = "",
        messaging_service_sid: str = "",
        timeout_sec: float = 10.0,
    ) -> None:
        self.account_sid = account_sid.strip()
        self.auth_token = auth_token.strip()
        self.from_number = from_number.strip()
        self.messaging_service_sid = messaging_service_sid.strip()
        self.http_client = http_client
        self.timeout_sec = timeout_sec

    def send(self, to: str, text: str) -> DeliveryReceipt:
        if not self.account_sid or not self.auth_token:
            raise GatewayError("twilio account_sid and auth_token are required")
        fields = {"To": to_e164(to), "Body": text[:MAX_SMS_CHARS]}
        # A messaging service takes precedence over a fixed sender number.
        if self.messaging_service_sid:
            fields["MessagingServiceSid"] = self.messaging_service_sid
        elif self.from_number:
            fields["From"] = to_e164(self.from_number)
        else:
            raise GatewayError("twilio messaging_service_sid or from_number is required")

        url = TWILIO_MESSAGES_ENDPOINT.format(account_sid=self.account_sid)
        headers = {"Authorization": basic_auth_header(self.account_sid, self.auth_token)}
        try:
            body = self.http_client.post_form(url, fields, headers=headers, timeout_sec=self.timeout_sec)
        except HttpRequestError as exc:
            raise GatewayError(f"twilio send failed: {exc}") from exc
        return DeliveryReceipt(
            platform=self.name,
            message_id=str(body.get("sid", "")),
            status=str(body.get("status", "queued") or "queued"),
        )


class MessageCollabGateway:
    name = "messagecollab"

    def __init__(
        self,
        account_id: str,
        phone_number: str,
        token: str,
        http_client: HttpClient,
        timeout_sec: float = 10.0,
    ) -> None:
        self.account_id = account_id.strip()
        self.phone_number = phone_number.strip()
        self.token = token.strip()
        self.http_client = http_client
        self.timeout_sec = timeout_sec

    def send(self, to: str, text: str) -> DeliveryReceipt:
        if not self.account_id or not self.phone_number or not self.token:
            raise GatewayError("messagecollab account_id, phone_number and token are required")
        payload: dict[str, Any] = {
            "from": _plus_one(self.phone_number),
            "to": _plus_one(to),
            "message": text,
            "displayInPortal": True,
        }
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.token}",
        }
        url = MESSAGECOLLAB_ENDPOINT.format(account_id=self.account_id)
        try:
            body = self.http_client.request_json("POST", url, payload, headers=headers, timeout_sec=self.timeout_sec)
        except HttpRequestError as exc:
            raise GatewayError(f"messagecollab send failed: {exc}") from exc
        return DeliveryReceipt(platform=self.name, message_id=str(body.get("mId", "")), status="sent")


class ConsoleGateway:
    name = "console"

    def __init__(self, writer: Callable[[str], Any] = print) -> None:
        self.writer = writer
        self._counter = 0

    def send(self, to: str, text: str) -> DeliveryReceipt:
        self._counter += 1
        self.writer(text)
        return DeliveryReceipt(platform=self.name, message_id=f"console-{self._counter}", status="delivered")


def _plus_one(phone: str) -> str:
    text = (phone or "").strip()
    return text if text.startswith("+") else f"+1{text}"
