from __future__ import annotations

import unittest
from typing import Any

from io_utils.http_client import HttpRequestError, basic_auth_header
from messaging.base import GatewayError, normalize_donor_phone, to_e164
from messaging.channels import ConsoleGateway, MessageCollabGateway, TwilioSmsGateway
from messaging.factory import build_message_gateway


class _DummyHttpClient:
    def __init__(self, response: dict[str, Any] | None = None, should_fail: bool = False) -> None:
        self.calls: list[dict[str, Any]] = []
        self.response = response or {}
        self.should_fail = should_fail

    def request_json(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        self.calls.append({"method": method, "url": url, "payload": payload, "headers": dict(headers or {})})
        if self.should_fail:
            raise HttpRequestError("request failed: status=500", status=500)
        return self.response

    def post_form(
        self,
        url: str,
        fields: dict[str, str],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        self.calls.append({"method": "POST", "url": url, "fields": dict(fields), "headers": dict(headers or {})})
        if self.should_fail:
            raise HttpRequestError("request failed: status=400", status=400)
        return self.response


class TwilioSmsGatewayTest(unittest.TestCase):
    def test_send_posts_form_with_basic_auth(self) -> None:
        client = _DummyHttpClient(response={"sid": "SM1", "status": "queued"})
        gateway = TwilioSmsGateway("AC1", "secret", client, from_number="2125550100")

        receipt = gateway.send("2125550000", "hello")

        self.assertEqual(receipt.message_id, "SM1")
        self.assertEqual(receipt.platform, "twilio")
        call = client.calls[0]
        self.assertEqual(call["url"], "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json")
        self.assertEqual(call["fields"], {"To": "+12125550000", "Body": "hello", "From": "+12125550100"})
        self.assertEqual(call["headers"]["Authorization"], basic_auth_header("AC1", "secret"))

    def test_messaging_service_takes_precedence(self) -> None:
        client = _DummyHttpClient(response={"sid": "SM1"})
        gateway = TwilioSmsGateway("AC1", "secret", client, from_number="+12125550100", messaging_service_sid="MG1")
        gateway.send("+12125550000", "hello")
        fields = client.calls[0]["fields"]
        self.assertEqual(fields["MessagingServiceSid"], "MG1")
        self.assertNotIn("From", fields)

    def test_errors(self) -> None:
        with self.assertRaises(GatewayError):
            TwilioSmsGateway("AC1", "secret", _DummyHttpClient()).send("+1", "hello")
        with self.assertRaises(GatewayError):
            TwilioSmsGateway("", "", _DummyHttpClient(), from_number="+1").send("+1", "hello")
        with self.assertRaises(GatewayError):
            TwilioSmsGateway("AC1", "secret", _DummyHttpClient(should_fail=True), from_number="+1").send("+1", "x")


class MessageCollabGatewayTest(unittest.TestCase):
    def test_send_posts_json(self) -> None:
        client = _DummyHttpClient(response={"mId": "42"})
        gateway = MessageCollabGateway("acct", "2125550100", "tok", client)

        receipt = gateway.send("2125550000", "hello")

        self.assertEqual(receipt.message_id, "42")
        call = client.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://messaging.entpher.io/api/v1/sms/acct")
        self.assertEqual(call["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(
            call["payload"],
            {"from": "+12125550100", "to": "+12125550000", "message": "hello", "displayInPortal": True},
        )

    def test_http_failure_raises_gateway_error(self) -> None:
        gateway = MessageCollabGateway("acct", "2125550100", "tok", _DummyHttpClient(should_fail=True))
        with self.assertRaises(GatewayError):
            gateway.send("+12125550000", "hello")


class GatewayFactoryTest(unittest.TestCase):
    def test_build_by_platform(self) -> None:
        config = {
            "sms": {
                "platform": "messagecollab",
                "twilio": {"account_sid": "AC1", "auth_token": "secret", "phone_number": "+12125550100"},
                "messagecollab": {"account_id": "acct", "phone_number": "2125550100", "token": "tok"},
            }
        }
        self.assertIsInstance(build_message_gateway(config, http_client=_DummyHttpClient()), MessageCollabGateway)
        self.assertIsInstance(
            build_message_gateway(config, http_client=_DummyHttpClient(), platform="twilio"),
            TwilioSmsGateway,
        )
        self.assertIsInstance(build_message_gateway(config, platform="console"), ConsoleGateway)

    def test_unknown_platform(self) -> None:
        with self.assertRaises(GatewayError):
            build_message_gateway({"sms": {"platform": "pager"}})

    def test_console_gateway_writes_text(self) -> None:
        lines: list[str] = []
        gateway = ConsoleGateway(writer=lines.append)
        self.assertEqual(gateway.send("+1", "hi").message_id, "console-1")
        self.assertEqual(gateway.send("+1", "again").message_id, "console-2")
        self.assertEqual(lines, ["hi", "again"])

    def test_to_e164(self) -> None:
        self.assertEqual(to_e164("(212) 555-0000"), "+12125550000")
        self.assertEqual(to_e164("12125550000"), "+12125550000")
        self.assertEqual(to_e164("+442071234567"), "+442071234567")

    def test_normalize_donor_phone(self) -> None:
        self.assertEqual(normalize_donor_phone("(212) 555-0000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("1-212-555-0000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("+1 212 555 0000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("+2125550000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("+442071234567"), "+442071234567")
        self.assertEqual(normalize_donor_phone("0012125550000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("9992125550000"), "+12125550000")
        self.assertEqual(normalize_donor_phone("21255500009"), "+11255500009")
        with self.assertRaises(ValueError):
            normalize_donor_phone("555-0000")


if __name__ == "__main__":
    unittest.main()
