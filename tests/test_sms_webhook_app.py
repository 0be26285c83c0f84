from __future__ import annotations

import importlib
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient


class SmsWebhookAppTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        base = Path(self._tmp.name)
        config_path = base / "config.yaml"
        config_path.write_text(
            "\n".join(
                [
                    "sms:",
                    "  platform: console",
                    "sessions:",
                    f"  sqlite_path: {base / 'sms.db'}",
                    "ledger:",
                    f"  sqlite_path: {base / 'donations.db'}",
                ]
            ),
            encoding="utf-8",
        )
        with mock.patch.dict("os.environ", {"SMS_CONFIG_PATH": str(config_path)}, clear=True):
            sys.modules.pop("app.sms_webhook", None)
            self.module = importlib.import_module("app.sms_webhook")
        self.client = TestClient(self.module.app)

    def tearDown(self) -> None:
        sys.modules.pop("app.sms_webhook", None)
        self._tmp.cleanup()

    def test_healthz(self) -> None:
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "env": "development"})

    def test_twilio_webhook_acknowledges_with_empty_body(self) -> None:
        response = self.client.post(
            "/api/sms",
            content=b"From=%2B12125550000&Body=Hi&MessageSid=SM1",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "")
        session = self.module.HANDLER.store.get("+12125550000")
        self.assertIsNotNone(session)

    def test_inactivity_requires_phone(self) -> None:
        response = self.client.post("/api/check-inactivity", json={})
        self.assertEqual(response.status_code, 400)

    def test_donor_confirmation_route(self) -> None:
        response = self.client.post(
            "/send-donation-confirmation-to-donor",
            json={"name": "Moshe Cohen", "amount": "$125", "phoneNumber": "212-555-0000"},
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.post("/send-donation-confirmation-to-donor", json={"name": "Moshe Cohen"})
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
