from __future__ import annotations

from typing import Any
from urllib.parse import quote

from core.enums import Direction, Step
from core.models import DonationRecord, utc_now_iso
from ledger.base import LedgerError, step_cell

SHEETS_SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)
APPEND_ENDPOINT = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}:append"


class GoogleSheetsLedger:
    """Appends donation rows and the message log to a Google spreadsheet.

    Authenticates as a service account; ``private_key`` may carry literal ``\\n``
    sequences as stored in environment variables.
    """

    name = "sheets"

    def __init__(
        self,
        sheet_id: str,
        service_email: str,
        private_key: str,
        donations_range: str = "Donations!A:H",
        messages_range: str = "Messages!A:E",
        timeout_sec: float = 10.0,
        session: Any | None = None,
    ) -> None:
        self.sheet_id = (sheet_id or "").strip()
        self.service_email = (service_email or "").strip()
        self.private_key = (private_key or "").replace("\\n", "\n")
        self.donations_range = (donations_range or "").strip()
        self.messages_range = (messages_range or "").strip()
        self.timeout_sec = float(timeout_sec)
        self._session = session
        if not self.sheet_id:
            raise LedgerError("sheets ledger requires sheet_id")
        if not self.donations_range or not self.messages_range:
            raise LedgerError("sheets ledger requires donations_range and messages_range")

    def _ensure_session(self) -> Any:
        if self._session is not None:
            return self._session
        try:
            from google.auth.transport.requests import AuthorizedSession  # type: ignore
            from google.oauth2 import service_account  # type: ignore
        except Exception as exc:
            raise LedgerError("sheets ledger requires `google-auth` and `requests` packages.") from exc
        if not self.service_email or not self.private_key.strip():
            raise LedgerError("sheets ledger requires service_email and private_key")

        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": self.service_email,
                "private_key": self.private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=list(SHEETS_SCOPES),
        )
        self._session = AuthorizedSession(credentials)
        return self._session

    def append_donation(self, record: DonationRecord) -> None:
        self._append(self.donations_range, record.as_row())

    def append_message(self, phone: str, text: str, direction: Direction, step: Step | None) -> None:
        row = [utc_now_iso(), phone, Direction(direction).value, step_cell(step), text]
        self._append(self.messages_range, row)

    def _append(self, cell_range: str, row: list[str]) -> None:
        session = self._ensure_session()
        url = APPEND_ENDPOINT.format(sheet_id=self.sheet_id, range=quote(cell_range, safe=""))
        try:
            response = session.post(
                url,
                params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
                json={"values": [row]},
                timeout=self.timeout_sec,
            )
        except Exception as exc:  # noqa: BLE001
            raise LedgerError(f"sheets append failed: {exc}") from exc
        status = int(getattr(response, "status_code", 200))
        if status >= 400:
            body = str(getattr(response, "text", ""))[:300]
            raise LedgerError(f"sheets append failed: status={status} body={body}")
