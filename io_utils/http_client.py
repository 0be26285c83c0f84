from __future__ import annotations

import base64
import json
from typing import Any, Protocol
from urllib import error, parse, request


class HttpRequestError(RuntimeError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HttpClient(Protocol):
    def request_json(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        ...

    def post_form(
        self,
        url: str,
        fields: dict[str, str],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        ...


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class UrllibHttpClient:
    def request_json(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        data = None
        if payload is not None:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = request.Request(url=url, data=data, method=method.upper())
        if data is not None:
            req.add_header("Content-Type", "application/json; charset=utf-8")
        for key, value in (headers or {}).items():
            req.add_header(key, value)
        return self._send(req, timeout_sec)

    def post_form(
        self,
        url: str,
        fields: dict[str, str],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        data = parse.urlencode(fields).encode("utf-8")
        req = request.Request(url=url, data=data, method="POST")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")
        for key, value in (headers or {}).items():
            req.add_header(key, value)
        return self._send(req, timeout_sec)

    def _send(self, req: request.Request, timeout_sec: float) -> dict[str, Any]:
        try:
            with request.urlopen(req, timeout=timeout_sec) as resp:
                status = int(getattr(resp, "status", 200))
                body = resp.read().decode("utf-8", errors="ignore")
        except error.HTTPError as exc:
            try:
                detail = exc.read().decode("utf-8", errors="ignore")
            except Exception:
                detail = ""
            raise HttpRequestError(f"request failed: status={exc.code} body={detail}", status=exc.code) from exc
        except error.URLError as exc:
            raise HttpRequestError(f"request failed: {exc}") from exc

        if status >= 400:
            raise HttpRequestError(f"request failed: status={status}", status=status)
        if not body.strip():
            return {}
        try:
            parsed = json.loads(body)
        except ValueError:
            return {"raw": body}
        return parsed if isinstance(parsed, dict) else {"items": parsed}
