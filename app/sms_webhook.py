from __future__ import annotations

import os
from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import PlainTextResponse

from app.config import load_runtime_config
from webhook.handler import (
    DONOR_CONFIRMATION_PATH,
    INACTIVITY_PATH,
    MESSAGECOLLAB_PATH,
    TWILIO_PATH,
    SmsWebhookHandler,
)

DEFAULT_CONFIG_PATH = "config.yaml"

CONFIG_PATH = os.getenv("SMS_CONFIG_PATH", DEFAULT_CONFIG_PATH)
CONFIG = load_runtime_config(CONFIG_PATH)
HANDLER = SmsWebhookHandler(CONFIG)

app = FastAPI(title="SMS Donation Intake Webhook", version="0.1.0")


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    return {"ok": True, "env": str(CONFIG.get("app", {}).get("env", ""))}


@app.post(TWILIO_PATH)
async def twilio_webhook(
    request: Request,
    x_twilio_signature: str | None = Header(default=None),
) -> PlainTextResponse:
    body = await request.body()
    status_code, content = HANDLER.handle_twilio(body=body, signature=x_twilio_signature)
    return PlainTextResponse(status_code=status_code, content=content)


@app.post(MESSAGECOLLAB_PATH)
async def messagecollab_webhook(request: Request) -> PlainTextResponse:
    body = await request.body()
    status_code, content = HANDLER.handle_messagecollab(body=body)
    return PlainTextResponse(status_code=status_code, content=content)


@app.post(INACTIVITY_PATH)
async def check_inactivity(
    request: Request,
    upstash_message_id: str | None = Header(default=None),
) -> PlainTextResponse:
    body = await request.body()
    status_code, content = HANDLER.handle_inactivity(body=body, job_id=upstash_message_id)
    return PlainTextResponse(status_code=status_code, content=content)


@app.post(DONOR_CONFIRMATION_PATH)
async def donor_confirmation(request: Request) -> PlainTextResponse:
    body = await request.body()
    status_code, content = HANDLER.handle_donor_confirmation(body=body)
    return PlainTextResponse(status_code=status_code, content=content)
