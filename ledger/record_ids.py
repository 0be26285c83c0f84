from __future__ import annotations

import random
import time

RECORD_ID_PREFIX = "D-"


def generate_record_id(now_ms: int | None = None, rand: random.Random | None = None) -> str:
    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    suffix = (rand or random).randrange(1000)
    return f"{RECORD_ID_PREFIX}{str(millis)[-6:]}-{suffix:03d}"
