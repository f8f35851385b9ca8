from __future__ import annotations
from datetime import datetime, timezone

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    # 2026-10-17T09:00:00.123Z, the format stored in *_timestamp metafields
    return now_utc().isoformat(timespec="milliseconds").replace("+00:00", "Z")
