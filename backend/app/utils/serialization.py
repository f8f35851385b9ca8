from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
import json
import math
import uuid


def to_jsonable(value: Any):
    """
    Recursively convert arbitrary Python values into JSON-serializable primitives.
    Pydantic models are dumped with their camelCase aliases.
    """
    if hasattr(value, "model_dump"):
        return to_jsonable(value.model_dump(by_alias=True))
    if isinstance(value, Decimal):
        f = float(value)
        if math.isnan(f) or math.isinf(f):
            return None
        return f
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
    return value


def dump_json(value: Any) -> str:
    """Compact JSON string for a `json` metafield value."""
    return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


def load_json(value: Optional[str], default: Any = None) -> Any:
    """Parse a stored metafield value; unparsable or empty -> default."""
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return default
