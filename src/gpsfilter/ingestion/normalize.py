"""Normalization helpers.

Centralizes defensive parsing of coordinates and timestamps.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def coordinate_value(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None``.

    Only real numbers qualify.  Numeric strings and booleans are rejected:
    a position whose coordinates are not numbers is malformed, not
    something to guess at.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    result = float(value)
    if not math.isfinite(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def parse_timestamp_millis(value: Any) -> int | None:
    """Convert a timestamp to epoch milliseconds.

    - ``int``/``float``: already epoch milliseconds
    - ``datetime``: converted, naive values are taken as UTC
    - ``str``: ISO-8601 as sent in Signal K ``updates[].timestamp``

    Returns ``None`` when the value cannot be interpreted.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        moment = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return int(round(moment.timestamp() * 1000))
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parse_timestamp_millis(moment)
    return None
