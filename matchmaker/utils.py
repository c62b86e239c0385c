"""Shared utility functions used across matchmaker modules."""
from __future__ import annotations

import json
import math
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def json_list(value: str | None) -> list:
    """Parse a JSON column that should hold a list; anything else becomes ``[]``."""
    parsed = json_parse(value, [])
    return parsed if isinstance(parsed, list) else []


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round()`` is banker's rounding)."""
    return int(math.floor(value + 0.5))
