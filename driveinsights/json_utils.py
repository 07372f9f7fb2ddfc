"""Shared JSON sanitisation utilities.

Analysis results are plain dataclasses with ``to_dict()``; these helpers turn
them (or any nested structure of them) into strict JSON for the calling
layer.
"""

from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Any

__all__ = [
    "safe_json_dumps",
    "sanitize_for_json",
    "sanitize_value",
]

LOGGER = logging.getLogger(__name__)


def sanitize_for_json(obj: Any) -> tuple[Any, bool]:
    """Recursively replace non-finite floats (NaN, Inf, -Inf) with ``None``.

    Objects exposing ``to_dict()`` are expanded, enums collapse to their
    value and tuples become lists, so the result is always plain-Python and
    serialisable with ``json.dumps(allow_nan=False)``.

    Returns the sanitised object and a boolean flag indicating whether any
    non-finite value was encountered.
    """
    found_non_finite = False

    def _walk(v: Any) -> Any:
        nonlocal found_non_finite
        if hasattr(v, "to_dict") and callable(v.to_dict):
            v = v.to_dict()
        if isinstance(v, Enum):
            return v.value
        if isinstance(v, float):
            if math.isfinite(v):
                return v
            found_non_finite = True
            return None
        if isinstance(v, dict):
            return {str(k.value if isinstance(k, Enum) else k): _walk(val) for k, val in v.items()}
        if isinstance(v, (list, tuple)):
            return [_walk(item) for item in v]
        return v

    cleaned = _walk(obj)
    return cleaned, found_non_finite


def sanitize_value(value: Any) -> Any:
    """Sanitise *value* for JSON, discarding the non-finite flag."""
    cleaned, had_non_finite = sanitize_for_json(value)
    if had_non_finite:
        LOGGER.debug("Replaced non-finite values with null while serialising %s", type(value))
    return cleaned


def safe_json_dumps(value: Any, *, indent: int | None = None) -> str:
    """Sanitise *value* and serialise to a JSON string.

    Combines :func:`sanitize_value` with ``json.dumps`` using safe
    defaults (``allow_nan=False``, ``ensure_ascii=False``).
    """
    return json.dumps(sanitize_value(value), ensure_ascii=False, allow_nan=False, indent=indent)
