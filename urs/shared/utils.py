from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Sequence, TypeVar

T = TypeVar("T")

SIAR_PREFIX = "SIAR-"


def siar_code(source_id: Any) -> str:
    """External code used to recognise rows migrated from SIAR, e.g. ``SIAR-1042``."""
    return f"{SIAR_PREFIX}{source_id}"


def siar_id_from_code(code: str | None) -> str | None:
    if not code or not code.startswith(SIAR_PREFIX):
        return None
    return code[len(SIAR_PREFIX):]


def blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def json_safe(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        # Preserve exactness for auditability.
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    return str(value)
