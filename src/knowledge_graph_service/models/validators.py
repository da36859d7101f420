"""Shared Pydantic types and validators for reuse across models.

Centralises observation-shape normalisation, timestamp coercion and
non-empty string constraints so every model speaks the same language.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, PlainSerializer, ValidationError

from ..utils.timestamps import parse_iso, to_iso

# ---------------------------------------------------------------------------
# Observation shape
# ---------------------------------------------------------------------------


def coerce_observation(v: Any) -> Any:
    """Accept the bare-string shorthand for an observation.

    * ``"Built OpenClaw"`` → ``{"text": "Built OpenClaw"}``
    * ``{"text": ..., "expires_at": ...}`` → unchanged
    """
    if isinstance(v, str):
        return {"text": v}
    return v


def coerce_list(v: Any) -> Any:
    """``None`` → ``[]``; anything else is left for normal validation."""
    return [] if v is None else v


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def coerce_datetime(v: Any) -> Any:
    """Parse ISO strings to aware UTC datetimes; empty string means absent."""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        return parse_iso(v)
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


def serialize_datetime(v: datetime | None) -> str | None:
    return to_iso(v) if v is not None else None


OptionalUtcDatetime = Annotated[
    datetime | None,
    BeforeValidator(coerce_datetime),
    PlainSerializer(serialize_datetime, return_type=str | None),
]
"""Optional aware UTC datetime, read from and written as ISO 8601 with a ``Z`` suffix.

The coercion wraps the whole union, so ``""`` and ``None`` both mean absent.
"""


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""Required, non-empty string (entity names, types, relation labels)."""

NonNegativeInt = Annotated[int, Field(ge=0)]


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


def validation_message(error: ValidationError) -> str:
    """Flatten a ValidationError into one caller-readable line."""
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "body"
        if item["type"] == "missing":
            parts.append(f"{loc} is required")
        else:
            parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)
