"""
Widget Embed — Attribute Codecs

Per-attribute (de)serializers between wire values and model attribute
values. A model class lists its codecs in `serializers`; attributes without
one pass through unchanged.

Every codec follows the same rules:
  - a null wire value deserializes to None, and None serializes to null
  - serialization is defined in absolute terms (UTC for dates), never in
    terms of the observer's local zone
  - deserialize(serialize(x)) == x at the codec's granularity
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any, Callable

from widget_embed.types import MODEL_REF_PREFIX, ModelRef

# ---------------------------------------------------------------------------
# Codec pair
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttributeCodec:
    """A serialize/deserialize pair for one attribute type."""

    name: str
    serialize: Callable[[Any], Any]
    deserialize: Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


IDENTITY_CODEC = AttributeCodec("identity", _identity, _identity)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def serialize_date(value: date | datetime | None) -> dict[str, int] | None:
    """
    Serialize a date to {year, month, date} using UTC calendar fields.

    Month is zero-based. Time of day is dropped. A naive datetime is taken
    as already being in UTC. Years below 100 are kept as-is (5 stays 5).
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        else:
            value = value.astimezone(UTC)
    elif not isinstance(value, date):
        raise TypeError(f"Cannot serialize {type(value).__name__} as a date")

    return {
        "year": value.year,
        "month": value.month - 1,
        "date": value.day,
    }


def deserialize_date(value: dict[str, Any] | None) -> datetime | None:
    """
    Deserialize {year, month, date} to midnight UTC of that calendar day.
    Raises ValueError for a malformed wire value.
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        raise ValueError(f"Date wire value must be an object, got {type(value).__name__}")

    parts: list[int] = []
    for key in ("year", "month", "date"):
        part = value.get(key)
        if not isinstance(part, int) or isinstance(part, bool):
            raise ValueError(f"Date wire value requires integer '{key}'")
        parts.append(part)

    year, month, day = parts
    return datetime(year, month + 1, day, tzinfo=UTC)


DATE_CODEC = AttributeCodec("date", serialize_date, deserialize_date)


# ---------------------------------------------------------------------------
# Model references
# ---------------------------------------------------------------------------


def unpack_models(value: Any) -> Any:
    """
    Replace "IPY_MODEL_<id>" strings with ModelRef keys, recursively
    through lists and dicts. Other values are returned unchanged.
    """
    if isinstance(value, str):
        if value.startswith(MODEL_REF_PREFIX):
            return ModelRef(value[len(MODEL_REF_PREFIX):])
        return value
    if isinstance(value, list):
        return [unpack_models(v) for v in value]
    if isinstance(value, dict):
        return {k: unpack_models(v) for k, v in value.items()}
    return value


def pack_models(value: Any) -> Any:
    """Inverse of unpack_models. Accepts ModelRef keys or live models."""
    if isinstance(value, ModelRef):
        return value.to_wire()
    model_id = getattr(value, "model_id", None)
    if isinstance(model_id, str) and hasattr(value, "get_state"):
        return f"{MODEL_REF_PREFIX}{model_id}"
    if isinstance(value, list):
        return [pack_models(v) for v in value]
    if isinstance(value, dict):
        return {k: pack_models(v) for k, v in value.items()}
    return value


REFERENCE_CODEC = AttributeCodec("reference", pack_models, unpack_models)


def iter_refs(value: Any):
    """Yield every ModelRef contained in a deserialized value."""
    if isinstance(value, ModelRef):
        yield value
    elif isinstance(value, list):
        for v in value:
            yield from iter_refs(v)
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_refs(v)
