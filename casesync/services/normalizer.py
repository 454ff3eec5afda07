"""
Response envelope decoding.

The Advbox API wraps list payloads inconsistently: a bare array, an object
with a ``data`` list, or an object with an ``items`` list. Payloads are
decoded once into an envelope variant and normalized from there.
"""

from dataclasses import dataclass
from typing import Any, NamedTuple, Union

TOTAL_FIELDS = ("totalCount", "total", "count")


@dataclass(frozen=True)
class BareList:
    items: list[Any]


@dataclass(frozen=True)
class DataWrapped:
    items: list[Any]
    reported_total: int | None = None


@dataclass(frozen=True)
class ItemsWrapped:
    items: list[Any]
    reported_total: int | None = None


@dataclass(frozen=True)
class Unrecognized:
    raw: Any = None


Envelope = Union[BareList, DataWrapped, ItemsWrapped, Unrecognized]


class NormalizedPage(NamedTuple):
    """Uniform ``(items, total_count)`` pair."""

    items: list[Any]
    total_count: int


def _coerce_total(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            return int(value.strip())
        except ValueError:
            # digit strings past the int conversion limit
            return None
    return None


def _find_total(payload: dict[str, Any]) -> int | None:
    for name in TOTAL_FIELDS:
        total = _coerce_total(payload.get(name))
        if total is not None:
            return total
    return None


def decode_envelope(payload: Any) -> Envelope:
    """Classify a decoded JSON value into one of the envelope variants."""
    if isinstance(payload, list):
        return BareList(items=payload)

    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return DataWrapped(items=data, reported_total=_find_total(payload))

        items = payload.get("items")
        if isinstance(items, list):
            return ItemsWrapped(items=items, reported_total=_find_total(payload))

    return Unrecognized(raw=payload)


def reported_total(envelope: Envelope) -> int | None:
    """Total announced by the upstream, or None when it did not send one."""
    if isinstance(envelope, (DataWrapped, ItemsWrapped)):
        return envelope.reported_total
    return None


def normalize_envelope(envelope: Envelope, fallback_total: int = 0) -> NormalizedPage:
    if isinstance(envelope, BareList):
        return NormalizedPage(list(envelope.items), len(envelope.items))

    if isinstance(envelope, (DataWrapped, ItemsWrapped)):
        total = envelope.reported_total
        if total is None:
            total = len(envelope.items)
        return NormalizedPage(list(envelope.items), total)

    return NormalizedPage([], fallback_total)


def normalize(payload: Any, fallback_total: int = 0) -> NormalizedPage:
    """
    Extract ``(items, total_count)`` from any decoded JSON value.

    Never raises: unrecognized shapes degrade to an empty page.
    """
    return normalize_envelope(decode_envelope(payload), fallback_total)
