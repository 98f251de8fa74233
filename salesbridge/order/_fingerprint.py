"""
Content fingerprint — SHA-256 over a canonical serialization of an order.

Canonical form:
    - dataclasses become objects keyed by field name, keys sorted
    - Decimal is written in plain positional notation without trailing zeros
      (Decimal("10.50") and Decimal("1.05E+1") both become "10.5")
    - tuples/lists keep their order (line order is content)
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal
from typing import Any

from salesbridge.order._types import OrderRequest


def _number(value: Decimal) -> str:
    if value.is_nan() or value.is_infinite():
        return str(value)
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "0") else text


def _canonical(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _canonical(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Decimal):
        return _number(value)
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return _number(Decimal(str(value)))
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    raise TypeError(f"Cannot fingerprint value of type {type(value).__name__}")


def canonical_json(order: OrderRequest) -> str:
    """Stable JSON text for an order."""
    return json.dumps(
        _canonical(order),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(order: OrderRequest) -> str:
    """
    Deterministic hex digest of client-supplied order content.

    Example:
        h = fingerprint(envelope.order)
        assert h == fingerprint(envelope.order)
    """
    return hashlib.sha256(canonical_json(order).encode("utf-8")).hexdigest()


__all__ = ("canonical_json", "fingerprint")
