"""
Order types — normalized, client-supplied sale order content.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


# ═══════════════════════════════════════════════════════════════════════════════
# Order Key — Idempotency Identity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderKey:
    """
    Composite idempotency identity.

    external_order_id: order identifier in the source system.
    instance_id: delivery-attempt identifier.
    """

    external_order_id: str
    instance_id: str

    @property
    def token(self) -> str:
        """Single-string form, used for in-process lock sharding."""
        return f"{self.external_order_id}\x1f{self.instance_id}"

    def __str__(self) -> str:
        return f"{self.external_order_id}/{self.instance_id}"


# ═══════════════════════════════════════════════════════════════════════════════
# Order Request — Normalized Payload
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CustomerRef:
    customer_id: str | None = None
    name: str | None = None
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class OrderLine:
    """
    One sale line.

    Note: quantity > 0 and 0 <= discount <= 100 are enforced at the wire
    boundary; price is taken as the final unit price.
    """

    product_id: str
    quantity: Decimal
    price: Decimal
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """
    Normalized sale order.

    Header totals are carried as received; the downstream system
    recomputes its own totals.
    """

    order_date: str
    customer: CustomerRef
    lines: tuple[OrderLine, ...]
    warehouse_code: str | None = None
    seller_id: int | None = None
    warehouse_id: int | None = None
    extra_expense: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    def product_codes(self) -> list[str]:
        """Distinct non-blank product codes, case-insensitive, first spelling wins."""
        seen: set[str] = set()
        codes: list[str] = []
        for line in self.lines:
            code = (line.product_id or "").strip()
            if not code or code.casefold() in seen:
                continue
            seen.add(code.casefold())
            codes.append(code)
        return codes


@dataclass(frozen=True, slots=True)
class OrderEnvelope:
    """One inbound batch item: identity + business object."""

    key: OrderKey
    order: OrderRequest


# ═══════════════════════════════════════════════════════════════════════════════
# Defaults — Explicit Commit Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CommitDefaults:
    """
    Master-data defaults applied uniformly to every order.

    Note: salesperson_code stays textual here; pre-validation reports a
    non-numeric value as a configuration failure.
    """

    customer_code: str = ""
    salesperson_code: str = ""
    warehouse_code: str = ""


__all__ = (
    "OrderKey",
    "CustomerRef",
    "OrderLine",
    "OrderRequest",
    "OrderEnvelope",
    "CommitDefaults",
)
