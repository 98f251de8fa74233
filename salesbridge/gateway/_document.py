"""
Vendor document mapping — normalized order → downstream sales order body.

Header:
    CardCode         default customer
    NumAtCard        external order id (traceability on the downstream side)
    SalesPersonCode  default salesperson
    DocDate          order date, when it parses
Lines:
    ItemCode, Quantity, Price (taken as final), DiscountPercent,
    WarehouseCode (default warehouse, when configured)
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from salesbridge.order import CommitDefaults, OrderKey, OrderRequest

_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%Y/%m/%d",
    "%d-%m-%Y",
)


def parse_order_date(text: str | None) -> date | None:
    if not text or not text.strip():
        return None
    value = text.strip()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _num(value: Decimal) -> float:
    return float(value)


def sales_order_document(
    key: OrderKey, order: OrderRequest, defaults: CommitDefaults
) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "CardCode": defaults.customer_code.strip(),
        "NumAtCard": key.external_order_id,
    }
    salesperson = defaults.salesperson_code.strip()
    if salesperson:
        doc["SalesPersonCode"] = int(salesperson)

    doc_date = parse_order_date(order.order_date)
    if doc_date is not None:
        doc["DocDate"] = doc_date.isoformat()

    warehouse = defaults.warehouse_code.strip()
    lines: list[dict[str, Any]] = []
    for line in order.lines:
        row: dict[str, Any] = {
            "ItemCode": line.product_id.strip(),
            "Quantity": _num(line.quantity),
            "Price": _num(line.price),
            "DiscountPercent": _num(line.discount),
        }
        if warehouse:
            row["WarehouseCode"] = warehouse
        lines.append(row)
    doc["DocumentLines"] = lines

    return doc


__all__ = (
    "parse_order_date",
    "sales_order_document",
)
