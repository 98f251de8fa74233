"""
Codecs — inbound JSON to domain objects and domain results back to JSON.

Inbound shape (one batch item):

    {
      "externalOrderId": "SO-1001",          # legacy key: "zohoOrderId"
      "instanceId": "attempt-1",
      "businessObject": {
        "Transaction": {
          "date": "2024-05-01", "warehouseCode": "01", "sellerId": 4,
          "Customer": {"CustomerId": "C-9", "Name": "...", "Phone": "..."},
          "SaleItemList": [
            {"ProductId": "A-1", "Quantity": 2, "Price": 10.5, "Discount": 0, "Total": 21}
          ],
          "ExtraExpense": 0, "Subtotal": 21, "IVA": 3.36, "Total": 24.36
        }
      }
    }
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from kungfu import Result, Ok, Error
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from salesbridge.order import (
    CustomerRef,
    OrderEnvelope,
    OrderKey,
    OrderLine,
    OrderRequest,
)
from salesbridge.ledger import LedgerEntry
from salesbridge.gateway import CreatedDocument
from salesbridge.pipeline import ItemResult


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound
# ═══════════════════════════════════════════════════════════════════════════════


class _Inbound(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


class CustomerIn(_Inbound):
    customer_id: str | None = Field(default=None, alias="CustomerId")
    name: str | None = Field(default=None, alias="Name")
    phone: str | None = Field(default=None, alias="Phone")

    def to_domain(self) -> CustomerRef:
        return CustomerRef(customer_id=self.customer_id, name=self.name, phone=self.phone)


class SaleItemIn(_Inbound):
    product_id: str = Field(alias="ProductId", min_length=1)
    quantity: Decimal = Field(alias="Quantity", gt=0)
    price: Decimal = Field(alias="Price")
    discount: Decimal = Field(default=Decimal("0"), alias="Discount", ge=0, le=100)
    total: Decimal = Field(default=Decimal("0"), alias="Total")

    def to_domain(self) -> OrderLine:
        return OrderLine(
            product_id=self.product_id,
            quantity=self.quantity,
            price=self.price,
            discount=self.discount,
            total=self.total,
        )


class TransactionIn(_Inbound):
    date: str = Field(min_length=1)
    warehouse_code: str | None = Field(default=None, alias="warehouseCode")
    seller_id: int | None = Field(default=None, alias="sellerId")
    warehouse_id: int | None = Field(default=None, alias="warehouseId")
    customer: CustomerIn = Field(default_factory=CustomerIn, alias="Customer")
    sale_items: list[SaleItemIn] = Field(alias="SaleItemList", min_length=1)
    extra_expense: Decimal = Field(default=Decimal("0"), alias="ExtraExpense")
    subtotal: Decimal = Field(default=Decimal("0"), alias="Subtotal")
    tax: Decimal = Field(default=Decimal("0"), alias="IVA")
    total: Decimal = Field(default=Decimal("0"), alias="Total")

    def to_domain(self) -> OrderRequest:
        return OrderRequest(
            order_date=self.date,
            customer=self.customer.to_domain(),
            lines=tuple(item.to_domain() for item in self.sale_items),
            warehouse_code=self.warehouse_code,
            seller_id=self.seller_id,
            warehouse_id=self.warehouse_id,
            extra_expense=self.extra_expense,
            subtotal=self.subtotal,
            tax=self.tax,
            total=self.total,
        )


class BusinessObjectIn(_Inbound):
    transaction: TransactionIn = Field(alias="Transaction")


class EnvelopeIn(_Inbound):
    external_order_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("externalOrderId", "zohoOrderId"),
    )
    instance_id: str = Field(min_length=1, validation_alias="instanceId")
    business_object: BusinessObjectIn = Field(validation_alias="businessObject")

    def to_domain(self) -> OrderEnvelope:
        return OrderEnvelope(
            key=OrderKey(self.external_order_id, self.instance_id),
            order=self.business_object.transaction.to_domain(),
        )


def _describe(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors(include_url=False):
        where = ".".join(str(part) for part in err["loc"]) or "item"
        problems.append(f"{where}: {err['msg']}")
    return "; ".join(problems[:10])


def decode_envelope(raw: Any) -> Result[OrderEnvelope, str]:
    """Validate one batch item; Error carries a caller-safe description."""
    try:
        return Ok(EnvelopeIn.model_validate(raw).to_domain())
    except ValidationError as e:
        return Error(_describe(e))


# ═══════════════════════════════════════════════════════════════════════════════
# Outbound
# ═══════════════════════════════════════════════════════════════════════════════


class _Outbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentOut(_Outbound):
    doc_id: str
    doc_number: str

    @classmethod
    def from_domain(cls, dom: CreatedDocument) -> DocumentOut:
        return cls(doc_id=dom.doc_id, doc_number=dom.doc_number)


class ItemOut(_Outbound):
    ok: bool
    code: str
    external_order_id: str | None = None
    instance_id: str | None = None
    payload_hash: str | None = None
    document: DocumentOut | None = None
    message: str | None = None

    @classmethod
    def from_domain(cls, dom: ItemResult) -> ItemOut:
        return cls(
            ok=dom.ok,
            code=dom.code.value,
            external_order_id=dom.key.external_order_id if dom.key else None,
            instance_id=dom.key.instance_id if dom.key else None,
            payload_hash=dom.payload_hash,
            document=DocumentOut.from_domain(dom.document) if dom.document else None,
            message=dom.message,
        )


class BatchOut(_Outbound):
    ok: bool = True
    results: list[ItemOut]

    @classmethod
    def from_domain(cls, dom: list[ItemResult]) -> BatchOut:
        return cls(results=[ItemOut.from_domain(item) for item in dom])


class StatusOut(_Outbound):
    external_order_id: str
    instance_id: str
    status: str
    payload_hash: str | None = None
    document: DocumentOut | None = None
    error_message: str | None = None
    processing_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, dom: LedgerEntry) -> StatusOut:
        document = None
        if dom.external_doc_id is not None and dom.external_doc_number is not None:
            document = DocumentOut(doc_id=dom.external_doc_id, doc_number=dom.external_doc_number)
        return cls(
            external_order_id=dom.key.external_order_id,
            instance_id=dom.key.instance_id,
            status=dom.status.value,
            payload_hash=dom.payload_hash,
            document=document,
            error_message=dom.error_message,
            processing_at=dom.processing_at,
            created_at=dom.created_at,
            updated_at=dom.updated_at,
        )


class ErrorOut(_Outbound):
    ok: bool = False
    code: str
    message: str


__all__ = (
    "CustomerIn",
    "SaleItemIn",
    "TransactionIn",
    "BusinessObjectIn",
    "EnvelopeIn",
    "decode_envelope",
    "DocumentOut",
    "ItemOut",
    "BatchOut",
    "StatusOut",
    "ErrorOut",
)
