"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from decimal import Decimal

from salesbridge.order import (
    CommitDefaults,
    CustomerRef,
    OrderEnvelope,
    OrderKey,
    OrderLine,
    OrderRequest,
)
from salesbridge.gateway import CreatedDocument, DownstreamRejected


# Orders
def order(*codes: str, quantity: str = "1", price: str = "10") -> OrderRequest:
    return OrderRequest(
        order_date="2024-05-01",
        customer=CustomerRef(customer_id="C-1", name="Demo Customer"),
        lines=tuple(
            OrderLine(product_id=c, quantity=Decimal(quantity), price=Decimal(price))
            for c in codes
        ),
    )


def envelope(external_order_id: str, instance_id: str, request: OrderRequest) -> OrderEnvelope:
    return OrderEnvelope(OrderKey(external_order_id, instance_id), request)


# Fake downstream system
@dataclass(slots=True)
class FakeDownstream:
    """Hands out sequential document numbers; `reject` makes every call fail."""

    latency: float = 0.05
    reject: bool = False
    calls: int = 0
    open_sessions: int = 0
    _numbers: itertools.count[int] = field(default_factory=lambda: itertools.count(100))

    def session(self) -> FakeSession:
        return FakeSession(self)


@dataclass(slots=True)
class FakeSession:
    downstream: FakeDownstream

    async def connect(self) -> None:
        self.downstream.open_sessions += 1

    async def create_order(
        self, key: OrderKey, request: OrderRequest, defaults: CommitDefaults
    ) -> CreatedDocument:
        self.downstream.calls += 1
        await asyncio.sleep(self.downstream.latency)
        if self.downstream.reject:
            raise DownstreamRejected(f"(-5002) Invalid document for {key}", code="-5002")
        n = next(self.downstream._numbers)
        return CreatedDocument(doc_id=str(n), doc_number=str(n * 10))

    async def disconnect(self) -> None:
        self.downstream.open_sessions -= 1


DEMO_DEFAULTS = CommitDefaults(customer_code="C0001", salesperson_code="7", warehouse_code="01")


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
