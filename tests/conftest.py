import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from kungfu import Ok, Error
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from salesbridge.order import (
    CommitDefaults,
    CustomerRef,
    OrderEnvelope,
    OrderKey,
    OrderLine,
    OrderRequest,
)
from salesbridge.ledger import create_ledger_schema
from salesbridge.prevalidation import MemoryMasterData
from salesbridge.gateway import CreatedDocument


def unwrap(result):
    match result:
        case Ok(value):
            return value
        case Error(err):
            raise AssertionError(f"unexpected error: {err}")


def make_order(*codes: str, quantity: str = "2", price: str = "10.50", date: str = "2024-05-01") -> OrderRequest:
    return OrderRequest(
        order_date=date,
        customer=CustomerRef(customer_id="C-9", name="Ana", phone="555-0100"),
        lines=tuple(
            OrderLine(product_id=c, quantity=Decimal(quantity), price=Decimal(price))
            for c in codes
        ),
        warehouse_code="01",
    )


def make_envelope(order_id: str, instance_id: str, *codes: str) -> OrderEnvelope:
    return OrderEnvelope(OrderKey(order_id, instance_id), make_order(*codes))


class ManualClock:
    """Deterministic clock for staleness tests."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class RecordingGateway:
    """CommitGateway double: counts calls, optionally fails or stalls."""

    error: Exception | None = None
    delay: float = 0.0
    calls: list[OrderKey] = field(default_factory=list)
    next_id: int = 100

    async def create_order(self, key: OrderKey, order: OrderRequest) -> CreatedDocument:
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        doc = CreatedDocument(doc_id=str(self.next_id), doc_number=str(self.next_id * 10))
        self.next_id += 1
        return doc


@pytest.fixture
def key() -> OrderKey:
    return OrderKey("O1", "I1")


@pytest.fixture
def defaults() -> CommitDefaults:
    return CommitDefaults(customer_code="C0001", salesperson_code="7", warehouse_code="01")


@pytest.fixture
def masterdata() -> MemoryMasterData:
    return MemoryMasterData(
        customers={"C0001"},
        salespeople={7},
        warehouses={"01"},
        items={"A", "B", "C"},
    )


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_ledger_schema(engine)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()
