"""
SQLAlchemy integration — transactional ledger table.

Usage:
    engine = create_async_engine("postgresql+asyncpg://...")
    await create_ledger_schema(engine)

    ledger = SQLAlchemyLedger(async_sessionmaker(engine, expire_on_commit=False))
    result = await ledger.begin(OrderKey("SO-1", "i-1"), payload_hash)

Locking:
    begin() reads the row with SELECT ... FOR UPDATE inside one transaction
    and performs its insert/update before commit. Dialects without row locks
    (SQLite) still serialize same-key callers of one process through the
    in-process keyed lock; a cross-process insert race surfaces as an
    IntegrityError and the decision is re-evaluated against the winner's row.
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import DateTime, String, Text, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kungfu import Result, Ok, Error

from salesbridge.order import OrderKey
from salesbridge.ledger._types import (
    BeginCode,
    BeginResult,
    LedgerEntry,
    LedgerError,
    LedgerStatus,
)
from salesbridge.ledger._policy import LedgerPolicy
from salesbridge.ledger._decision import Action, decide, new_entry
from salesbridge.ledger._locks import KeyedLock
from salesbridge.ledger._store import Clock


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Table
# ═══════════════════════════════════════════════════════════════════════════════


class LedgerBase(DeclarativeBase):
    pass


class OrderLedgerTable(LedgerBase):
    """
    One row per (external_order_id, instance_id).

    The composite primary key is the uniqueness anchor for the whole
    integration.
    """

    __tablename__ = "order_ledger"

    external_order_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    instance_id: Mapped[str] = mapped_column(String(100), primary_key=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payload_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    external_doc_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    external_doc_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    processing_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "OrderLedgerTable":
        return cls(
            external_order_id=entry.key.external_order_id,
            instance_id=entry.key.instance_id,
            status=entry.status.value,
            payload_hash=entry.payload_hash,
            external_doc_id=entry.external_doc_id,
            external_doc_number=entry.external_doc_number,
            error_message=entry.error_message,
            processing_at=entry.processing_at,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(
            key=OrderKey(self.external_order_id, self.instance_id),
            status=LedgerStatus(self.status.upper()),
            payload_hash=self.payload_hash,
            external_doc_id=self.external_doc_id,
            external_doc_number=self.external_doc_number,
            error_message=self.error_message,
            processing_at=self.processing_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


async def create_ledger_schema(engine: AsyncEngine) -> None:
    """Create the ledger table if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(LedgerBase.metadata.create_all)


def _matches(key: OrderKey) -> tuple[Any, Any]:
    return (
        OrderLedgerTable.external_order_id == key.external_order_id,
        OrderLedgerTable.instance_id == key.instance_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyLedger:
    """
    Ledger backed by the order_ledger table.

    Each operation opens its own session; begin() is the only operation
    that holds a lock across statements.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: LedgerPolicy | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._session_factory = session_factory
        self._policy = policy or LedgerPolicy()
        self._clock = clock
        self._locks = KeyedLock()

    async def begin(
        self, key: OrderKey, payload_hash: str
    ) -> Result[BeginResult, LedgerError]:
        """Run the decision table inside one locked transaction."""
        async with self._locks.hold(key.token):
            try:
                return Ok(await self._begin(key, payload_hash, allow_insert=True))
            except IntegrityError:
                pass
            except Exception as e:
                return Error(LedgerError(f"Failed to begin: {e}", e))

            # Lost an insert race to another process: decide again on its row.
            try:
                return Ok(await self._begin(key, payload_hash, allow_insert=False))
            except Exception as e:
                return Error(LedgerError(f"Failed to begin: {e}", e))

    async def _begin(
        self, key: OrderKey, payload_hash: str, *, allow_insert: bool
    ) -> BeginResult:
        async with self._session_factory() as session:
            async with session.begin():
                stmt = select(OrderLedgerTable).where(*_matches(key)).with_for_update()
                row = (await session.execute(stmt)).scalar_one_or_none()

                now = self._clock()
                entry = row.to_entry() if row is not None else None
                decision = decide(entry, payload_hash, now, self._policy)

                match decision.action:
                    case Action.INSERT if allow_insert:
                        session.add(OrderLedgerTable.from_entry(new_entry(key, payload_hash, now)))
                    case Action.INSERT:
                        return BeginResult(BeginCode.IN_PROGRESS, payload_hash)
                    case Action.RESTART if row is not None:
                        row.status = LedgerStatus.PROCESSING.value
                        row.payload_hash = payload_hash
                        row.error_message = None
                        row.processing_at = now
                        row.updated_at = now
                    case _:
                        pass

            return decision.result

    async def finalize_created(
        self, key: OrderKey, external_doc_id: str, external_doc_number: str
    ) -> Result[None, LedgerError]:
        """Mark record as created."""
        return await self._update(
            key,
            status=LedgerStatus.CREATED.value,
            external_doc_id=external_doc_id,
            external_doc_number=external_doc_number,
            error_message=None,
        )

    async def finalize_failed(
        self, key: OrderKey, error_message: str
    ) -> Result[None, LedgerError]:
        """Mark record as failed."""
        return await self._update(
            key,
            status=LedgerStatus.FAILED.value,
            error_message=self._policy.clip_error(error_message),
        )

    async def _update(self, key: OrderKey, **values: Any) -> Result[None, LedgerError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(OrderLedgerTable)
                    .where(*_matches(key))
                    .where(OrderLedgerTable.status == LedgerStatus.PROCESSING.value)
                    .values(updated_at=self._clock(), **values)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()

                if cursor.rowcount == 0:
                    return Error(LedgerError(f"No PROCESSING ledger entry for key: {key}"))
                return Ok(None)

        except Exception as e:
            return Error(LedgerError(f"Failed to update {key}: {e}", e))

    async def get(self, key: OrderKey) -> Result[LedgerEntry | None, LedgerError]:
        """Get entry by key."""
        try:
            async with self._session_factory() as session:
                stmt = select(OrderLedgerTable).where(*_matches(key))
                row = (await session.execute(stmt)).scalar_one_or_none()
                return Ok(row.to_entry() if row is not None else None)

        except Exception as e:
            return Error(LedgerError(f"Failed to get: {e}", e))


__all__ = (
    "LedgerBase",
    "OrderLedgerTable",
    "SQLAlchemyLedger",
    "create_ledger_schema",
)
