"""
SQLAlchemy master-data reader.

Table and column names are configurable; the defaults are the business
partner, sales employee, warehouse and item master tables of the
downstream ERP database.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import column, func, literal, select, table
from sqlalchemy.sql.expression import TableClause
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@dataclass(frozen=True, slots=True)
class MasterTable:
    name: str
    key_column: str

    def clause(self) -> TableClause:
        return table(self.name, column(self.key_column))


@dataclass(frozen=True, slots=True)
class MasterDataTables:
    customers: MasterTable = MasterTable("OCRD", "CardCode")
    salespeople: MasterTable = MasterTable("OSLP", "SlpCode")
    warehouses: MasterTable = MasterTable("OWHS", "WhsCode")
    items: MasterTable = MasterTable("OITM", "ItemCode")


class SQLAlchemyMasterData:
    """
    Read-only existence checks with plain SELECTs.

    Item lookups are chunked so large orders stay under driver parameter
    limits.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tables: MasterDataTables | None = None,
        chunk_size: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._tables = tables or MasterDataTables()
        self._chunk_size = chunk_size

    async def _exists(self, spec: MasterTable, value: object) -> bool:
        t = spec.clause()
        stmt = select(literal(1)).select_from(t).where(t.c[spec.key_column] == value).limit(1)
        async with self._session_factory() as session:
            return (await session.execute(stmt)).first() is not None

    async def customer_exists(self, code: str) -> bool:
        return await self._exists(self._tables.customers, code)

    async def salesperson_exists(self, code: int) -> bool:
        return await self._exists(self._tables.salespeople, code)

    async def warehouse_exists(self, code: str) -> bool:
        return await self._exists(self._tables.warehouses, code)

    async def existing_items(self, codes: Sequence[str]) -> set[str]:
        spec = self._tables.items
        t = spec.clause()
        key = t.c[spec.key_column]

        wanted = {c.casefold(): c for c in codes}
        found: set[str] = set()

        async with self._session_factory() as session:
            folded = list(wanted)
            for start in range(0, len(folded), self._chunk_size):
                chunk = folded[start : start + self._chunk_size]
                stmt = select(key).where(func.lower(key).in_(chunk))
                for (value,) in (await session.execute(stmt)).all():
                    original = wanted.get(str(value).casefold())
                    if original is not None:
                        found.add(original)

        return found


__all__ = (
    "MasterTable",
    "MasterDataTables",
    "SQLAlchemyMasterData",
)
