"""
Master-data readers — read-only projection of the downstream reference tables.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol


class MasterDataReader(Protocol):
    """
    Existence checks against downstream master data.

    Note: implementations raise on I/O failure; PreValidator turns that into
    an "unavailable" failure.
    """

    async def customer_exists(self, code: str) -> bool: ...

    async def salesperson_exists(self, code: int) -> bool: ...

    async def warehouse_exists(self, code: str) -> bool: ...

    async def existing_items(self, codes: Sequence[str]) -> set[str]:
        """Subset of `codes` present in the item master (case-insensitive)."""
        ...


def _folded(values: Iterable[str]) -> set[str]:
    return {v.casefold() for v in values}


@dataclass
class MemoryMasterData:
    """In-memory master data, for tests and demos."""

    customers: set[str] = field(default_factory=set[str])
    salespeople: set[int] = field(default_factory=set[int])
    warehouses: set[str] = field(default_factory=set[str])
    items: set[str] = field(default_factory=set[str])
    item_lookups: int = 0

    async def customer_exists(self, code: str) -> bool:
        return code.casefold() in _folded(self.customers)

    async def salesperson_exists(self, code: int) -> bool:
        return code in self.salespeople

    async def warehouse_exists(self, code: str) -> bool:
        return code.casefold() in _folded(self.warehouses)

    async def existing_items(self, codes: Sequence[str]) -> set[str]:
        self.item_lookups += 1
        known = _folded(self.items)
        return {c for c in codes if c.casefold() in known}


__all__ = (
    "MasterDataReader",
    "MemoryMasterData",
)
