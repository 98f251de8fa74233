"""
Keyed lock — in-process mutual exclusion scoped to a single key.

Slots are created on first use and dropped when the last holder or waiter
leaves, so the map only grows with concurrently contended keys.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


@dataclass
class _Slot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock:
    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    @asynccontextmanager
    async def hold(self, token: str) -> AsyncIterator[None]:
        slot = self._slots.get(token)
        if slot is None:
            slot = self._slots[token] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[token]

    def __len__(self) -> int:
        return len(self._slots)


__all__ = ("KeyedLock",)
