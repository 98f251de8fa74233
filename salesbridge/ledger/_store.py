"""
Ledger store — typed storage protocol.

All methods return Result for explicit error handling.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from salesbridge.order import OrderKey
from salesbridge.ledger._types import (
    BeginResult,
    LedgerEntry,
    LedgerError,
    LedgerStatus,
)
from salesbridge.ledger._policy import LedgerPolicy
from salesbridge.ledger._decision import Action, decide, new_entry, restarted
from salesbridge.ledger._locks import KeyedLock


type Clock = Callable[[], datetime]


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Protocol — Result-based
# ═══════════════════════════════════════════════════════════════════════════════


class Ledger(Protocol):
    """
    Idempotency ledger over (external_order_id, instance_id).

    Note: begin() must hold an exclusive lock on the key across the whole
    read-decide-write sequence, so at most one STARTED is live per key.
    """

    async def begin(
        self, key: OrderKey, payload_hash: str
    ) -> Result[BeginResult, LedgerError]:
        """Atomically start processing or resolve to a cached/contended outcome."""
        ...

    async def finalize_created(
        self, key: OrderKey, external_doc_id: str, external_doc_number: str
    ) -> Result[None, LedgerError]:
        """Mark a PROCESSING entry CREATED; any other state is an Error."""
        ...

    async def finalize_failed(
        self, key: OrderKey, error_message: str
    ) -> Result[None, LedgerError]:
        """Mark a PROCESSING entry FAILED; any other state is an Error."""
        ...

    async def get(self, key: OrderKey) -> Result[LedgerEntry | None, LedgerError]:
        """Read the current entry. Returns Ok(None) if not found."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger — For Testing / Embedded Use
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedger:
    """
    In-memory ledger guarded by a key-sharded lock.

    Note: single process only, nothing survives a restart.
    """

    def __init__(
        self,
        policy: LedgerPolicy | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._entries: dict[OrderKey, LedgerEntry] = {}
        self._locks = KeyedLock()
        self._policy = policy or LedgerPolicy()
        self._clock = clock

    async def begin(
        self, key: OrderKey, payload_hash: str
    ) -> Result[BeginResult, LedgerError]:
        async with self._locks.hold(key.token):
            now = self._clock()
            decision = decide(self._entries.get(key), payload_hash, now, self._policy)

            match decision.action:
                case Action.INSERT:
                    self._entries[key] = new_entry(key, payload_hash, now)
                case Action.RESTART:
                    self._entries[key] = restarted(self._entries[key], payload_hash, now)
                case Action.NONE:
                    pass

            return Ok(decision.result)

    async def finalize_created(
        self, key: OrderKey, external_doc_id: str, external_doc_number: str
    ) -> Result[None, LedgerError]:
        async with self._locks.hold(key.token):
            existing = self._entries.get(key)
            if existing is None or existing.status is not LedgerStatus.PROCESSING:
                return Error(LedgerError(f"No PROCESSING ledger entry for key: {key}"))

            self._entries[key] = replace(
                existing,
                status=LedgerStatus.CREATED,
                external_doc_id=external_doc_id,
                external_doc_number=external_doc_number,
                error_message=None,
                updated_at=self._clock(),
            )
            return Ok(None)

    async def finalize_failed(
        self, key: OrderKey, error_message: str
    ) -> Result[None, LedgerError]:
        async with self._locks.hold(key.token):
            existing = self._entries.get(key)
            if existing is None or existing.status is not LedgerStatus.PROCESSING:
                return Error(LedgerError(f"No PROCESSING ledger entry for key: {key}"))

            self._entries[key] = replace(
                existing,
                status=LedgerStatus.FAILED,
                error_message=self._policy.clip_error(error_message),
                updated_at=self._clock(),
            )
            return Ok(None)

    async def get(self, key: OrderKey) -> Result[LedgerEntry | None, LedgerError]:
        return Ok(self._entries.get(key))


__all__ = (
    "Clock",
    "Ledger",
    "MemoryLedger",
)
