"""
Begin decision table — shared by every ledger backend.

Evaluated in order, under the key's exclusive lock:

    1. no entry                         → INSERT   → STARTED
    2. stored hash differs              → nothing  → CONFLICT_HASH
    3. CREATED                          → nothing  → DUPLICATE_CREATED
    4. PROCESSING (stale, if enabled)   → RESTART  → STARTED
       PROCESSING                       → nothing  → IN_PROGRESS
    5. FAILED                           → RESTART  → STARTED
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto

from salesbridge.order import OrderKey
from salesbridge.ledger._types import (
    BeginCode,
    BeginResult,
    LedgerEntry,
    LedgerStatus,
)
from salesbridge.ledger._policy import LedgerPolicy


class Action(Enum):
    """Write the backend must perform before committing its transaction."""

    NONE = auto()
    INSERT = auto()
    RESTART = auto()


@dataclass(frozen=True, slots=True)
class Decision:
    action: Action
    result: BeginResult


def hashes_conflict(stored: str | None, given: str) -> bool:
    """A blank stored hash never conflicts; comparison ignores case."""
    if stored is None or not stored.strip():
        return False
    return stored.casefold() != given.casefold()


def decide(
    entry: LedgerEntry | None,
    payload_hash: str,
    now: datetime,
    policy: LedgerPolicy,
) -> Decision:
    if entry is None:
        return Decision(Action.INSERT, BeginResult(BeginCode.STARTED, payload_hash))

    if hashes_conflict(entry.payload_hash, payload_hash):
        return Decision(
            Action.NONE,
            BeginResult(
                BeginCode.CONFLICT_HASH,
                entry.payload_hash,
                entry.external_doc_id,
                entry.external_doc_number,
            ),
        )

    match entry.status:
        case LedgerStatus.CREATED:
            return Decision(
                Action.NONE,
                BeginResult(
                    BeginCode.DUPLICATE_CREATED,
                    entry.payload_hash or payload_hash,
                    entry.external_doc_id,
                    entry.external_doc_number,
                ),
            )
        case LedgerStatus.PROCESSING if not policy.is_stale(entry.processing_at, now):
            return Decision(
                Action.NONE,
                BeginResult(BeginCode.IN_PROGRESS, entry.payload_hash or payload_hash),
            )
        case _:
            return Decision(Action.RESTART, BeginResult(BeginCode.STARTED, payload_hash))


def new_entry(key: OrderKey, payload_hash: str, now: datetime) -> LedgerEntry:
    return LedgerEntry(
        key=key,
        status=LedgerStatus.PROCESSING,
        payload_hash=payload_hash,
        external_doc_id=None,
        external_doc_number=None,
        error_message=None,
        processing_at=now,
        created_at=now,
        updated_at=now,
    )


def restarted(entry: LedgerEntry, payload_hash: str, now: datetime) -> LedgerEntry:
    return replace(
        entry,
        status=LedgerStatus.PROCESSING,
        payload_hash=payload_hash,
        error_message=None,
        processing_at=now,
        updated_at=now,
    )


__all__ = (
    "Action",
    "Decision",
    "decide",
    "hashes_conflict",
    "new_entry",
    "restarted",
)
