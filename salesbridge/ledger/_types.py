"""
Ledger types — core data structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto

from salesbridge.order import OrderKey


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Status — Order Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class LedgerStatus(Enum):
    """
    Stored status of an order key.

    Lifecycle:
        (none) → PROCESSING → CREATED (terminal, immutable)
                            → FAILED → PROCESSING (retry with same hash)
    """

    PROCESSING = "PROCESSING"
    CREATED = "CREATED"
    FAILED = "FAILED"


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Entry — Stored State
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    One row per OrderKey.

    Note: CREATED implies both document identifiers are set and
    error_message is None. FAILED implies error_message is set.
    """

    key: OrderKey
    status: LedgerStatus
    payload_hash: str | None
    external_doc_id: str | None
    external_doc_number: str | None
    error_message: str | None
    processing_at: datetime | None
    created_at: datetime
    updated_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Begin Result
# ═══════════════════════════════════════════════════════════════════════════════


class BeginCode(Enum):
    """Outcome of Ledger.begin."""

    STARTED = auto()  # Caller owns the key, proceed to commit
    DUPLICATE_CREATED = auto()  # Already created, identifiers attached
    IN_PROGRESS = auto()  # Another attempt holds the key
    CONFLICT_HASH = auto()  # Same key, different content


@dataclass(frozen=True, slots=True)
class BeginResult:
    code: BeginCode
    payload_hash: str | None
    external_doc_id: str | None = None
    external_doc_number: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LedgerError:
    """Ledger storage operation error."""

    message: str
    cause: Exception | None = None


__all__ = (
    "LedgerStatus",
    "LedgerEntry",
    "BeginCode",
    "BeginResult",
    "LedgerError",
)
