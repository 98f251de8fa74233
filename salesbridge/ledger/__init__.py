"""
Ledger — exactly-once-per-key state machine over (external_order_id, instance_id).

    from salesbridge import ledger as L

    ledger = L.MemoryLedger(L.LedgerPolicy().with_stale_after(minutes=30))

    match await ledger.begin(key, payload_hash):
        case Ok(BeginResult(code=BeginCode.STARTED)):
            ...  # commit downstream, then finalize_created / finalize_failed
        case Ok(other):
            ...  # DUPLICATE_CREATED / IN_PROGRESS / CONFLICT_HASH
        case Error(err):
            ...  # storage failure

Lifecycle:

    begin(key, hash)
         │
         ├── no entry ──────────────► PROCESSING   (STARTED)
         ├── hash differs ──────────► unchanged    (CONFLICT_HASH)
         ├── CREATED ───────────────► unchanged    (DUPLICATE_CREATED)
         ├── PROCESSING ────────────► unchanged    (IN_PROGRESS)
         └── FAILED ────────────────► PROCESSING   (STARTED, retry)

    finalize_created ──► CREATED      finalize_failed ──► FAILED
"""

from salesbridge.ledger._types import (
    LedgerStatus,
    LedgerEntry,
    BeginCode,
    BeginResult,
    LedgerError,
)
from salesbridge.ledger._policy import LedgerPolicy
from salesbridge.ledger._decision import (
    Action,
    Decision,
    decide,
    hashes_conflict,
)
from salesbridge.ledger._locks import KeyedLock
from salesbridge.ledger._store import (
    Clock,
    Ledger,
    MemoryLedger,
)
from salesbridge.ledger._sqlalchemy import (
    LedgerBase,
    OrderLedgerTable,
    SQLAlchemyLedger,
    create_ledger_schema,
)

__all__ = (
    # Types
    "LedgerStatus",
    "LedgerEntry",
    "BeginCode",
    "BeginResult",
    "LedgerError",
    # Policy
    "LedgerPolicy",
    # Decision table
    "Action",
    "Decision",
    "decide",
    "hashes_conflict",
    # Store
    "KeyedLock",
    "Clock",
    "Ledger",
    "MemoryLedger",
    # SQLAlchemy
    "LedgerBase",
    "OrderLedgerTable",
    "SQLAlchemyLedger",
    "create_ledger_schema",
)
