"""
Pipeline types — per-item outcome of one commit attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from salesbridge.order import OrderKey
from salesbridge.gateway import CreatedDocument


# ═══════════════════════════════════════════════════════════════════════════════
# Item Code — Terminal Outcome
# ═══════════════════════════════════════════════════════════════════════════════


class ItemCode(Enum):
    """
    Terminal outcome of one batch item.

        CREATED                 committed now
        DUPLICATE               committed earlier, cached identifiers returned
        IN_PROGRESS             another attempt holds the key, retry later
        CONFLICT_HASH           same key, different content, do not retry
        PREVALIDATION_FAILED    master data missing for the order
        MASTERDATA_UNAVAILABLE  master data could not be read
        COMMIT_ERROR            downstream rejected or failed
        VALIDATION              malformed item, ledger never touched
        LEDGER_ERROR            ledger could not start the attempt
        INTERNAL_ERROR          unexpected failure inside the pipeline
    """

    CREATED = "CREATED"
    DUPLICATE = "DUPLICATE"
    IN_PROGRESS = "IN_PROGRESS"
    CONFLICT_HASH = "CONFLICT_HASH"
    PREVALIDATION_FAILED = "PREVALIDATION_FAILED"
    MASTERDATA_UNAVAILABLE = "MASTERDATA_UNAVAILABLE"
    COMMIT_ERROR = "COMMIT_ERROR"
    VALIDATION = "VALIDATION"
    LEDGER_ERROR = "LEDGER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_SUCCESS = frozenset({ItemCode.CREATED, ItemCode.DUPLICATE})


# ═══════════════════════════════════════════════════════════════════════════════
# Item Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ItemResult:
    """
    Result of one batch item.

    message is always safe to show to the caller. Diagnostic detail goes to
    the log and the ledger only.
    """

    code: ItemCode
    key: OrderKey | None = None
    payload_hash: str | None = None
    document: CreatedDocument | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.code in _SUCCESS

    @classmethod
    def invalid(cls, message: str, key: OrderKey | None = None) -> ItemResult:
        return cls(ItemCode.VALIDATION, key=key, message=message)

    @classmethod
    def internal(cls, key: OrderKey) -> ItemResult:
        return cls(
            ItemCode.INTERNAL_ERROR,
            key=key,
            message="Unexpected error while processing the order",
        )


__all__ = (
    "ItemCode",
    "ItemResult",
)
