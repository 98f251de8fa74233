"""
Gateway types — the fixed contract in front of the downstream system.

    normalized order in → CreatedDocument(doc_id, doc_number) out
                        → GatewayError raised otherwise
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from salesbridge.order import OrderKey, OrderRequest


@dataclass(frozen=True, slots=True)
class CreatedDocument:
    """Opaque identifiers of the created downstream document."""

    doc_id: str
    doc_number: str


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayError(Exception):
    """
    Base downstream failure.

    detail: full diagnostic text, for logs and the ledger only.
    public_message: summary that is safe to return to the caller.
    outcome_known: False when the order may or may not have been created.
    """

    public_message = "Downstream commit failed"
    outcome_known = True

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class DownstreamUnavailable(GatewayError):
    """Session could not be opened; nothing was sent."""

    public_message = "Downstream system is unavailable"


class DownstreamRejected(GatewayError):
    """The downstream system refused the document."""

    public_message = "Downstream system rejected the order"

    def __init__(self, detail: str, code: str | None = None) -> None:
        super().__init__(detail)
        self.code = code


class DownstreamOutcomeUnknown(GatewayError):
    """The request may have been applied; treated as FAILED locally."""

    public_message = "Downstream commit outcome is unknown"
    outcome_known = False


class DownstreamTimeout(DownstreamOutcomeUnknown):
    public_message = "Downstream commit timed out; outcome is unknown"


@dataclass(frozen=True, slots=True)
class CommitFailure:
    """A downstream failure lifted out of the exception channel."""

    public_message: str
    detail: str
    outcome_known: bool
    error_type: str

    @classmethod
    def from_exception(cls, exc: Exception) -> CommitFailure:
        if isinstance(exc, GatewayError):
            return cls(
                public_message=exc.public_message,
                detail=exc.detail,
                outcome_known=exc.outcome_known,
                error_type=type(exc).__name__,
            )
        return cls(
            public_message=GatewayError.public_message,
            detail=f"{type(exc).__name__}: {exc}",
            outcome_known=False,
            error_type=type(exc).__name__,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CommitGateway(Protocol):
    async def create_order(self, key: OrderKey, order: OrderRequest) -> CreatedDocument:
        """Create the order downstream; raises GatewayError on any failure."""
        ...


__all__ = (
    "CreatedDocument",
    "GatewayError",
    "DownstreamUnavailable",
    "DownstreamRejected",
    "DownstreamOutcomeUnknown",
    "DownstreamTimeout",
    "CommitFailure",
    "CommitGateway",
)
