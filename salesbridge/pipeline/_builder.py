"""
Pipeline builder — fluent wiring over the commit graph.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from kungfu import Result

from salesbridge.order import CommitDefaults, OrderEnvelope, OrderKey
from salesbridge.ledger import Ledger, LedgerEntry, LedgerError, MemoryLedger
from salesbridge.prevalidation import PreValidator
from salesbridge.gateway import CommitGateway
from salesbridge.pipeline._types import ItemResult
from salesbridge.pipeline._graph import CommitSpec, run_commit

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Commit Pipeline — Compiled
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class CommitPipeline:
    """
    Exactly-once commit of sale orders keyed by (external_order_id, instance_id).

    Note: each item runs shielded. Cancelling a batch stops it between
    items; the item in flight still reaches a terminal ledger state.
    """

    ledger: Ledger
    prevalidator: PreValidator
    gateway: CommitGateway
    defaults: CommitDefaults

    async def submit(self, envelope: OrderEnvelope) -> ItemResult:
        return await asyncio.shield(self._run(envelope))

    async def submit_batch(self, envelopes: Iterable[OrderEnvelope]) -> list[ItemResult]:
        """Process items one by one; a failing item never stops the rest."""
        return [await self.submit(envelope) for envelope in envelopes]

    async def status(self, key: OrderKey) -> Result[LedgerEntry | None, LedgerError]:
        return await self.ledger.get(key)

    async def _run(self, envelope: OrderEnvelope) -> ItemResult:
        spec = CommitSpec(
            envelope=envelope,
            ledger=self.ledger,
            prevalidator=self.prevalidator,
            gateway=self.gateway,
            defaults=self.defaults,
        )
        try:
            return await run_commit(spec)
        except Exception:
            logger.exception(
                "INTERNAL_ERROR external_order_id=%s instance_id=%s",
                envelope.key.external_order_id,
                envelope.key.instance_id,
            )
            return ItemResult.internal(envelope.key)


# ═══════════════════════════════════════════════════════════════════════════════
# Pipeline Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Pipeline:
    """Fluent pipeline builder."""

    _gateway: CommitGateway
    _ledger: Ledger | None = None
    _prevalidator: PreValidator | None = None
    _defaults: CommitDefaults = CommitDefaults()

    def ledger(self, ledger: Ledger) -> Pipeline:
        """Set the idempotency ledger."""
        return replace(self, _ledger=ledger)

    def prevalidator(self, prevalidator: PreValidator) -> Pipeline:
        """Set the master-data checker."""
        return replace(self, _prevalidator=prevalidator)

    def defaults(self, defaults: CommitDefaults) -> Pipeline:
        """Set default customer / salesperson / warehouse codes."""
        return replace(self, _defaults=defaults)

    def build(self) -> CommitPipeline:
        if self._prevalidator is None:
            raise ValueError("prevalidator() is required")

        ledger: Ledger = self._ledger if self._ledger is not None else MemoryLedger()

        return CommitPipeline(
            ledger=ledger,
            prevalidator=self._prevalidator,
            gateway=self._gateway,
            defaults=self._defaults,
        )


def pipeline(gateway: CommitGateway) -> Pipeline:
    """
    Start building a commit pipeline.

    Example:
        commits = (
            P.pipeline(gateway)
            .ledger(L.SQLAlchemyLedger(session_factory))
            .prevalidator(V.PreValidator(V.SQLAlchemyMasterData(masterdata)))
            .defaults(settings.commit_defaults())
            .build()
        )
        results = await commits.submit_batch(envelopes)
    """
    return Pipeline(_gateway=gateway)


__all__ = (
    "CommitPipeline",
    "Pipeline",
    "pipeline",
)
