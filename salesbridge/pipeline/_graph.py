"""
Commit graph — the per-order protocol as nodnod nodes.

Every side effect sits behind a guard node, so exactly one outcome case can
compose for a given order.

Architecture:
    CommitSpec (injected)
         │
         ▼
    SpecNode ──► FingerprintNode ──► BeginNode (ledger.begin)
                                         │
         ┌──────────────┬────────────────┼────────────────┬──────────────┐
         ▼              ▼                ▼                ▼              ▼
    LedgerErrorNode  DuplicateNode  InProgressNode  ConflictNode   StartedNode
         │              │                │                │              │
         │              │                │                │              ▼
         │              │                │                │     PreValidationNode
         │              │                │                │         │        │
         │              │                │                │         ▼        ▼
         │              │                │                │   RejectedNode  ValidatedNode
         │              │                │                │         │            │
         │              │                │                │         │            ▼
         │              │                │                │         │   CommitAttemptNode
         │              │                │                │         │      │          │
         │              │                │                │         │      ▼          ▼
         │              │                │                │         │  CommittedNode  CommitFailedNode
         └──────────────┴────────────────┴────────────────┴─────────┴──────┴──────────┘
                                         │
                                         ▼
                              CommitOutcome (@polymorphic)
                                         │
                                         ▼
                                  FinalResultNode

Note: no 'from __future__ import annotations', nodnod resolves
dependencies from runtime type hints.
"""

import logging
from dataclasses import dataclass
from functools import cache

from nodnod import NodeError, polymorphic, case

from combinators import lift as L
from kungfu import Result, Ok, Error

from salesbridge import graph as G
from salesbridge.order import CommitDefaults, OrderEnvelope, OrderKey, fingerprint
from salesbridge.ledger import BeginCode, BeginResult, Ledger, LedgerError
from salesbridge.prevalidation import PreValidationFailure, PreValidator
from salesbridge.gateway import CommitFailure, CommitGateway, CreatedDocument
from salesbridge.pipeline._types import ItemCode, ItemResult

logger = logging.getLogger(__name__)

PREVALIDATION_PREFIX = "PREVALIDATION: "


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Spec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CommitSpec:
    """Everything one order needs to go through the commit protocol."""

    envelope: OrderEnvelope
    ledger: Ledger
    prevalidator: PreValidator
    gateway: CommitGateway
    defaults: CommitDefaults

    @property
    def key(self) -> OrderKey:
        return self.envelope.key


async def record_failure(spec: CommitSpec, message: str) -> None:
    """Mark the entry FAILED. A failed write is logged, never raised."""
    key = spec.key
    try:
        written = await spec.ledger.finalize_failed(key, message)
    except Exception:
        logger.exception(
            "LEDGER_WRITE_ERROR external_order_id=%s instance_id=%s",
            key.external_order_id,
            key.instance_id,
        )
        return

    match written:
        case Error(err):
            logger.error(
                "LEDGER_WRITE_ERROR external_order_id=%s instance_id=%s: %s",
                key.external_order_id,
                key.instance_id,
                err.message,
            )
        case Ok(_):
            pass


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class SpecNode:
    def __init__(self, spec: CommitSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: CommitSpec) -> "SpecNode":
        return cls(spec)


@G.node
class FingerprintNode:
    """Content hash of the client-supplied order."""

    def __init__(self, spec: CommitSpec, payload_hash: str) -> None:
        self.spec = spec
        self.payload_hash = payload_hash

    @classmethod
    def __compose__(cls, spec_node: SpecNode) -> "FingerprintNode":
        spec = spec_node.spec
        return cls(spec, fingerprint(spec.envelope.order))


@G.node
class BeginNode:
    """Runs ledger.begin exactly once per order."""

    def __init__(
        self,
        spec: CommitSpec,
        payload_hash: str,
        begin: BeginResult | None,
        ledger_error: LedgerError | None = None,
    ) -> None:
        self.spec = spec
        self.payload_hash = payload_hash
        self.begin = begin
        self.ledger_error = ledger_error

    @classmethod
    async def __compose__(cls, fp: FingerprintNode) -> "BeginNode":
        spec = fp.spec
        result = await spec.ledger.begin(spec.key, fp.payload_hash)

        match result:
            case Ok(begin):
                return cls(spec, fp.payload_hash, begin)
            case Error(err):
                return cls(spec, fp.payload_hash, None, ledger_error=err)


def _expect(node: BeginNode, code: BeginCode) -> BeginResult:
    if node.begin is None:
        raise NodeError("Ledger error")
    if node.begin.code != code:
        raise NodeError(f"Not {code.name}")
    return node.begin


# ═══════════════════════════════════════════════════════════════════════════════
# Begin Outcome Nodes — One per decision-table row
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class LedgerErrorNode:
    def __init__(self, begin: BeginNode, error: LedgerError) -> None:
        self.begin = begin
        self.error = error

    @classmethod
    def __compose__(cls, begin: BeginNode) -> "LedgerErrorNode":
        if begin.ledger_error is None:
            raise NodeError("No ledger error")
        return cls(begin, begin.ledger_error)


@G.node
class DuplicateNode:
    def __init__(self, begin: BeginNode, result: BeginResult) -> None:
        self.begin = begin
        self.result = result

    @classmethod
    def __compose__(cls, begin: BeginNode) -> "DuplicateNode":
        return cls(begin, _expect(begin, BeginCode.DUPLICATE_CREATED))


@G.node
class InProgressNode:
    def __init__(self, begin: BeginNode) -> None:
        self.begin = begin

    @classmethod
    def __compose__(cls, begin: BeginNode) -> "InProgressNode":
        _expect(begin, BeginCode.IN_PROGRESS)
        return cls(begin)


@G.node
class ConflictNode:
    def __init__(self, begin: BeginNode) -> None:
        self.begin = begin

    @classmethod
    def __compose__(cls, begin: BeginNode) -> "ConflictNode":
        _expect(begin, BeginCode.CONFLICT_HASH)
        return cls(begin)


@G.node
class StartedNode:
    """This caller owns the key until it finalizes."""

    def __init__(self, spec: CommitSpec, payload_hash: str) -> None:
        self.spec = spec
        self.payload_hash = payload_hash

    @classmethod
    def __compose__(cls, begin: BeginNode) -> "StartedNode":
        _expect(begin, BeginCode.STARTED)
        return cls(begin.spec, begin.payload_hash)


# ═══════════════════════════════════════════════════════════════════════════════
# Pre-Validation
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class PreValidationNode:
    def __init__(
        self, started: StartedNode, checked: Result[None, PreValidationFailure]
    ) -> None:
        self.started = started
        self.checked = checked

    @classmethod
    async def __compose__(cls, started: StartedNode) -> "PreValidationNode":
        spec = started.spec
        checked = await spec.prevalidator.validate(spec.envelope.order, spec.defaults)
        return cls(started, checked)


@G.node
class RejectedNode:
    def __init__(self, started: StartedNode, failure: PreValidationFailure) -> None:
        self.started = started
        self.failure = failure

    @classmethod
    def __compose__(cls, pre: PreValidationNode) -> "RejectedNode":
        match pre.checked:
            case Error(failure):
                return cls(pre.started, failure)
            case Ok(_):
                raise NodeError("Pre-validation passed")


@G.node
class ValidatedNode:
    def __init__(self, started: StartedNode) -> None:
        self.started = started

    @classmethod
    def __compose__(cls, pre: PreValidationNode) -> "ValidatedNode":
        match pre.checked:
            case Ok(_):
                return cls(pre.started)
            case Error(_):
                raise NodeError("Pre-validation failed")


# ═══════════════════════════════════════════════════════════════════════════════
# Downstream Commit
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CommitAttemptNode:
    """The single downstream call for this attempt."""

    def __init__(
        self, started: StartedNode, attempt: Result[CreatedDocument, CommitFailure]
    ) -> None:
        self.started = started
        self.attempt = attempt

    @classmethod
    async def __compose__(cls, validated: ValidatedNode) -> "CommitAttemptNode":
        spec = validated.started.spec
        attempt = await L.catching_async(
            lambda: spec.gateway.create_order(spec.key, spec.envelope.order),
            on_error=CommitFailure.from_exception,
        )
        return cls(validated.started, attempt)


@G.node
class CommittedNode:
    def __init__(self, started: StartedNode, document: CreatedDocument) -> None:
        self.started = started
        self.document = document

    @classmethod
    def __compose__(cls, attempt: CommitAttemptNode) -> "CommittedNode":
        match attempt.attempt:
            case Ok(document):
                return cls(attempt.started, document)
            case Error(_):
                raise NodeError("Commit failed")


@G.node
class CommitFailedNode:
    def __init__(self, started: StartedNode, failure: CommitFailure) -> None:
        self.started = started
        self.failure = failure

    @classmethod
    def __compose__(cls, attempt: CommitAttemptNode) -> "CommitFailedNode":
        match attempt.attempt:
            case Error(failure):
                return cls(attempt.started, failure)
            case Ok(_):
                raise NodeError("Commit succeeded")


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[ItemResult]
class CommitOutcome:
    """
    Router over the guarded nodes above.

    Note: finalize writes happen here, after the branch is known.
    """

    @case
    def ledger_unavailable(cls, node: LedgerErrorNode) -> ItemResult:
        key = node.begin.spec.key
        logger.error(
            "LEDGER_ERROR external_order_id=%s instance_id=%s: %s",
            key.external_order_id,
            key.instance_id,
            node.error.message,
        )
        return ItemResult(
            ItemCode.LEDGER_ERROR,
            key=key,
            payload_hash=node.begin.payload_hash,
            message="Order ledger is unavailable; retry later",
        )

    @case
    def duplicate(cls, node: DuplicateNode) -> ItemResult:
        key = node.begin.spec.key
        result = node.result
        logger.info(
            "DUPLICATE external_order_id=%s instance_id=%s doc_id=%s",
            key.external_order_id,
            key.instance_id,
            result.external_doc_id,
        )
        return ItemResult(
            ItemCode.DUPLICATE,
            key=key,
            payload_hash=result.payload_hash,
            document=CreatedDocument(
                doc_id=result.external_doc_id or "",
                doc_number=result.external_doc_number or "",
            ),
        )

    @case
    def in_progress(cls, node: InProgressNode) -> ItemResult:
        key = node.begin.spec.key
        logger.info(
            "IN_PROGRESS external_order_id=%s instance_id=%s",
            key.external_order_id,
            key.instance_id,
        )
        return ItemResult(
            ItemCode.IN_PROGRESS,
            key=key,
            payload_hash=node.begin.payload_hash,
            message="Order is already being processed; retry in a few seconds",
        )

    @case
    def conflict(cls, node: ConflictNode) -> ItemResult:
        key = node.begin.spec.key
        logger.warning(
            "CONFLICT_HASH external_order_id=%s instance_id=%s",
            key.external_order_id,
            key.instance_id,
        )
        return ItemResult(
            ItemCode.CONFLICT_HASH,
            key=key,
            payload_hash=node.begin.payload_hash,
            message="Same order key arrived with different content",
        )

    @case
    async def prevalidation_failed(cls, node: RejectedNode) -> ItemResult:
        spec = node.started.spec
        failure = node.failure
        await record_failure(spec, PREVALIDATION_PREFIX + failure.message)
        logger.warning(
            "PREVALIDATION_FAILED external_order_id=%s instance_id=%s: %s",
            spec.key.external_order_id,
            spec.key.instance_id,
            failure.detail or failure.message,
        )
        code = (
            ItemCode.MASTERDATA_UNAVAILABLE
            if failure.unavailable
            else ItemCode.PREVALIDATION_FAILED
        )
        return ItemResult(
            code,
            key=spec.key,
            payload_hash=node.started.payload_hash,
            message=failure.message,
        )

    @case
    async def created(cls, node: CommittedNode) -> ItemResult:
        spec = node.started.spec
        key = spec.key
        doc = node.document
        written = await spec.ledger.finalize_created(key, doc.doc_id, doc.doc_number)

        match written:
            case Error(err):
                # Entry stays PROCESSING: the order exists downstream.
                logger.error(
                    "LEDGER_WRITE_ERROR external_order_id=%s instance_id=%s "
                    "doc_id=%s doc_number=%s: %s",
                    key.external_order_id,
                    key.instance_id,
                    doc.doc_id,
                    doc.doc_number,
                    err.message,
                )
            case Ok(_):
                pass

        logger.info(
            "CREATED external_order_id=%s instance_id=%s doc_id=%s doc_number=%s",
            key.external_order_id,
            key.instance_id,
            doc.doc_id,
            doc.doc_number,
        )
        return ItemResult(
            ItemCode.CREATED,
            key=key,
            payload_hash=node.started.payload_hash,
            document=doc,
        )

    @case
    async def commit_error(cls, node: CommitFailedNode) -> ItemResult:
        spec = node.started.spec
        failure = node.failure
        await record_failure(spec, f"{failure.error_type}: {failure.detail}")
        logger.error(
            "COMMIT_ERROR external_order_id=%s instance_id=%s outcome_known=%s %s: %s",
            spec.key.external_order_id,
            spec.key.instance_id,
            failure.outcome_known,
            failure.error_type,
            failure.detail,
        )
        return ItemResult(
            ItemCode.COMMIT_ERROR,
            key=spec.key,
            payload_hash=node.started.payload_hash,
            message=failure.public_message,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalResultNode:
    def __init__(self, result: ItemResult) -> None:
        self.result = result

    @classmethod
    def __compose__(cls, outcome: CommitOutcome) -> "FinalResultNode":
        return cls(outcome.value)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


@cache
def commit_graph() -> G.Compiled[FinalResultNode]:
    return G.graph(FinalResultNode)


async def run_commit(spec: CommitSpec) -> ItemResult:
    """Run one order through the commit protocol."""
    node = await commit_graph().run().inject(spec)
    return node.result


__all__ = (
    "PREVALIDATION_PREFIX",
    "CommitSpec",
    "record_failure",
    "SpecNode",
    "FingerprintNode",
    "BeginNode",
    "LedgerErrorNode",
    "DuplicateNode",
    "InProgressNode",
    "ConflictNode",
    "StartedNode",
    "PreValidationNode",
    "RejectedNode",
    "ValidatedNode",
    "CommitAttemptNode",
    "CommittedNode",
    "CommitFailedNode",
    "CommitOutcome",
    "FinalResultNode",
    "commit_graph",
    "run_commit",
)
