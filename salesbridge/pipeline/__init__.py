"""
Pipeline — the commit orchestrator.

    from salesbridge import pipeline as P

    commits = P.pipeline(gateway).prevalidator(validator).defaults(defaults).build()

    result = await commits.submit(envelope)
    match result.code:
        case P.ItemCode.CREATED | P.ItemCode.DUPLICATE:
            ...  # result.document holds the downstream identifiers
        case P.ItemCode.IN_PROGRESS:
            ...  # retry later with the same payload
        case _:
            ...  # result.message is safe to return to the caller

Per order:

    fingerprint ─► ledger.begin ─┬─ DUPLICATE_CREATED / IN_PROGRESS / CONFLICT_HASH ─► done
                                 └─ STARTED ─► pre-validate ─┬─ failed ─► finalize_failed
                                                             └─ ok ─► create_order ─┬─► finalize_created
                                                                                    └─► finalize_failed
"""

from salesbridge.pipeline._types import ItemCode, ItemResult
from salesbridge.pipeline._builder import (
    CommitPipeline,
    Pipeline,
    pipeline,
)
from salesbridge.pipeline._graph import (
    PREVALIDATION_PREFIX,
    CommitSpec,
    run_commit,
)

__all__ = (
    # Types
    "ItemCode",
    "ItemResult",
    # Builder
    "CommitPipeline",
    "Pipeline",
    "pipeline",
    # Graph
    "PREVALIDATION_PREFIX",
    "CommitSpec",
    "run_commit",
)
