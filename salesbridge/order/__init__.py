"""
Order — normalized sale orders, idempotency keys and content fingerprints.

    from salesbridge import order as O

    key = O.OrderKey("SO-1001", "attempt-1")
    payload_hash = O.fingerprint(request)
"""

from salesbridge.order._types import (
    OrderKey,
    CustomerRef,
    OrderLine,
    OrderRequest,
    OrderEnvelope,
    CommitDefaults,
)
from salesbridge.order._fingerprint import (
    canonical_json,
    fingerprint,
)

__all__ = (
    "OrderKey",
    "CustomerRef",
    "OrderLine",
    "OrderRequest",
    "OrderEnvelope",
    "CommitDefaults",
    "canonical_json",
    "fingerprint",
)
