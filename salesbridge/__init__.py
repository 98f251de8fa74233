"""
salesbridge — exactly-once commit of sale orders into a downstream system.

Modules:
    order          — order model, idempotency key, content fingerprint
    ledger         — (external_order_id, instance_id) state machine
    prevalidation  — master-data existence checks
    gateway        — downstream adapter (fresh session per commit)
    pipeline       — per-order commit protocol as a nodnod graph
    wire           — pydantic codecs and the FastAPI surface

    from salesbridge import pipeline as P, prevalidation as V

    commits = P.pipeline(gateway).prevalidator(V.PreValidator(reader)).build()
    results = await commits.submit_batch(envelopes)
"""

__version__ = "0.1.0"

from salesbridge import order
from salesbridge import ledger
from salesbridge import prevalidation
from salesbridge import gateway
from salesbridge import graph
from salesbridge import pipeline
from salesbridge import wire
from salesbridge._types import Result, Ok, Error

__all__ = (
    "order",
    "ledger",
    "prevalidation",
    "gateway",
    "graph",
    "pipeline",
    "wire",
    "Result",
    "Ok",
    "Error",
)
