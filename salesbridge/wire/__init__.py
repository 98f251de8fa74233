"""
Wire — the HTTP edge: codecs in and out, plus transport integrations.

    from salesbridge import wire as W

    match W.decode_envelope(raw_item):
        case Ok(envelope):
            result = await commits.submit(envelope)
        case Error(problem):
            result = ItemResult.invalid(problem)

    body = W.BatchOut.from_domain(results)
"""

from salesbridge.wire._codecs import (
    CustomerIn,
    SaleItemIn,
    TransactionIn,
    BusinessObjectIn,
    EnvelopeIn,
    decode_envelope,
    DocumentOut,
    ItemOut,
    BatchOut,
    StatusOut,
    ErrorOut,
)
from salesbridge.wire import contrib

__all__ = (
    # Inbound
    "CustomerIn",
    "SaleItemIn",
    "TransactionIn",
    "BusinessObjectIn",
    "EnvelopeIn",
    "decode_envelope",
    # Outbound
    "DocumentOut",
    "ItemOut",
    "BatchOut",
    "StatusOut",
    "ErrorOut",
    # Integrations
    "contrib",
)
