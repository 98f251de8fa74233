"""
Gateway — adapter boundary in front of the downstream system of record.

    from salesbridge import gateway as D

    gateway = D.SessionGateway(
        lambda: D.ServiceLayerSession(D.ServiceLayerConfig(...)),
        defaults,
    )
    doc = await gateway.create_order(key, order)   # raises D.GatewayError

Error taxonomy:

    GatewayError
     ├── DownstreamUnavailable      nothing sent
     ├── DownstreamRejected         downstream refused the document (4xx)
     └── DownstreamOutcomeUnknown   may or may not exist downstream (5xx)
          └── DownstreamTimeout     (504, read timeout)
"""

from salesbridge.gateway._types import (
    CreatedDocument,
    GatewayError,
    DownstreamUnavailable,
    DownstreamRejected,
    DownstreamOutcomeUnknown,
    DownstreamTimeout,
    CommitFailure,
    CommitGateway,
)
from salesbridge.gateway._session import (
    DownstreamSession,
    SessionFactory,
    SessionGateway,
)
from salesbridge.gateway._document import (
    parse_order_date,
    sales_order_document,
)
from salesbridge.gateway._service_layer import (
    ServiceLayerConfig,
    ServiceLayerSession,
)

__all__ = (
    # Types
    "CreatedDocument",
    "CommitFailure",
    "CommitGateway",
    # Errors
    "GatewayError",
    "DownstreamUnavailable",
    "DownstreamRejected",
    "DownstreamOutcomeUnknown",
    "DownstreamTimeout",
    # Sessions
    "DownstreamSession",
    "SessionFactory",
    "SessionGateway",
    # Document mapping
    "parse_order_date",
    "sales_order_document",
    # Service layer
    "ServiceLayerConfig",
    "ServiceLayerSession",
)
