"""
Graph — declarative per-item flows on nodnod.

    from salesbridge import graph as G

    @G.node
    class Fingerprint:
        @classmethod
        def __compose__(cls, envelope: OrderEnvelope) -> "Fingerprint":
            return cls(fingerprint(envelope.order))

    commit = G.graph(FinalResultNode)
    node = await commit.run().inject(spec)
"""

from nodnod import scalar_node as node

from salesbridge.graph._run import (
    GraphIncomplete,
    Run,
    Compiled,
    graph,
)

__all__ = (
    "node",
    "GraphIncomplete",
    "Run",
    "Compiled",
    "graph",
)
