"""
Graph runner — compile a nodnod graph once, run it per injected input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


type AgentRun = Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]]


class GraphIncomplete(LookupError):
    """The target node could not be composed from the injected values."""


# ═══════════════════════════════════════════════════════════════════════════════
# Run — Fluent awaitable
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class Run[T]:
    """
    One execution of a compiled graph.

        node = await graph(FinalResultNode).run().inject(spec)
    """

    _target: type[T]
    _agent: EventLoopAgent
    _injections: tuple[tuple[type[Any], Any], ...]

    def inject(self, value: object) -> Run[T]:
        """Inject a value under its runtime type."""
        pair: tuple[type[Any], Any] = (cast(type[Any], type(value)), value)
        return Run(
            _target=self._target,
            _agent=self._agent,
            _injections=(*self._injections, pair),
        )

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        scope = Scope(detail=self._target.__name__)
        async with scope:
            for typ, value in self._injections:
                scope.push(Value(typ, value))

            agent_run = cast(AgentRun, getattr(self._agent, "run"))
            await agent_run(scope, {})

            composed = scope.get(self._target)
            if composed is None:
                raise GraphIncomplete(f"{self._target.__name__} was not composed")
            return cast(T, composed.value)


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled — Agent built once per target
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Compiled[T]:
    _target: type[T]
    _agent: EventLoopAgent

    def run(self) -> Run[T]:
        return Run(_target=self._target, _agent=self._agent, _injections=())


def graph[T](target: type[T]) -> Compiled[T]:
    """
    Build the agent for `target` and every node it depends on.

    Example:
        commit_graph = graph(FinalResultNode)
        node = await commit_graph.run().inject(spec)
    """
    nodes: set[type[Node[Any, Any]]] = {cast(type[Node[Any, Any]], target)}
    return Compiled(_target=target, _agent=EventLoopAgent.build(nodes))


__all__ = (
    "GraphIncomplete",
    "Run",
    "Compiled",
    "graph",
)
