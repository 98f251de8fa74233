"""
Session gateway — one fresh downstream session per commit attempt.

Sessions are not shared between attempts and are released on every exit
path, so a failed or slow attempt never pins a downstream connection or
license.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Protocol

from salesbridge.order import CommitDefaults, OrderKey, OrderRequest
from salesbridge.gateway._types import (
    CreatedDocument,
    DownstreamTimeout,
    DownstreamUnavailable,
    GatewayError,
)

logger = logging.getLogger(__name__)


class DownstreamSession(Protocol):
    """Single-use, non-reentrant downstream session."""

    async def connect(self) -> None: ...

    async def create_order(
        self, key: OrderKey, order: OrderRequest, defaults: CommitDefaults
    ) -> CreatedDocument: ...

    async def disconnect(self) -> None:
        """Release the session. Must be safe to call after a failed connect."""
        ...


type SessionFactory = Callable[[], DownstreamSession]


async def _bounded[T](call: Awaitable[T], timeout: timedelta | None) -> T:
    if timeout is None:
        return await call
    async with asyncio.timeout(timeout.total_seconds()):
        return await call


class SessionGateway:
    """
    CommitGateway over DownstreamSession.

    Example:
        gateway = SessionGateway(
            lambda: ServiceLayerSession(config),
            defaults,
            timeout=timedelta(seconds=90),
        )
        doc = await gateway.create_order(key, order)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        defaults: CommitDefaults,
        timeout: timedelta | None = timedelta(seconds=120),
    ) -> None:
        self._session_factory = session_factory
        self._defaults = defaults
        self._timeout = timeout

    async def create_order(self, key: OrderKey, order: OrderRequest) -> CreatedDocument:
        session = self._session_factory()
        try:
            try:
                await _bounded(session.connect(), self._timeout)
            except GatewayError:
                raise
            except TimeoutError as e:
                raise DownstreamUnavailable(f"Connect timed out for {key}") from e
            except Exception as e:
                raise DownstreamUnavailable(f"Connect failed for {key}: {e}") from e

            try:
                return await _bounded(
                    session.create_order(key, order, self._defaults), self._timeout
                )
            except TimeoutError as e:
                raise DownstreamTimeout(
                    f"No response within {self._timeout} for {key}"
                ) from e
        finally:
            await self._release(session, key)

    @staticmethod
    async def _release(session: DownstreamSession, key: OrderKey) -> None:
        try:
            await session.disconnect()
        except Exception:
            logger.warning("Downstream disconnect failed for %s", key, exc_info=True)


__all__ = (
    "DownstreamSession",
    "SessionFactory",
    "SessionGateway",
)
