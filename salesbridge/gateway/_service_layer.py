"""
Service-layer session — REST login / create / logout over httpx.

    POST {base}/Login   {"CompanyDB", "UserName", "Password"}
    POST {base}/Orders  sales order document → {"DocEntry", "DocNum", ...}
    POST {base}/Logout
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from salesbridge.order import CommitDefaults, OrderKey, OrderRequest
from salesbridge.gateway._types import (
    CreatedDocument,
    DownstreamOutcomeUnknown,
    DownstreamRejected,
    DownstreamTimeout,
    DownstreamUnavailable,
)
from salesbridge.gateway._document import sales_order_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ServiceLayerConfig:
    base_url: str
    company_db: str
    username: str
    password: str
    verify_tls: bool = True
    request_timeout: float = 60.0


def _error_text(response: httpx.Response) -> tuple[str | None, str]:
    """(code, message) from a service-layer error body, best effort."""
    try:
        body: Any = response.json()
    except ValueError:
        return None, response.text[:500]
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return None, response.text[:500]
    message = error.get("message")
    if isinstance(message, dict):
        message = message.get("value")
    code = error.get("code")
    return (str(code) if code is not None else None), str(message or response.text[:500])


class ServiceLayerSession:
    """
    One login per instance. Not reentrant; SessionGateway builds a new one
    for every commit attempt.
    """

    def __init__(
        self,
        config: ServiceLayerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logged_in = False

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            verify=self._config.verify_tls,
            timeout=self._config.request_timeout,
            transport=self._transport,
        )
        try:
            response = await self._client.post(
                "/Login",
                json={
                    "CompanyDB": self._config.company_db,
                    "UserName": self._config.username,
                    "Password": self._config.password,
                },
            )
        except httpx.HTTPError as e:
            raise DownstreamUnavailable(f"Login request failed: {e!r}") from e

        if response.status_code >= 400:
            code, message = _error_text(response)
            raise DownstreamUnavailable(
                f"Login rejected ({response.status_code}, code={code}): {message}"
            )
        self._logged_in = True

    async def create_order(
        self, key: OrderKey, order: OrderRequest, defaults: CommitDefaults
    ) -> CreatedDocument:
        if self._client is None or not self._logged_in:
            raise DownstreamUnavailable("Session is not connected")

        body = sales_order_document(key, order, defaults)
        try:
            response = await self._client.post("/Orders", json=body)
        except httpx.ConnectError as e:
            raise DownstreamUnavailable(f"Order request not delivered: {e!r}") from e
        except httpx.TimeoutException as e:
            raise DownstreamTimeout(f"Order request timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise DownstreamOutcomeUnknown(f"Order request interrupted: {e!r}") from e

        if response.status_code == 504:
            raise DownstreamTimeout(f"Order request timed out at a gateway: {response.text[:500]}")
        if response.status_code >= 500:
            code, message = _error_text(response)
            raise DownstreamOutcomeUnknown(
                f"Order add answered {response.status_code} (code={code}): {message}"
            )
        if response.status_code >= 400:
            code, message = _error_text(response)
            raise DownstreamRejected(
                f"Order add failed ({response.status_code}, code={code}): {message}",
                code=code,
            )

        try:
            created: Any = response.json()
            doc_entry = created["DocEntry"]
            doc_num = created["DocNum"]
        except (ValueError, KeyError, TypeError) as e:
            raise DownstreamOutcomeUnknown(
                f"Order response without DocEntry/DocNum: {response.text[:500]}"
            ) from e

        return CreatedDocument(doc_id=str(doc_entry), doc_number=str(doc_num))

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if self._logged_in:
                await client.post("/Logout")
        except httpx.HTTPError:
            logger.warning("Service-layer logout failed", exc_info=True)
        finally:
            self._logged_in = False
            await client.aclose()


__all__ = (
    "ServiceLayerConfig",
    "ServiceLayerSession",
)
