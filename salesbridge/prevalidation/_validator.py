"""
Pre-validation — cheap master-data checks before the downstream commit.
"""

from __future__ import annotations

import logging

from combinators import lift as L
from kungfu import Result, Ok, Error

from salesbridge.order import CommitDefaults, OrderRequest
from salesbridge.prevalidation._types import (
    MISSING_CODES_CAP,
    PreValidationFailure,
    missing_codes_message,
)
from salesbridge.prevalidation._store import MasterDataReader

logger = logging.getLogger(__name__)


def _unavailable(exc: Exception) -> PreValidationFailure:
    return PreValidationFailure(
        message="Master data could not be read",
        unavailable=True,
        detail=f"{type(exc).__name__}: {exc}",
    )


class PreValidator:
    """
    Checks, in order:
        1. defaults are configured (customer, numeric salesperson, warehouse)
        2. the order references at least one product code
        3. default customer, salesperson and warehouse exist
        4. every distinct product code exists (all misses reported, capped)
    """

    def __init__(self, reader: MasterDataReader, max_listed: int = MISSING_CODES_CAP) -> None:
        self._reader = reader
        self._max_listed = max_listed

    async def validate(
        self, order: OrderRequest, defaults: CommitDefaults
    ) -> Result[None, PreValidationFailure]:
        checked = await L.catching_async(
            lambda: self._check(order, defaults),
            on_error=_unavailable,
        )
        match checked:
            case Ok(None):
                return Ok(None)
            case Ok(message):
                return Error(PreValidationFailure(str(message)))
            case Error(failure):
                logger.error("Master data lookup failed: %s", failure.detail)
                return Error(failure)

    async def _check(self, order: OrderRequest, defaults: CommitDefaults) -> str | None:
        customer = defaults.customer_code.strip()
        warehouse = defaults.warehouse_code.strip()
        if not customer:
            return "Default customer code is not configured."
        try:
            salesperson = int(defaults.salesperson_code.strip())
        except ValueError:
            return "Default salesperson code is missing or not an integer."
        if not warehouse:
            return "Default warehouse code is not configured."

        codes = order.product_codes()
        if not codes:
            return "Order has no line items with a product code."

        if not await self._reader.customer_exists(customer):
            return f"Default customer '{customer}' does not exist in master data."
        if not await self._reader.salesperson_exists(salesperson):
            return f"Default salesperson '{salesperson}' does not exist in master data."
        if not await self._reader.warehouse_exists(warehouse):
            return f"Default warehouse '{warehouse}' does not exist in master data."

        found = {c.casefold() for c in await self._reader.existing_items(codes)}
        missing = [c for c in codes if c.casefold() not in found]
        if missing:
            return missing_codes_message(missing, self._max_listed)

        return None


__all__ = ("PreValidator",)
