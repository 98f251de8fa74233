"""
Pre-validation types.
"""

from __future__ import annotations

from dataclasses import dataclass

MISSING_CODES_CAP = 20


@dataclass(frozen=True, slots=True)
class PreValidationFailure:
    """
    Why an order was rejected before the downstream commit.

    unavailable=True means the master-data store could not be read, which
    says nothing about the order's content.
    """

    message: str
    unavailable: bool = False
    detail: str | None = None


def missing_codes_message(missing: list[str], cap: int = MISSING_CODES_CAP) -> str:
    listed = ", ".join(missing[:cap])
    suffix = "..." if len(missing) > cap else ""
    return f"Product codes not found in item master: {listed}{suffix}"


__all__ = (
    "MISSING_CODES_CAP",
    "PreValidationFailure",
    "missing_codes_message",
)
