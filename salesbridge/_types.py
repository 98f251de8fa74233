"""
Core types for salesbridge.

Re-exports from kungfu, so callers can match on outcomes without a second import.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Result",
    "Ok",
    "Error",
)
