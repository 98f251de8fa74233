"""
Ledger policy — behavior configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class LedgerPolicy:
    """
    Ledger policy configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            LedgerPolicy()
            .with_stale_after(minutes=15)
            .with_max_error_length(2000)
        )

    stale_processing_after: None keeps PROCESSING entries forever (a crashed
    attempt blocks its key until an operator intervenes). When set, a
    PROCESSING entry older than the threshold is reclaimed by a resubmission
    carrying the same hash.

    Note: finalize writes only apply to PROCESSING entries, so a reclaimed
    attempt that finishes late cannot overwrite a CREATED entry. It can
    still finalize the entry while the new attempt is in flight, and both
    attempts may have created a document downstream. Set the threshold well
    above the downstream timeout.
    """

    stale_processing_after: timedelta | None = None
    max_error_length: int = 4000

    def with_stale_after(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> LedgerPolicy:
        """
        Allow reclaiming PROCESSING entries older than the threshold.

        Example:
            .with_stale_after(minutes=30)
            .with_stale_after(delta=timedelta(hours=1))
        """
        if delta is not None:
            threshold = delta
        else:
            total = (seconds or 0) + (minutes or 0) * 60
            threshold = timedelta(seconds=total) if total > 0 else None
        return replace(self, stale_processing_after=threshold)

    def with_max_error_length(self, length: int) -> LedgerPolicy:
        """Clip stored error messages to at most `length` characters."""
        if length < 16:
            raise ValueError("max_error_length must be at least 16")
        return replace(self, max_error_length=length)

    def is_stale(self, processing_at: datetime | None, now: datetime) -> bool:
        if self.stale_processing_after is None or processing_at is None:
            return False
        return now - processing_at >= self.stale_processing_after

    def clip_error(self, message: str) -> str:
        if len(message) <= self.max_error_length:
            return message
        return message[: self.max_error_length - 3] + "..."


__all__ = ("LedgerPolicy",)
