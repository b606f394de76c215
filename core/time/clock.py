"""
Millstone Core Time — Injectable Clock
=======================================
The transaction engine never reads the wall clock. Every transaction
is stamped with an explicit `occurred_at`; the ledger service obtains
that timestamp from an injected Clock so tests and replays stay
deterministic.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Wall-clock time, UTC."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Deterministic clock for tests and demo seeding.

    Usage:
        clock = FixedClock(datetime(2026, 3, 1, tzinfo=timezone.utc))
        clock.advance(minutes=5)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, **delta) -> datetime:
        """Move the clock forward by timedelta keyword arguments (days=, minutes=, ...)."""
        step = timedelta(**delta)
        if step < timedelta(0):
            raise ValueError("FixedClock cannot move backwards.")
        self._fixed_dt = self._fixed_dt + step
        return self._fixed_dt


# ══════════════════════════════════════════════════════════════
# DEFAULT CLOCK
# ══════════════════════════════════════════════════════════════

_default_clock: Clock = SystemClock()


def set_default_clock(clock: Clock) -> None:
    """Override the process-wide clock (tests and seed scripts)."""
    global _default_clock
    _default_clock = clock


def get_default_clock() -> Clock:
    return _default_clock


def now_utc() -> datetime:
    return _default_clock.now_utc()
