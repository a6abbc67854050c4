"""
===============================================================================
CRC CARD — infrastructure/services/clock.py
===============================================================================

Componentes:
  - SystemClock: reloj real (UTC)
  - FixedClock: reloj controlable para tests y seeds

Responsabilidades:
  - Implementar domain.services.Clock.
  - Devolver siempre datetimes timezone-aware en UTC.
===============================================================================
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Reloj congelado; `advance()` lo mueve hacia adelante."""

    def __init__(self, at: datetime):
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._now = at
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def today(self) -> date:
        return self.now().date()

    def set(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        with self._lock:
            self._now = at

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now
