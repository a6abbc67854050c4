# benefits/identity/login_attempts.py
"""
===============================================================================
MÓDULO: Limitador de intentos de login (in-memory)
===============================================================================

Objetivo
--------
Frenar fuerza bruta por clave (email, ip):
- N fallas consecutivas bloquean la clave por una ventana fija
- Al bloquear, el contador vuelve a cero (la ventana no se acumula)
- Éxito limpia el estado

Limpieza lazy (sin sweeper): en cada lectura se descartan locks vencidos y
entradas sin lock que no se tocaron en 24 h.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  LoginAttemptLimiter

Responsabilidades:
  - Decidir locked / not locked con retry-after en segundos
  - Mantener estado thread-safe

Colaboradores:
  - application/usecases/auth/login.py
  - domain.services.Clock

Restricciones:
  - Un solo proceso. NO es un rate limiter distribuido.
===============================================================================
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_login_lockout
from ..domain.services import Clock
from .users import normalize_email


@dataclass
class LoginAttemptState:
    failures: int
    last_failure_at: datetime
    lock_until: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class LockStatus:
    locked: bool
    retry_after_seconds: int = 0


def build_login_attempt_key(email: str, ip_address: str) -> str:
    return f"{normalize_email(email)}|{ip_address}"


class LoginAttemptLimiter:
    def __init__(
        self,
        clock: Clock,
        *,
        max_attempts: int = 5,
        lock_minutes: int = 15,
        stale_hours: int = 24,
    ):
        if max_attempts <= 0:
            raise ValueError("max_attempts debe ser > 0")
        self._clock = clock
        self.max_attempts = int(max_attempts)
        self.lock_window = timedelta(minutes=lock_minutes)
        self.stale_after = timedelta(hours=stale_hours)

        self._attempts: dict[str, LoginAttemptState] = {}
        self._lock = threading.Lock()

    def is_locked(self, key: str) -> LockStatus:
        with self._lock:
            now = self._clock.now()
            self._cleanup_key(key, now)

            state = self._attempts.get(key)
            if state is None or state.lock_until is None:
                return LockStatus(locked=False)

            remaining = (state.lock_until - now).total_seconds()
            return LockStatus(locked=True, retry_after_seconds=math.ceil(remaining))

    def record_failure(self, key: str) -> None:
        with self._lock:
            now = self._clock.now()
            state = self._attempts.get(key)
            if state is None:
                state = LoginAttemptState(failures=0, last_failure_at=now)
                self._attempts[key] = state

            state.failures += 1
            state.last_failure_at = now

            if state.failures >= self.max_attempts:
                state.lock_until = now + self.lock_window
                state.failures = 0
                record_login_lockout()
                logger.warning(
                    "login.locked",
                    extra={"lock_until": state.lock_until.isoformat()},
                )

    def clear(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)

    def failures(self, key: str) -> int:
        with self._lock:
            state = self._attempts.get(key)
            return state.failures if state else 0

    def _cleanup_key(self, key: str, now: datetime) -> None:
        state = self._attempts.get(key)
        if state is None:
            return

        if state.lock_until is not None:
            if state.lock_until <= now:
                del self._attempts[key]
            return

        if now - state.last_failure_at > self.stale_after:
            del self._attempts[key]
