"""
===============================================================================
TARJETA CRC — domain/services.py
===============================================================================

Módulo:
    Puertos de servicios ambientales (Protocols)

Responsabilidades:
    - Definir contratos para reloj, generación de tokens y hashing de passwords.
    - Permitir tests deterministas (reloj fijo, aleatoriedad sembrada).

Colaboradores:
    - infrastructure/services/*: implementaciones concretas.
    - identity/passwords.py: Argon2PasswordHasher.
    - application/usecases: consumen estos puertos.

Reglas:
    - SOLO interfaces: nada de implementación.
===============================================================================
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol


class Clock(Protocol):
    """Fuente de "ahora". Siempre timezone-aware (UTC)."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class TokenGenerator(Protocol):
    """Fuente de aleatoriedad para tokens opacos y códigos."""

    def opaque_token(self) -> str:
        """Token de alta entropía, url-safe (refresh / reset)."""
        ...

    def token_hex(self, nbytes: int) -> str: ...

    def token_urlsafe(self, nbytes: int) -> str: ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password_hash: str, password: str) -> bool: ...
