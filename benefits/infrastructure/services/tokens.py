"""
===============================================================================
CRC CARD — infrastructure/services/tokens.py
===============================================================================

Componentes:
  - SecretsTokenGenerator: aleatoriedad criptográfica (secrets)
  - SeededTokenGenerator: aleatoriedad reproducible para tests

Responsabilidades:
  - Implementar domain.services.TokenGenerator.
  - Tokens opacos de 48 bytes codificados url-safe (refresh / reset).

Notas:
  - SeededTokenGenerator NO es seguro: solo para tests deterministas.
===============================================================================
"""

from __future__ import annotations

import base64
import random
import secrets
import threading

OPAQUE_TOKEN_BYTES = 48


class SecretsTokenGenerator:
    def opaque_token(self) -> str:
        return secrets.token_urlsafe(OPAQUE_TOKEN_BYTES)

    def token_hex(self, nbytes: int) -> str:
        return secrets.token_hex(nbytes)

    def token_urlsafe(self, nbytes: int) -> str:
        return secrets.token_urlsafe(nbytes)


class SeededTokenGenerator:
    """Misma semilla -> misma secuencia de tokens."""

    def __init__(self, seed: int = 0):
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def _bytes(self, nbytes: int) -> bytes:
        with self._lock:
            return self._random.randbytes(nbytes)

    def opaque_token(self) -> str:
        return self.token_urlsafe(OPAQUE_TOKEN_BYTES)

    def token_hex(self, nbytes: int) -> str:
        return self._bytes(nbytes).hex()

    def token_urlsafe(self, nbytes: int) -> str:
        return base64.urlsafe_b64encode(self._bytes(nbytes)).rstrip(b"=").decode("ascii")
