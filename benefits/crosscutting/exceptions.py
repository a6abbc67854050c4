# benefits/crosscutting/exceptions.py
"""
===============================================================================
MÓDULO: Excepciones tipadas del core (errores internos)
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable
- http_status sugerido para la capa HTTP
- error_id para correlación con logs
- message "humana" (sin filtrar secretos)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  BenefitsError + subclases

Responsabilidades:
  - Estandarizar la taxonomía de fallas del core (not found, conflict,
    validation, business rule, unauthorized, forbidden, rate limited, database)
  - Generar error_id para rastreo

Colaboradores:
  - api/exception_handlers.py (mapea a AppHTTPException)
  - crosscutting/logger.py

Notas:
  - El core nunca reintenta: toda falla acá es una precondición violada.
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class BenefitsError(Exception):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      BenefitsError

    Responsabilidades:
      - Base para errores internos del sistema
      - Proveer error_code + http_status + error_id + message

    Colaboradores:
      - api/exception_handlers.py
    ----------------------------------------------------------------------------
    """

    error_code: str = "BENEFITS_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class NotFoundError(BenefitsError):
    """La entidad referenciada no existe o no es visible en el scope del caller."""

    error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BenefitsError):
    """El estado ya satisface un invariante de unicidad o terminalidad."""

    error_code: str = "CONFLICT"
    http_status: int = 409


class ValidationError(BenefitsError):
    """Input estructuralmente inválido (duplicados, enum no soportado)."""

    error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class BusinessRuleError(BenefitsError):
    """Input válido en forma pero que viola una regla de negocio."""

    error_code: str = "BUSINESS_RULE_VIOLATION"
    http_status: int = 422


class UnauthorizedError(BenefitsError):
    """Credencial ausente, inválida, expirada o sesión revocada."""

    error_code: str = "UNAUTHORIZED"
    http_status: int = 401


class ForbiddenError(BenefitsError):
    """Autenticado pero sin permiso (rol o tenant incorrecto)."""

    error_code: str = "FORBIDDEN"
    http_status: int = 403


class RateLimitedError(BenefitsError):
    """Login bloqueado temporalmente para la clave (email, ip)."""

    error_code: str = "RATE_LIMITED"
    http_status: int = 429

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: int,
        error_id: str | None = None,
    ):
        super().__init__(message, error_id=error_id)
        self.retry_after_seconds = retry_after_seconds


class DatabaseError(BenefitsError):
    """Errores de DB (conexión, query, timeout, pool)."""

    error_code: str = "DATABASE_ERROR"
    http_status: int = 500
