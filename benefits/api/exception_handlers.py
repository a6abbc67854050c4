"""
===============================================================================
TARJETA CRC — benefits/api/exception_handlers.py (Manejo Centralizado de Excepciones)
===============================================================================

Responsabilidades:
  - Traducir BenefitsError (y derivadas) a respuestas HTTP RFC7807.
  - Centralizar logging de errores con request_id + error_id.
  - Evitar filtrar detalles internos en errores no controlados.

Patrones aplicados:
  - Exception Mapping (Presentation Layer).
  - Fail-safe: cualquier excepción no tipada -> INTERNAL_ERROR (con logging).

Colaboradores:
  - crosscutting.error_responses: AppHTTPException, ErrorCode, app_exception_handler
  - crosscutting.exceptions: BenefitsError y derivadas
  - crosscutting.config.get_settings (nivel de detalle)
===============================================================================
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import (
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
)
from ..crosscutting.exceptions import BenefitsError, DatabaseError, RateLimitedError
from ..crosscutting.logger import logger


def _request_id_from(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


def _error_code_for(exc: BenefitsError) -> ErrorCode:
    try:
        return ErrorCode(exc.error_code)
    except ValueError:
        return ErrorCode.INTERNAL_ERROR


async def benefits_error_handler(request: Request, exc: BenefitsError) -> JSONResponse:
    """BenefitsError -> problem+json con su status y código estable."""
    request_id = _request_id_from(request)
    code = _error_code_for(exc)
    status_code = exc.http_status

    # R: 4xx son errores del caller (info); 5xx son nuestros (error).
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Error de dominio",
        extra={
            "code": code.value,
            "status": status_code,
            "error_id": exc.error_id,
            "request_id": request_id,
        },
    )

    detail = exc.message
    if isinstance(exc, DatabaseError) and get_settings().is_production():
        detail = "Error de base de datos."

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    elif status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    app_exc = AppHTTPException(
        status_code=status_code,
        code=code,
        detail=detail,
        errors=[{"error_id": exc.error_id, "request_id": request_id}],
        headers=headers,
    )
    return await app_exception_handler(request, app_exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler para excepciones no tipadas.

    - Log completo (stacktrace).
    - Respuesta genérica (evita filtrar internos).
    """
    request_id = _request_id_from(request)
    settings = get_settings()

    logger.error(
        "Excepción no controlada",
        exc_info=True,
        extra={"request_id": request_id, "error": str(exc)},
    )

    detail = str(exc) if not settings.is_production() else "Error interno."

    app_exc = AppHTTPException(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        detail=detail,
        errors=[{"request_id": request_id}],
    )
    return await app_exception_handler(request, app_exc)


def register_exception_handlers(app) -> None:
    """
    Registra handlers en la app FastAPI.

    Importante:
      - AppHTTPException debe registrarse para respetar RFC7807.
      - Exception genérica se registra al final como fallback.
    """
    app.add_exception_handler(BenefitsError, benefits_error_handler)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers"]
