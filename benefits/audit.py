"""
===============================================================================
TARJETA CRC — benefits/audit.py (Emisión de eventos de seguridad)
===============================================================================

Responsabilidades:
  - Construir SecurityEvent con formato consistente (tipo/severidad/actor/metadata).
  - Persistir en su PROPIA unidad de trabajo: el evento de un login fallido
    sobrevive aunque la operación principal termine en error.
  - "Best-effort": si falla la persistencia, NO rompe el flujo de negocio.
  - Loguear y contar cada evento (prometheus).

Colaboradores:
  - benefits.domain.security_events.SecurityEvent
  - benefits.domain.repositories.BenefitsStore
  - benefits.crosscutting.logger / metrics

Decisiones de seguridad:
  - Metadata se sanitiza a valores serializables; tokens en claro nunca llegan acá.
===============================================================================
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from .crosscutting.logger import logger
from .crosscutting.metrics import (
    record_security_event,
    record_security_event_persist_failure,
)
from .domain.repositories import BenefitsStore
from .domain.security_events import SecurityEvent, SecurityEventType, SecuritySeverity
from .domain.services import Clock


def _sanitize(value: Any) -> Any:
    """
    Convierte valores a tipos serializables para JSON.
    - primitives -> OK
    - dict/list -> sanitiza recursivamente
    - otros -> str(value)
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, dict):
        return {str(k): _sanitize(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_sanitize(v) for v in value]

    return str(value)


def emit_security_event(
    store: BenefitsStore | None,
    clock: Clock,
    *,
    event_type: SecurityEventType | str,
    severity: SecuritySeverity = SecuritySeverity.INFO,
    tenant_id: UUID | None = None,
    user_id: UUID | None = None,
    email: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> SecurityEvent:
    """
    Emite un evento de seguridad.

    Regla clave:
      - Si store es None o falla al escribir, NO se lanza excepción.
    """
    type_value = (
        event_type.value if isinstance(event_type, SecurityEventType) else str(event_type)
    )
    event = SecurityEvent(
        id=uuid4(),
        event_type=type_value,
        severity=severity,
        created_at=clock.now(),
        tenant_id=tenant_id,
        user_id=user_id,
        email=email,
        ip_address=ip_address,
        user_agent=user_agent,
        metadata=_sanitize(metadata or {}),
    )

    if store is not None:
        try:
            with store.unit_of_work() as uow:
                uow.record_security_event(event)
        except Exception as exc:
            # Best-effort: logueamos y seguimos.
            record_security_event_persist_failure()
            logger.warning(
                "security_event.persist_failed",
                extra={"event_type": type_value, "error": str(exc)},
            )

    record_security_event(type_value, severity.value)
    log = {
        SecuritySeverity.ERROR: logger.error,
        SecuritySeverity.WARN: logger.warning,
    }.get(severity, logger.info)
    log(
        "security_event",
        extra={
            "event_type": type_value,
            "severity": severity.value,
            "user_id": str(user_id) if user_id else None,
            "ip_address": ip_address,
        },
    )
    return event
