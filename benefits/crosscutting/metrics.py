"""
===============================================================================
ARCHIVO: crosscutting/metrics.py
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Métricas (Prometheus) del core de beneficios

Responsabilidades:
    - Definir contadores de eventos de seguridad y transiciones de enrollment.
    - Proveer funciones pequeñas y estables para registrarlos.
    - Cuidar cardinalidad (NO user_id, NO tenant_id, NO emails).
    - Exponer el payload /metrics para quien monte el endpoint.

Colaboradores:
    - benefits/audit.py: cuenta eventos de seguridad emitidos.
    - application/usecases/enrollment: cuenta drafts y submits.
    - identity/login_attempts.py: cuenta lockouts.
===============================================================================
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    generate_latest,
)

# Registro propio: evita colisiones con el registry global en tests/reimports.
_registry = CollectorRegistry()

_security_events_total = Counter(
    "benefits_security_events_total",
    "Eventos de seguridad emitidos",
    ["event_type", "severity"],
    registry=_registry,
)

_security_event_persist_failures_total = Counter(
    "benefits_security_event_persist_failures_total",
    "Eventos de seguridad que no pudieron persistirse",
    registry=_registry,
)

_enrollment_transitions_total = Counter(
    "benefits_enrollment_transitions_total",
    "Transiciones del ciclo de vida de enrollments",
    ["transition"],
    registry=_registry,
)

_login_lockouts_total = Counter(
    "benefits_login_lockouts_total",
    "Claves (email, ip) bloqueadas por exceso de intentos",
    registry=_registry,
)


def record_security_event(event_type: str, severity: str) -> None:
    _security_events_total.labels(event_type=event_type, severity=severity).inc()


def record_security_event_persist_failure() -> None:
    _security_event_persist_failures_total.inc()


def record_enrollment_transition(transition: str) -> None:
    """transition: draft_created | draft_replaced | submitted."""
    _enrollment_transitions_total.labels(transition=transition).inc()


def record_login_lockout() -> None:
    _login_lockouts_total.inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Devuelve (payload, content_type) para un endpoint /metrics."""
    return generate_latest(_registry), CONTENT_TYPE_LATEST
