"""
===============================================================================
TARJETA CRC — domain/security_events.py
===============================================================================

Módulo:
    Eventos de seguridad (Dominio)

Responsabilidades:
    - Definir SecurityEvent (append-only) y el catálogo de tipos emitidos
      alrededor de los flujos de autenticación.
    - Mantener el contrato independiente de infraestructura.

Colaboradores:
    - domain.repositories.BenefitsUnitOfWork: persiste y lista eventos.
    - benefits/audit.py: emite eventos (best-effort).

Notas:
    - Nunca se editan ni se borran.
    - metadata es flexible (dict) y jamás contiene tokens en claro.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class SecuritySeverity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class SecurityEventType(str, Enum):
    AUTH_LOGIN_SUCCESS = "AUTH_LOGIN_SUCCESS"
    AUTH_LOGIN_FAILED = "AUTH_LOGIN_FAILED"
    AUTH_LOGIN_LOCKED = "AUTH_LOGIN_LOCKED"
    AUTH_REFRESH_SUCCESS = "AUTH_REFRESH_SUCCESS"
    AUTH_REFRESH_FAILED = "AUTH_REFRESH_FAILED"
    AUTH_REFRESH_EXPIRED = "AUTH_REFRESH_EXPIRED"
    AUTH_REFRESH_REPLAY_DETECTED = "AUTH_REFRESH_REPLAY_DETECTED"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    AUTH_LOGOUT_ALL = "AUTH_LOGOUT_ALL"
    AUTH_SIGNUP_SUCCESS = "AUTH_SIGNUP_SUCCESS"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"
    INVITE_CODE_CREATED = "INVITE_CODE_CREATED"


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """Evento de seguridad (append-only)."""

    id: UUID
    event_type: str
    severity: SecuritySeverity
    created_at: datetime
    tenant_id: UUID | None = None
    user_id: UUID | None = None
    email: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
