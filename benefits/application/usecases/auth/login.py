"""
===============================================================================
USE CASE: Login
===============================================================================

Business Goal:
    Autenticar email + password y emitir sesión (access + refresh).

Why (Context / Intención):
    - Fuerza bruta: LoginAttemptLimiter por (email, ip). Bloqueado -> 429 con
      retry-after; mientras está bloqueado NO se toca el contador.
    - Enumeración de cuentas: usuario inexistente, inactivo y password
      incorrecto devuelven el MISMO error ("Invalid credentials").

-------------------------------------------------------------------------------
CRC CARD
-------------------------------------------------------------------------------
Class:
    LoginUseCase

Responsibilities:
    - Consultar el limiter; registrar falla o limpiar estado.
    - Verificar password (argon2) fuera de la transacción.
    - Emitir sesión vía SessionIssuer y eventos de seguridad.

Collaborators:
    - BenefitsStore, LoginAttemptLimiter, PasswordHasher, SessionIssuer, Clock
    - audit.emit_security_event
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ....audit import emit_security_event
from ....crosscutting.exceptions import RateLimitedError, UnauthorizedError
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEventType, SecuritySeverity
from ....domain.services import Clock, PasswordHasher
from ....identity.login_attempts import LoginAttemptLimiter, build_login_attempt_key
from ....identity.users import User, normalize_email
from .session_issuer import AuthTokens, SessionIssuer

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class LoginInput:
    email: str
    password: str
    ip_address: str
    user_agent: str | None = None


class LoginUseCase:
    def __init__(
        self,
        store: BenefitsStore,
        limiter: LoginAttemptLimiter,
        hasher: PasswordHasher,
        issuer: SessionIssuer,
        clock: Clock,
    ) -> None:
        self._store = store
        self._limiter = limiter
        self._hasher = hasher
        self._issuer = issuer
        self._clock = clock

    def execute(self, input_data: LoginInput) -> AuthTokens:
        email = normalize_email(input_data.email)
        key = build_login_attempt_key(email, input_data.ip_address)

        status = self._limiter.is_locked(key)
        if status.locked:
            self._emit(
                SecurityEventType.AUTH_LOGIN_LOCKED,
                SecuritySeverity.WARN,
                input_data,
                metadata={"retry_after_seconds": status.retry_after_seconds},
            )
            raise RateLimitedError(
                "Too many failed login attempts. Try again later.",
                retry_after_seconds=status.retry_after_seconds,
            )

        with self._store.unit_of_work() as uow:
            user = uow.get_user_by_email(email)

        if (
            user is None
            or not user.is_active
            or not self._hasher.verify(user.password_hash, input_data.password)
        ):
            self._limiter.record_failure(key)
            self._emit(
                SecurityEventType.AUTH_LOGIN_FAILED,
                SecuritySeverity.WARN,
                input_data,
                user=user,
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        self._limiter.clear(key)
        with self._store.unit_of_work() as uow:
            issued = self._issuer.issue(
                uow,
                user,
                user_agent=input_data.user_agent,
                ip_address=input_data.ip_address,
            )

        self._emit(
            SecurityEventType.AUTH_LOGIN_SUCCESS,
            SecuritySeverity.INFO,
            input_data,
            user=user,
            metadata={"session_id": str(issued.session.id)},
        )
        return issued.tokens

    def _emit(
        self,
        event_type: SecurityEventType,
        severity: SecuritySeverity,
        input_data: LoginInput,
        *,
        user: User | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        emit_security_event(
            self._store,
            self._clock,
            event_type=event_type,
            severity=severity,
            tenant_id=user.tenant_id if user else None,
            user_id=user.id if user else None,
            email=normalize_email(input_data.email),
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
            metadata=metadata,
        )
