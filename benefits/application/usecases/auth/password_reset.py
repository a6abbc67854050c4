"""
===============================================================================
USE CASES: Request / Confirm Password Reset
===============================================================================

Request:
    - Respuesta genérica SIEMPRE (exista o no la cuenta): evita enumeración.
    - Token opaco con TTL fijo; solo se persiste el hash.
    - El token en claro se devuelve únicamente fuera de producción
      (expose_token); en producción viaja por un canal externo.

Confirm:
    - Consume el token exactamente una vez (used_at), bajo row lock.
    - Errores: desconocido -> NOT_FOUND, ya usado -> CONFLICT,
      expirado -> UNAUTHORIZED.
    - Cambia el hash de password y revoca TODAS las sesiones del usuario.

Collaborators:
    - BenefitsStore, TokenGenerator, PasswordHasher, Clock
    - audit.emit_security_event
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from ....audit import emit_security_event
from ....crosscutting.exceptions import ConflictError, NotFoundError, UnauthorizedError
from ....domain.entities import PasswordResetToken
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEventType
from ....domain.services import Clock, PasswordHasher, TokenGenerator
from ....identity.auth_users import hash_opaque_token
from ....identity.passwords import assert_password_policy
from ....identity.users import normalize_email

REASON_PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class RequestPasswordResetInput:
    email: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class PasswordResetRequestResult:
    accepted: bool = True
    reset_token: str | None = None
    expires_at: datetime | None = None


class RequestPasswordResetUseCase:
    def __init__(
        self,
        store: BenefitsStore,
        tokens: TokenGenerator,
        clock: Clock,
        *,
        ttl_minutes: int,
        expose_token: bool,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._clock = clock
        self._ttl = timedelta(minutes=ttl_minutes)
        self._expose_token = expose_token

    def execute(self, input_data: RequestPasswordResetInput) -> PasswordResetRequestResult:
        email = normalize_email(input_data.email)
        now = self._clock.now()

        with self._store.unit_of_work() as uow:
            user = uow.get_user_by_email(email)
            if user is None or not user.is_active:
                raw_token = None
                expires_at = None
            else:
                raw_token = self._tokens.opaque_token()
                expires_at = now + self._ttl
                uow.create_password_reset_token(
                    PasswordResetToken(
                        id=uuid4(),
                        user_id=user.id,
                        token_hash=hash_opaque_token(raw_token),
                        created_at=now,
                        expires_at=expires_at,
                    )
                )

        if user is not None and raw_token is not None:
            emit_security_event(
                self._store,
                self._clock,
                event_type=SecurityEventType.PASSWORD_RESET_REQUESTED,
                tenant_id=user.tenant_id,
                user_id=user.id,
                email=email,
                ip_address=input_data.ip_address,
                user_agent=input_data.user_agent,
            )

        if not self._expose_token:
            return PasswordResetRequestResult()
        return PasswordResetRequestResult(reset_token=raw_token, expires_at=expires_at)


@dataclass(frozen=True)
class ConfirmPasswordResetInput:
    token: str
    new_password: str
    ip_address: str | None = None
    user_agent: str | None = None


class ConfirmPasswordResetUseCase:
    def __init__(self, store: BenefitsStore, hasher: PasswordHasher, clock: Clock) -> None:
        self._store = store
        self._hasher = hasher
        self._clock = clock

    def execute(self, input_data: ConfirmPasswordResetInput) -> None:
        assert_password_policy(input_data.new_password)
        # R: argon2 fuera de la transacción (no retener row locks mientras hashea).
        new_hash = self._hasher.hash(input_data.new_password)
        token_hash = hash_opaque_token(input_data.token or "")
        now = self._clock.now()

        with self._store.unit_of_work() as uow:
            token = uow.get_password_reset_token_by_hash(token_hash, for_update=True)
            if token is None:
                raise NotFoundError("Password reset token not found")
            if token.used_at is not None:
                raise ConflictError("Password reset token already used")
            if token.expires_at <= now:
                raise UnauthorizedError("Password reset token expired")

            user = uow.get_user(token.user_id)
            if user is None:
                raise NotFoundError("User not found")

            uow.update_user_password(user.id, new_hash)
            uow.mark_password_reset_token_used(token.id, now)
            uow.revoke_all_user_sessions(user.id, reason=REASON_PASSWORD_RESET, at=now)

        emit_security_event(
            self._store,
            self._clock,
            event_type=SecurityEventType.PASSWORD_RESET_COMPLETED,
            tenant_id=user.tenant_id,
            user_id=user.id,
            email=user.email,
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
        )
