"""
===============================================================================
USE CASE: Refresh Session (rotación con detección de replay)
===============================================================================

Business Goal:
    Cambiar un refresh token por un par nuevo. Cada refresh token sirve UNA
    sola vez.

Why (Context / Intención):
    - Rotar-y-encadenar: la sesión vieja queda revocada con reason "rotated"
      y replaced_by_session_id = nueva. Un token ya rotado que vuelve a
      aparecer es reuso: se revocan TODAS las sesiones del usuario.
    - Distinguir los casos:
        * hash desconocido  -> 401, sin cascada
        * sesión revocada   -> 401 + replay (cascada, severidad ERROR)
        * sesión expirada   -> 401, evento WARN, sin cascada
    - La cascada se commitea ANTES de que el caller vea el 401.

-------------------------------------------------------------------------------
CRC CARD
-------------------------------------------------------------------------------
Class:
    RefreshSessionUseCase

Collaborators:
    - BenefitsStore (get_auth_session_by_token_hash FOR UPDATE, revoke_*)
    - SessionIssuer, Clock
    - audit.emit_security_event
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from ....audit import emit_security_event
from ....crosscutting.exceptions import UnauthorizedError
from ....domain.entities import AuthSession
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEventType, SecuritySeverity
from ....domain.services import Clock
from ....identity.auth_users import hash_opaque_token
from ....identity.users import User
from .session_issuer import AuthTokens, IssuedSession, SessionIssuer

REASON_ROTATED = "rotated"
REASON_REPLAY = "refresh_token_replay"


class _Outcome(str, Enum):
    ROTATED = "rotated"
    NOT_FOUND = "not_found"
    REPLAY = "replay"
    EXPIRED = "expired"
    INACTIVE_USER = "inactive_user"


@dataclass(frozen=True)
class RefreshSessionInput:
    refresh_token: str
    ip_address: str | None = None
    user_agent: str | None = None


class RefreshSessionUseCase:
    def __init__(self, store: BenefitsStore, issuer: SessionIssuer, clock: Clock) -> None:
        self._store = store
        self._issuer = issuer
        self._clock = clock

    def execute(self, input_data: RefreshSessionInput) -> AuthTokens:
        now = self._clock.now()
        token_hash = hash_opaque_token(input_data.refresh_token or "")

        session: AuthSession | None = None
        user: User | None = None
        issued: IssuedSession | None = None

        # R: Todo el resultado se decide dentro de la transacción; los errores
        # se levantan recién después del commit.
        with self._store.unit_of_work() as uow:
            session = uow.get_auth_session_by_token_hash(token_hash, for_update=True)
            if session is None:
                outcome = _Outcome.NOT_FOUND
            elif session.revoked_at is not None:
                uow.revoke_all_user_sessions(session.user_id, reason=REASON_REPLAY, at=now)
                outcome = _Outcome.REPLAY
            elif session.expires_at <= now:
                outcome = _Outcome.EXPIRED
            else:
                user = uow.get_user(session.user_id)
                if user is None or not user.is_active:
                    outcome = _Outcome.INACTIVE_USER
                else:
                    issued = self._issuer.issue(
                        uow,
                        user,
                        user_agent=input_data.user_agent or session.user_agent,
                        ip_address=input_data.ip_address,
                    )
                    uow.revoke_auth_session(
                        session.id,
                        reason=REASON_ROTATED,
                        at=now,
                        replaced_by_session_id=issued.session.id,
                    )
                    outcome = _Outcome.ROTATED

        if outcome is _Outcome.ROTATED:
            self._emit(
                SecurityEventType.AUTH_REFRESH_SUCCESS,
                SecuritySeverity.INFO,
                input_data,
                user_id=session.user_id,
                tenant_id=user.tenant_id,
                metadata={
                    "previous_session_id": str(session.id),
                    "session_id": str(issued.session.id),
                },
            )
            return issued.tokens

        if outcome is _Outcome.REPLAY:
            self._emit(
                SecurityEventType.AUTH_REFRESH_REPLAY_DETECTED,
                SecuritySeverity.ERROR,
                input_data,
                user_id=session.user_id,
                metadata={
                    "session_id": str(session.id),
                    "revoked_reason": session.revoke_reason,
                },
            )
            raise UnauthorizedError("Refresh token reuse detected")

        if outcome is _Outcome.EXPIRED:
            self._emit(
                SecurityEventType.AUTH_REFRESH_EXPIRED,
                SecuritySeverity.WARN,
                input_data,
                user_id=session.user_id,
                metadata={"session_id": str(session.id)},
            )
            raise UnauthorizedError("Refresh token expired")

        self._emit(
            SecurityEventType.AUTH_REFRESH_FAILED,
            SecuritySeverity.WARN,
            input_data,
            user_id=session.user_id if session else None,
            metadata={"reason": outcome.value},
        )
        raise UnauthorizedError("Invalid refresh token")

    def _emit(
        self,
        event_type: SecurityEventType,
        severity: SecuritySeverity,
        input_data: RefreshSessionInput,
        *,
        user_id: UUID | None = None,
        tenant_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        emit_security_event(
            self._store,
            self._clock,
            event_type=event_type,
            severity=severity,
            tenant_id=tenant_id,
            user_id=user_id,
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
            metadata=metadata,
        )
