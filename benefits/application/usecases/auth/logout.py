"""
===============================================================================
USE CASES: Logout / Logout All
===============================================================================

Logout:
    Best-effort. Si el refresh token corresponde a una sesión, se revoca con
    reason "logout". Si no existe, igual se responde éxito (no se filtra si
    el token era válido).

Logout All:
    Revoca TODAS las sesiones del usuario (reason "logout_all"). Idempotente:
    las ya revocadas conservan su reason original.

Collaborators:
    - BenefitsStore, Clock
    - audit.emit_security_event
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ....audit import emit_security_event
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEventType
from ....domain.services import Clock
from ....identity.auth_users import hash_opaque_token

REASON_LOGOUT = "logout"
REASON_LOGOUT_ALL = "logout_all"


@dataclass(frozen=True)
class LogoutInput:
    refresh_token: str
    ip_address: str | None = None
    user_agent: str | None = None


class LogoutUseCase:
    def __init__(self, store: BenefitsStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def execute(self, input_data: LogoutInput) -> None:
        token_hash = hash_opaque_token(input_data.refresh_token or "")
        with self._store.unit_of_work() as uow:
            session = uow.get_auth_session_by_token_hash(token_hash, for_update=True)
            if session is None:
                return
            uow.revoke_auth_session(
                session.id, reason=REASON_LOGOUT, at=self._clock.now()
            )

        emit_security_event(
            self._store,
            self._clock,
            event_type=SecurityEventType.AUTH_LOGOUT,
            user_id=session.user_id,
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
            metadata={"session_id": str(session.id)},
        )


@dataclass(frozen=True)
class LogoutAllInput:
    user_id: UUID
    ip_address: str | None = None
    user_agent: str | None = None


class LogoutAllUseCase:
    def __init__(self, store: BenefitsStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def execute(self, input_data: LogoutAllInput) -> None:
        with self._store.unit_of_work() as uow:
            user = uow.get_user(input_data.user_id)
            uow.revoke_all_user_sessions(
                input_data.user_id, reason=REASON_LOGOUT_ALL, at=self._clock.now()
            )

        emit_security_event(
            self._store,
            self._clock,
            event_type=SecurityEventType.AUTH_LOGOUT_ALL,
            tenant_id=user.tenant_id if user else None,
            user_id=input_data.user_id,
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
        )
