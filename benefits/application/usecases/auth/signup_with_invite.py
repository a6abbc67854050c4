"""
===============================================================================
USE CASE: Signup With Invite
===============================================================================

Business Goal:
    Alta de usuario consumiendo un invite code; la sesión se emite igual que
    en login.

Why (Context / Intención):
    - El consumo (uses_count / is_active) es read-modify-write: se hace bajo
      row lock del invite para que max_uses se respete con signups
      concurrentes.
    - Al alcanzar max_uses el invite queda inactivo.

Error Mapping:
    - NOT_FOUND: invite desconocido
    - BUSINESS_RULE_VIOLATION: invite inactivo / expirado / agotado
    - CONFLICT: email ya registrado
    - VALIDATION_ERROR: password demasiado corta
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from ....audit import emit_security_event
from ....crosscutting.exceptions import BusinessRuleError, ConflictError, NotFoundError
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEventType
from ....domain.services import Clock, PasswordHasher
from ....identity.passwords import assert_password_policy
from ....identity.users import User, UserRole, normalize_email
from .session_issuer import AuthTokens, SessionIssuer


@dataclass(frozen=True)
class SignupWithInviteInput:
    invite_code: str
    email: str
    password: str
    ip_address: str | None = None
    user_agent: str | None = None


class SignupWithInviteUseCase:
    def __init__(
        self,
        store: BenefitsStore,
        hasher: PasswordHasher,
        issuer: SessionIssuer,
        clock: Clock,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._issuer = issuer
        self._clock = clock

    def execute(self, input_data: SignupWithInviteInput) -> AuthTokens:
        assert_password_policy(input_data.password)
        password_hash = self._hasher.hash(input_data.password)
        email = normalize_email(input_data.email)
        now = self._clock.now()

        with self._store.unit_of_work() as uow:
            invite = uow.get_invite_code_by_code(
                (input_data.invite_code or "").strip(), for_update=True
            )
            if invite is None:
                raise NotFoundError("Invite code not found")
            if not invite.is_active:
                raise BusinessRuleError("Invite code is inactive")
            if invite.is_expired(now):
                raise BusinessRuleError("Invite code is expired")
            if invite.is_exhausted:
                raise BusinessRuleError("Invite code has reached max uses")
            if uow.get_user_by_email(email) is not None:
                raise ConflictError("Email already exists")

            user = uow.create_user(
                User(
                    id=uuid4(),
                    email=email,
                    password_hash=password_hash,
                    role=UserRole(invite.target_role.value),
                    tenant_id=invite.tenant_id,
                    is_active=True,
                    created_at=now,
                )
            )

            uses_count = invite.uses_count + 1
            still_active = invite.max_uses is None or uses_count < invite.max_uses
            uow.update_invite_code_usage(
                invite.id, uses_count=uses_count, is_active=still_active
            )

            issued = self._issuer.issue(
                uow,
                user,
                user_agent=input_data.user_agent,
                ip_address=input_data.ip_address,
            )

        emit_security_event(
            self._store,
            self._clock,
            event_type=SecurityEventType.AUTH_SIGNUP_SUCCESS,
            tenant_id=user.tenant_id,
            user_id=user.id,
            email=email,
            ip_address=input_data.ip_address,
            user_agent=input_data.user_agent,
            metadata={"invite_id": str(invite.id), "session_id": str(issued.session.id)},
        )
        return issued.tokens
