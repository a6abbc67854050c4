"""
===============================================================================
TARJETA CRC — application/usecases/auth/session_issuer.py
===============================================================================

Responsabilidades:
  - Camino ÚNICO de emisión de sesiones (login, signup, refresh).
  - Generar refresh token opaco, persistir SOLO su hash, firmar el JWT de
    acceso con el session id embebido (sid).

Colaboradores:
  - TokenGenerator (aleatoriedad), Clock
  - identity.auth_users: AccessTokenService / hash_opaque_token
  - BenefitsUnitOfWork.create_auth_session
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from uuid import uuid4

from ....domain.entities import AuthSession
from ....domain.repositories import BenefitsUnitOfWork
from ....domain.services import Clock, TokenGenerator
from ....identity.auth_users import AccessTokenService, hash_opaque_token
from ....identity.users import AuthUser, User


@dataclass(frozen=True)
class AuthTokens:
    """Par de tokens devuelto al caller. El refresh token viaja una sola vez."""

    access_token: str
    refresh_token: str
    expires_in: int
    user: AuthUser
    token_type: str = "bearer"


@dataclass(frozen=True)
class IssuedSession:
    session: AuthSession
    tokens: AuthTokens


def to_auth_user(user: User) -> AuthUser:
    return AuthUser(
        user_id=user.id,
        email=user.email,
        role=user.role,
        tenant_id=user.tenant_id,
    )


class SessionIssuer:
    def __init__(
        self,
        *,
        token_service: AccessTokenService,
        tokens: TokenGenerator,
        clock: Clock,
        refresh_ttl_days: int,
    ) -> None:
        self._token_service = token_service
        self._tokens = tokens
        self._clock = clock
        self._refresh_ttl = timedelta(days=refresh_ttl_days)

    def issue(
        self,
        uow: BenefitsUnitOfWork,
        user: User,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedSession:
        now = self._clock.now()
        refresh_token = self._tokens.opaque_token()
        session = uow.create_auth_session(
            AuthSession(
                id=uuid4(),
                user_id=user.id,
                refresh_token_hash=hash_opaque_token(refresh_token),
                created_at=now,
                expires_at=now + self._refresh_ttl,
                user_agent=user_agent,
                ip_address=ip_address,
            )
        )
        access_token, expires_in = self._token_service.create_access_token(
            user, session_id=session.id
        )
        return IssuedSession(
            session=session,
            tokens=AuthTokens(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=expires_in,
                user=replace(to_auth_user(user), session_id=session.id),
            ),
        )
