"""
===============================================================================
TARJETA CRC — identity/auth_users.py
===============================================================================

Módulo:
    Autenticación de Usuarios (JWT + tokens opacos)

Responsabilidades:
    - Emitir JWT de acceso con expiración y session id embebido (sid).
    - Decodificar y validar JWT (firma, exp contra el reloj inyectado, claims).
    - Hashear tokens opacos (refresh / reset) con SHA-256.
    - Autenticar un access token: si trae sid, la sesión debe seguir ACTIVA.
    - Exponer dependencias FastAPI (require_user, require_roles).

Colaboradores:
    - crosscutting.config.get_settings: secreto y TTL.
    - crosscutting.error_responses: unauthorized/forbidden estándar.
    - domain.repositories.BenefitsStore: is_auth_session_active.
    - identity.users: AuthUser / UserRole.

Decisiones de diseño:
    - El access token no es revocable; logout es efectivo al instante porque
      cada request valida la sesión referenciada por sid.
    - Claims: sub, email, role, tenant_id, sid, iat, exp, typ.
    - No loguear secretos ni tokens; solo info mínima y segura.
===============================================================================
"""

from __future__ import annotations

import hashlib
from datetime import timedelta
from typing import Callable, Optional
from uuid import UUID

import jwt
from fastapi import Header, Request

from ..context import set_actor_context
from ..crosscutting.error_responses import forbidden, unauthorized
from ..crosscutting.exceptions import UnauthorizedError
from ..crosscutting.logger import logger
from ..domain.repositories import BenefitsStore
from ..domain.services import Clock
from .users import AuthUser, User, UserRole

# ---------------------------------------------------------------------------
# Constantes (evitan strings mágicos)
# ---------------------------------------------------------------------------

JWT_ALGORITHM: str = "HS256"

CLAIM_SUB: str = "sub"
CLAIM_EMAIL: str = "email"
CLAIM_ROLE: str = "role"
CLAIM_TENANT: str = "tenant_id"
CLAIM_SID: str = "sid"
CLAIM_IAT: str = "iat"
CLAIM_EXP: str = "exp"
CLAIM_TYP: str = "typ"

TOKEN_TYPE_ACCESS: str = "access"


def hash_opaque_token(token: str) -> str:
    """SHA-256 hex del token opaco. Es lo único que se persiste."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Tokens JWT (emitir / decodificar)
# ---------------------------------------------------------------------------


class AccessTokenService:
    """Firma y verifica access tokens HS256 con el reloj inyectado."""

    def __init__(self, *, secret: str, ttl_minutes: int, clock: Clock):
        self._secret = secret
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock

    @property
    def expires_in_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def create_access_token(
        self, user: User, *, session_id: UUID | None = None
    ) -> tuple[str, int]:
        """Crea un JWT de acceso firmado. Retorna (token, expires_in_seconds)."""
        now = self._clock.now()
        payload: dict[str, object] = {
            CLAIM_SUB: str(user.id),
            CLAIM_EMAIL: user.email,
            CLAIM_ROLE: user.role.value,
            CLAIM_TENANT: str(user.tenant_id) if user.tenant_id else None,
            CLAIM_IAT: int(now.timestamp()),
            CLAIM_EXP: int((now + self._ttl).timestamp()),
            CLAIM_TYP: TOKEN_TYPE_ACCESS,
        }
        if session_id is not None:
            payload[CLAIM_SID] = str(session_id)

        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        return token, self.expires_in_seconds

    def decode_access_token(self, token: str) -> AuthUser:
        """
        Decodifica y valida un JWT de acceso.

        Errores:
            - UnauthorizedError si expiró, la firma es inválida o faltan claims.
        """
        try:
            # R: exp/iat se validan contra el reloj inyectado, no contra time.time().
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "require": [CLAIM_SUB, CLAIM_EMAIL, CLAIM_ROLE, CLAIM_EXP],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid or expired token") from exc

        try:
            exp = int(payload[CLAIM_EXP])
        except (TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid or expired token") from exc
        if exp <= int(self._clock.now().timestamp()):
            raise UnauthorizedError("Invalid or expired token")

        if payload.get(CLAIM_TYP, TOKEN_TYPE_ACCESS) != TOKEN_TYPE_ACCESS:
            raise UnauthorizedError("Invalid token type")

        try:
            user_id = UUID(str(payload[CLAIM_SUB]))
            role = UserRole(str(payload[CLAIM_ROLE]))
            tenant_raw = payload.get(CLAIM_TENANT)
            tenant_id = UUID(str(tenant_raw)) if tenant_raw else None
            sid_raw = payload.get(CLAIM_SID)
            session_id = UUID(str(sid_raw)) if sid_raw else None
        except ValueError as exc:
            raise UnauthorizedError("Invalid or expired token") from exc

        return AuthUser(
            user_id=user_id,
            email=str(payload[CLAIM_EMAIL]),
            role=role,
            tenant_id=tenant_id,
            session_id=session_id,
        )


def authenticate_access_token(
    token: str,
    *,
    token_service: AccessTokenService,
    store: BenefitsStore,
    clock: Clock,
) -> AuthUser:
    """
    Token -> AuthUser verificado.

    Si el token embebe sid, la sesión debe estar activa ahora mismo.
    """
    auth_user = token_service.decode_access_token(token)

    if auth_user.session_id is not None:
        with store.unit_of_work() as uow:
            active = uow.is_auth_session_active(auth_user.session_id, clock.now())
        if not active:
            logger.info(
                "auth.session_inactive",
                extra={
                    "user_id": str(auth_user.user_id),
                    "session_id": str(auth_user.session_id),
                },
            )
            raise UnauthorizedError("Session is no longer active")

    return auth_user


# ---------------------------------------------------------------------------
# Extracción de token (header)
# ---------------------------------------------------------------------------


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extrae token desde `Authorization: Bearer <token>`."""
    if not authorization:
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


# ---------------------------------------------------------------------------
# Dependencias FastAPI
# ---------------------------------------------------------------------------

Authenticator = Callable[[str], AuthUser]


def _default_authenticator() -> Authenticator:
    # Lazy import: container arma use cases que dependen de este módulo.
    from ..container import get_access_token_authenticator

    return get_access_token_authenticator()


def require_user(
    authenticator_provider: Optional[Callable[[], Authenticator]] = None,
) -> Callable:
    """Dependency FastAPI: requiere usuario autenticado con sesión viva."""
    provider = authenticator_provider or _default_authenticator

    async def dependency(
        request: Request,
        authorization: str | None = Header(None, alias="Authorization"),
    ) -> AuthUser:
        if not authorization:
            raise unauthorized("Missing Authorization header")
        token = _extract_bearer_token(authorization)
        if not token:
            raise unauthorized(
                "Authorization header must be in Bearer <token> format"
            )

        try:
            user = provider()(token)
        except UnauthorizedError as exc:
            raise unauthorized(exc.message) from exc

        request.state.user = user
        set_actor_context(
            actor_id=str(user.user_id),
            tenant_id=str(user.tenant_id) if user.tenant_id else "",
        )
        return user

    return dependency


def require_roles(
    *roles: UserRole | str,
    authenticator_provider: Optional[Callable[[], Authenticator]] = None,
) -> Callable:
    """Dependency FastAPI: requiere alguno de los roles indicados."""
    required = [UserRole(r) for r in roles]
    user_dependency = require_user(authenticator_provider)

    async def dependency(
        request: Request,
        authorization: str | None = Header(None, alias="Authorization"),
    ) -> AuthUser:
        user = await user_dependency(request, authorization)
        if user.role not in required:
            raise forbidden(
                "Requires role: " + ", ".join(role.value for role in required)
            )
        return user

    return dependency
