"""
===============================================================================
TARJETA CRC — benefits/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer dependencias (store, reloj, tokens, hasher, limiter) siguiendo DIP.
  - Exponer factories de use cases y el autenticador de access tokens.
  - Mantener singletons con caching (lru_cache) para recursos compartidos.
  - Decidir el backend de persistencia según Settings (memory | postgres).

Colaboradores:
  - benefits.crosscutting.config.get_settings
  - benefits.domain.repositories / benefits.domain.services (puertos)
  - benefits.infrastructure.* (implementaciones)
  - benefits.application.usecases.* (casos de uso)

Patrones aplicados:
  - Composition Root
  - Dependency Inversion (use cases dependen de puertos)
  - Lazy singletons con lru_cache

Notas:
  - Este archivo NO contiene lógica de negocio.
  - El LoginAttemptLimiter es memoria de proceso: un singleton por proceso.
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache, partial

from .application.usecases import (
    ConfirmPasswordResetUseCase,
    CreateEnrollmentDraftUseCase,
    CreateInviteCodeUseCase,
    ListEmployeeEnrollmentsUseCase,
    ListSecurityEventsUseCase,
    LoginUseCase,
    LogoutAllUseCase,
    LogoutUseCase,
    RefreshSessionUseCase,
    RequestPasswordResetUseCase,
    SessionIssuer,
    SignupWithInviteUseCase,
    SubmitEnrollmentUseCase,
)
from .crosscutting.config import get_settings
from .domain.repositories import BenefitsStore
from .domain.services import Clock, PasswordHasher, TokenGenerator
from .identity.auth_users import (
    AccessTokenService,
    Authenticator,
    authenticate_access_token,
)
from .identity.login_attempts import LoginAttemptLimiter
from .identity.passwords import Argon2PasswordHasher
from .infrastructure.db import get_pool, init_pool
from .infrastructure.db.errors import PoolNotInitializedError
from .infrastructure.repositories import InMemoryBenefitsStore, PostgresBenefitsStore
from .infrastructure.services import SecretsTokenGenerator, SystemClock

# =============================================================================
# Servicios ambientales (singletons)
# =============================================================================


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock()


@lru_cache(maxsize=1)
def get_token_generator() -> TokenGenerator:
    return SecretsTokenGenerator()


@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    settings = get_settings()
    return Argon2PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )


@lru_cache(maxsize=1)
def get_store() -> BenefitsStore:
    """Store de beneficios (in-memory o Postgres según storage_backend)."""
    settings = get_settings()
    if settings.storage_backend == "postgres":
        try:
            get_pool()
        except PoolNotInitializedError:
            init_pool(
                settings.database_url,
                settings.db_pool_min_size,
                settings.db_pool_max_size,
            )
        return PostgresBenefitsStore()
    return InMemoryBenefitsStore()


@lru_cache(maxsize=1)
def get_login_attempt_limiter() -> LoginAttemptLimiter:
    settings = get_settings()
    return LoginAttemptLimiter(
        get_clock(),
        max_attempts=settings.login_max_attempts,
        lock_minutes=settings.login_lock_minutes,
        stale_hours=settings.login_attempt_stale_hours,
    )


@lru_cache(maxsize=1)
def get_access_token_service() -> AccessTokenService:
    settings = get_settings()
    return AccessTokenService(
        secret=settings.jwt_secret,
        ttl_minutes=settings.jwt_access_ttl_minutes,
        clock=get_clock(),
    )


@lru_cache(maxsize=1)
def get_session_issuer() -> SessionIssuer:
    return SessionIssuer(
        token_service=get_access_token_service(),
        tokens=get_token_generator(),
        clock=get_clock(),
        refresh_ttl_days=get_settings().refresh_token_ttl_days,
    )


def get_access_token_authenticator() -> Authenticator:
    """Token -> AuthUser con chequeo de sesión viva (para require_user)."""
    return partial(
        authenticate_access_token,
        token_service=get_access_token_service(),
        store=get_store(),
        clock=get_clock(),
    )


# =============================================================================
# Use cases (enrollment)
# =============================================================================


def get_create_enrollment_draft_use_case() -> CreateEnrollmentDraftUseCase:
    return CreateEnrollmentDraftUseCase(get_store(), get_clock())


def get_submit_enrollment_use_case() -> SubmitEnrollmentUseCase:
    return SubmitEnrollmentUseCase(
        get_store(),
        get_clock(),
        get_token_generator(),
        child_age_limit=get_settings().child_dependent_age_limit,
    )


def get_list_employee_enrollments_use_case() -> ListEmployeeEnrollmentsUseCase:
    return ListEmployeeEnrollmentsUseCase(get_store())


# =============================================================================
# Use cases (auth)
# =============================================================================


def get_login_use_case() -> LoginUseCase:
    return LoginUseCase(
        get_store(),
        get_login_attempt_limiter(),
        get_password_hasher(),
        get_session_issuer(),
        get_clock(),
    )


def get_refresh_session_use_case() -> RefreshSessionUseCase:
    return RefreshSessionUseCase(get_store(), get_session_issuer(), get_clock())


def get_logout_use_case() -> LogoutUseCase:
    return LogoutUseCase(get_store(), get_clock())


def get_logout_all_use_case() -> LogoutAllUseCase:
    return LogoutAllUseCase(get_store(), get_clock())


def get_request_password_reset_use_case() -> RequestPasswordResetUseCase:
    settings = get_settings()
    return RequestPasswordResetUseCase(
        get_store(),
        get_token_generator(),
        get_clock(),
        ttl_minutes=settings.password_reset_token_ttl_minutes,
        expose_token=not settings.is_production(),
    )


def get_confirm_password_reset_use_case() -> ConfirmPasswordResetUseCase:
    return ConfirmPasswordResetUseCase(get_store(), get_password_hasher(), get_clock())


def get_create_invite_code_use_case() -> CreateInviteCodeUseCase:
    return CreateInviteCodeUseCase(get_store(), get_token_generator(), get_clock())


def get_signup_with_invite_use_case() -> SignupWithInviteUseCase:
    return SignupWithInviteUseCase(
        get_store(), get_password_hasher(), get_session_issuer(), get_clock()
    )


def get_list_security_events_use_case() -> ListSecurityEventsUseCase:
    return ListSecurityEventsUseCase(get_store())


def reset_container() -> None:
    """Limpia los singletons cacheados (tests)."""
    for factory in (
        get_clock,
        get_token_generator,
        get_password_hasher,
        get_store,
        get_login_attempt_limiter,
        get_access_token_service,
        get_session_issuer,
    ):
        factory.cache_clear()
