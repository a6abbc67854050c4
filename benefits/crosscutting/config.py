"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide the defaults the enrollment and session rules rely on

Collaborators:
  - container.py: reads settings to build stores, limiter and use cases
  - infrastructure/db/pool.py: statement timeout
  - crosscutting/logger.py: log level and format

Constraints:
  - Lives in the infrastructure layer, NOT in domain/application
  - No business logic: pure configuration

Notes:
  - Singleton via lru_cache
  - Production guards fail fast on weak secrets
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/test/production)
        storage_backend: memory | postgres
        database_url: PostgreSQL connection string (required for postgres)
        jwt_secret: Secret for signing HS256 access tokens
        jwt_access_ttl_minutes: Access token TTL in minutes
        refresh_token_ttl_days: Refresh session lifetime in days
        password_reset_token_ttl_minutes: Reset token lifetime
        login_max_attempts: Failures before the (email, ip) key is locked
        login_lock_minutes: Lockout window once the threshold is reached
        login_attempt_stale_hours: Unlocked entries older than this are purged
        child_dependent_age_limit: Children at or over this age are rejected
        argon2_*: Password hashing cost parameters
    """

    # Environment
    app_env: str = "development"

    # Storage
    storage_backend: str = "memory"
    database_url: str = ""

    # Database - Connection Pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30000  # 30 seconds

    # Security - JWT Auth
    jwt_secret: str = "dev-secret"
    jwt_access_ttl_minutes: int = 60

    # Security - Sessions
    refresh_token_ttl_days: int = 30
    password_reset_token_ttl_minutes: int = 30

    # Security - Login attempts
    login_max_attempts: int = 5
    login_lock_minutes: int = 15
    login_attempt_stale_hours: int = 24

    # Enrollment rules
    child_dependent_age_limit: int = 26

    # Password hashing (argon2id)
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 2

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("storage_backend")
    @classmethod
    def storage_backend_valid(cls, v: str) -> str:
        backend = (v or "memory").strip().lower()
        if backend not in {"memory", "postgres"}:
            raise ValueError("storage_backend must be memory or postgres")
        return backend

    @field_validator(
        "login_max_attempts",
        "login_lock_minutes",
        "login_attempt_stale_hours",
        "jwt_access_ttl_minutes",
        "refresh_token_ttl_days",
        "password_reset_token_ttl_minutes",
        "child_dependent_age_limit",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @model_validator(mode="after")
    def validate_storage_requirements(self):
        if self.storage_backend == "postgres" and not self.database_url.strip():
            raise ValueError("DATABASE_URL is required when STORAGE_BACKEND=postgres")
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError(
                f"db_pool_min_size ({self.db_pool_min_size}) must be <= "
                f"db_pool_max_size ({self.db_pool_max_size})"
            )
        return self

    @model_validator(mode="after")
    def validate_security_requirements(self):
        if not self.is_production():
            return self

        insecure_secrets = {"dev-secret", "changeme", "change-me", "password"}
        jwt_secret = (self.jwt_secret or "").strip()
        if not jwt_secret or jwt_secret in insecure_secrets:
            raise ValueError(
                "JWT_SECRET must be set to a strong, non-default value in production"
            )
        if len(jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters in production")
        if self.storage_backend != "postgres":
            raise ValueError("STORAGE_BACKEND must be postgres in production")

        return self

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are missing or invalid
    """
    return Settings()
