"""
Name: Integration Test DB Setup

Responsibilities:
  - Run Alembic migrations once per test session
  - Provide a dedicated psycopg pool and a PostgresBenefitsStore
  - Truncate every table before each test so the seeded world is fresh

Notes:
  - Only runs when RUN_INTEGRATION=1
  - Uses DATABASE_URL from environment (see alembic/env.py)
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from psycopg_pool import ConnectionPool

from benefits.infrastructure.repositories.postgres import PostgresBenefitsStore

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_HOST_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "benefits")
DEFAULT_DATABASE_URL = (
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

TABLES = (
    "security_events",
    "invite_codes",
    "password_reset_tokens",
    "auth_sessions",
    "enrollment_dependents",
    "enrollment_elections",
    "enrollments",
    "dependents",
    "plan_premiums",
    "plans",
    "plan_years",
    "employee_profiles",
    "users",
    "tenants",
)


def _database_url() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


@pytest.fixture(scope="session")
def apply_migrations() -> None:
    """Run Alembic migrations for integration tests."""
    if os.getenv("RUN_INTEGRATION") != "1":
        pytest.skip("Set RUN_INTEGRATION=1 to run integration tests")

    os.environ["DATABASE_URL"] = _database_url()
    repo_root = Path(__file__).resolve().parents[2]
    config = Config(str(repo_root / "alembic.ini"))
    config.set_main_option("script_location", str(repo_root / "alembic"))
    command.upgrade(config, "head")


@pytest.fixture(scope="session")
def pg_pool(apply_migrations):
    pool = ConnectionPool(conninfo=_database_url(), min_size=1, max_size=8, open=True)
    yield pool
    pool.close()


@pytest.fixture
def store(pg_pool) -> PostgresBenefitsStore:
    """Overrides the in-memory store: same fixtures, real database."""
    with pg_pool.connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(TABLES)} CASCADE")
    return PostgresBenefitsStore(pool=pg_pool)
