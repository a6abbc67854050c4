"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Provide deterministic collaborators (fixed clock, seeded tokens)
  - Provide a cheap argon2 hasher and a fresh in-memory store per test
  - Seed a small tenant world (employee, admins, plans, premiums, dependents)

Collaborators:
  - pytest: Test framework
  - benefits.infrastructure: in-memory store, clock, tokens
  - benefits.domain: entities

Notes:
  - Fixtures are auto-discovered by pytest
  - "Today" is 2025-03-10 (UTC) for every test unless a test moves the clock
"""

import os
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

os.environ.setdefault("APP_ENV", "test")

from benefits.crosscutting import config as benefits_config  # noqa: E402

benefits_config.Settings.model_config["env_file"] = None

from benefits.application.usecases.auth.session_issuer import SessionIssuer  # noqa: E402
from benefits.domain.entities import (  # noqa: E402
    BenefitClass,
    CoverageTier,
    Dependent,
    DependentRelationship,
    EmployeeProfile,
    EmploymentStatus,
    Plan,
    PlanPremium,
    PlanType,
    PlanYear,
    Tenant,
)
from benefits.identity.auth_users import AccessTokenService  # noqa: E402
from benefits.identity.login_attempts import LoginAttemptLimiter  # noqa: E402
from benefits.identity.passwords import Argon2PasswordHasher  # noqa: E402
from benefits.identity.users import User, UserRole  # noqa: E402
from benefits.infrastructure.repositories.in_memory import (  # noqa: E402
    InMemoryBenefitsStore,
)
from benefits.infrastructure.services import (  # noqa: E402
    FixedClock,
    SeededTokenGenerator,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
TEST_JWT_SECRET = "test-secret-for-unit-tests-only-0123456789"
EMPLOYEE_PASSWORD = "CorrectHorse9"


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (PostgreSQL, RUN_INTEGRATION=1)"
    )


# ============================================================================
# Deterministic collaborators
# ============================================================================


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def tokens() -> SeededTokenGenerator:
    return SeededTokenGenerator(seed=1234)


@pytest.fixture(scope="session")
def hasher() -> Argon2PasswordHasher:
    """R: Parámetros mínimos de argon2: los tests no miden costo de KDF."""
    return Argon2PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture(scope="session")
def employee_password_hash(hasher: Argon2PasswordHasher) -> str:
    return hasher.hash(EMPLOYEE_PASSWORD)


@pytest.fixture
def store() -> InMemoryBenefitsStore:
    return InMemoryBenefitsStore()


@pytest.fixture
def token_service(clock: FixedClock) -> AccessTokenService:
    return AccessTokenService(secret=TEST_JWT_SECRET, ttl_minutes=60, clock=clock)


@pytest.fixture
def issuer(
    token_service: AccessTokenService, tokens: SeededTokenGenerator, clock: FixedClock
) -> SessionIssuer:
    return SessionIssuer(
        token_service=token_service, tokens=tokens, clock=clock, refresh_ttl_days=30
    )


@pytest.fixture
def limiter(clock: FixedClock) -> LoginAttemptLimiter:
    return LoginAttemptLimiter(clock, max_attempts=5, lock_minutes=15)


# ============================================================================
# Seeded world
# ============================================================================


@dataclass
class World:
    tenant: Tenant
    other_tenant: Tenant
    full_admin: User
    company_admin: User
    employee: User
    other_employee: User
    plan_year: PlanYear
    medical: Plan
    dental: Plan
    child: Dependent
    spouse: Dependent
    old_child: Dependent
    employee_password: str = EMPLOYEE_PASSWORD

    @property
    def tenant_id(self) -> UUID:
        return self.tenant.id


def _user(email: str, role: UserRole, password_hash: str, tenant_id=None) -> User:
    return User(
        id=uuid4(),
        email=email,
        password_hash=password_hash,
        role=role,
        tenant_id=tenant_id,
        created_at=NOW,
    )


def _dependent(tenant_id, employee_id, relationship, dob) -> Dependent:
    return Dependent(
        id=uuid4(),
        tenant_id=tenant_id,
        employee_user_id=employee_id,
        relationship=relationship,
        first_name="Dep",
        last_name="Endent",
        date_of_birth=dob,
        created_at=NOW,
    )


def _premiums(plan_id, tiers) -> list[PlanPremium]:
    return [
        PlanPremium(
            plan_id=plan_id,
            coverage_tier=tier,
            employee_monthly_cost=Decimal("100.00") * (i + 1),
            employer_monthly_cost=Decimal("250.00"),
        )
        for i, tier in enumerate(tiers)
    ]


@pytest.fixture
def world(store: InMemoryBenefitsStore, employee_password_hash: str) -> World:
    """
    R: Tenant con un employee elegible (hire 2024-01-15), un company admin,
    un full admin, plan year 2025 con MEDICAL (4 tiers) y DENTAL
    (solo EMPLOYEE_ONLY), un hijo (2015-05-01), un cónyuge y un hijo de 30.
    """
    tenant = Tenant(id=uuid4(), name="Acme", created_at=NOW)
    other_tenant = Tenant(id=uuid4(), name="Globex", created_at=NOW)
    h = employee_password_hash

    full_admin = _user("root@benefits.test", UserRole.FULL_ADMIN, h)
    company_admin = _user("hr@acme.test", UserRole.COMPANY_ADMIN, h, tenant.id)
    employee = _user("Jane@Acme.test", UserRole.EMPLOYEE, h, tenant.id)
    other_employee = _user("bob@globex.test", UserRole.EMPLOYEE, h, other_tenant.id)

    plan_year = PlanYear(
        id=uuid4(),
        tenant_id=tenant.id,
        name="2025",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
    )
    medical = Plan(
        id=uuid4(),
        tenant_id=tenant.id,
        plan_year_id=plan_year.id,
        plan_type=PlanType.MEDICAL,
        carrier="Carrier A",
        plan_name="Medical PPO",
    )
    dental = Plan(
        id=uuid4(),
        tenant_id=tenant.id,
        plan_year_id=plan_year.id,
        plan_type=PlanType.DENTAL,
        carrier="Carrier B",
        plan_name="Dental Basic",
    )

    child = _dependent(tenant.id, employee.id, DependentRelationship.CHILD, date(2015, 5, 1))
    spouse = _dependent(tenant.id, employee.id, DependentRelationship.SPOUSE, date(1990, 2, 2))
    old_child = _dependent(tenant.id, employee.id, DependentRelationship.CHILD, date(1995, 1, 1))

    with store.unit_of_work() as uow:
        uow.create_tenant(tenant)
        uow.create_tenant(other_tenant)
        for user in (full_admin, company_admin, employee, other_employee):
            uow.create_user(user)
        uow.upsert_employee_profile(
            EmployeeProfile(
                tenant_id=tenant.id,
                user_id=employee.id,
                employee_code="E-001",
                first_name="Jane",
                last_name="Doe",
                date_of_birth=date(1988, 6, 1),
                hire_date=date(2024, 1, 15),
                salary=Decimal("85000.00"),
                benefit_class=BenefitClass.FULL_TIME_ELIGIBLE,
                employment_status=EmploymentStatus.ACTIVE,
                updated_at=NOW,
            )
        )
        uow.create_plan_year(plan_year)
        uow.create_plan(medical)
        uow.create_plan(dental)
        uow.replace_plan_premiums(medical.id, _premiums(medical.id, list(CoverageTier)))
        uow.replace_plan_premiums(
            dental.id, _premiums(dental.id, [CoverageTier.EMPLOYEE_ONLY])
        )
        for dependent in (child, spouse, old_child):
            uow.create_dependent(dependent)
        # R: create_user normaliza el email; devolvemos la versión persistida.
        employee = uow.get_user(employee.id)

    return World(
        tenant=tenant,
        other_tenant=other_tenant,
        full_admin=full_admin,
        company_admin=company_admin,
        employee=employee,
        other_employee=other_employee,
        plan_year=plan_year,
        medical=medical,
        dental=dental,
        child=child,
        spouse=spouse,
        old_child=old_child,
    )
