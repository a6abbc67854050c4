"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Tenant, EmployeeProfile, Plan, Dependent, Enrollment,
    AuthSession, PasswordResetToken, InviteCode)

Responsabilidades:
    - Definir estructuras centrales del negocio (sin infraestructura).
    - Brindar helpers mínimos para invariantes simples (sesión activa, invite usable).
    - Mantener tipos claros para casos de uso y repositorios.

Colaboradores:
    - domain.repositories: persisten/recuperan estas entidades.
    - application/usecases: construyen/consumen estas entidades.

Principios:
    - Sin dependencias a DB/FastAPI.
    - Dataclasses inmutables: los cambios se expresan con dataclasses.replace().
    - Montos como Decimal (nunca float).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class BenefitClass(str, Enum):
    FULL_TIME_ELIGIBLE = "FULL_TIME_ELIGIBLE"
    INELIGIBLE = "INELIGIBLE"


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TERMED = "TERMED"


class PlanType(str, Enum):
    MEDICAL = "MEDICAL"
    DENTAL = "DENTAL"
    VISION = "VISION"


class CoverageTier(str, Enum):
    EMPLOYEE_ONLY = "EMPLOYEE_ONLY"
    EMPLOYEE_SPOUSE = "EMPLOYEE_SPOUSE"
    EMPLOYEE_CHILDREN = "EMPLOYEE_CHILDREN"
    FAMILY = "FAMILY"


class EnrollmentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"


class DependentRelationship(str, Enum):
    SPOUSE = "SPOUSE"
    CHILD = "CHILD"


class InviteTargetRole(str, Enum):
    COMPANY_ADMIN = "COMPANY_ADMIN"
    EMPLOYEE = "EMPLOYEE"


# ---------------------------------------------------------------------------
# Tenant / Employee
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Tenant:
    """Empresa empleadora: todo dato de empleados y planes se particiona por tenant."""

    id: UUID
    name: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class EmployeeProfile:
    """
    Perfil laboral del empleado (0..1 por usuario EMPLOYEE).

    Se crea/actualiza por upsert; nunca se borra.
    """

    tenant_id: UUID
    user_id: UUID
    employee_code: str
    first_name: str
    last_name: str
    date_of_birth: date
    hire_date: date
    salary: Decimal
    benefit_class: BenefitClass
    employment_status: EmploymentStatus
    updated_at: Optional[datetime] = None

    @property
    def is_benefits_eligible(self) -> bool:
        return (
            self.benefit_class == BenefitClass.FULL_TIME_ELIGIBLE
            and self.employment_status == EmploymentStatus.ACTIVE
        )


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlanYear:
    """Ciclo de beneficios del tenant (rangos no solapados por tenant)."""

    id: UUID
    tenant_id: UUID
    name: str
    start_date: date
    end_date: date


@dataclass(frozen=True, slots=True)
class Plan:
    id: UUID
    tenant_id: UUID
    plan_year_id: UUID
    plan_type: PlanType
    carrier: str
    plan_name: str


@dataclass(frozen=True, slots=True)
class PlanPremium:
    """Costo mensual por (plan, tier). Como máximo una fila por par."""

    plan_id: UUID
    coverage_tier: CoverageTier
    employee_monthly_cost: Decimal
    employer_monthly_cost: Decimal


# ---------------------------------------------------------------------------
# Dependents
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Dependent:
    id: UUID
    tenant_id: UUID
    employee_user_id: UUID
    relationship: DependentRelationship
    first_name: str
    last_name: str
    date_of_birth: date
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ElectionSnapshot:
    """
    Elección por tipo de plan con costos COPIADOS del premium vigente.

    Es un snapshot: cambios posteriores en PlanPremium no lo afectan hasta el
    próximo draft o submit.
    """

    plan_type: PlanType
    plan_id: UUID
    coverage_tier: CoverageTier
    employee_monthly_cost: Decimal
    employer_monthly_cost: Decimal


@dataclass(frozen=True, slots=True)
class Enrollment:
    """
    Agregado central del ciclo DRAFT -> SUBMITTED (terminal).

    Invariantes:
      - Como máximo un DRAFT y un SUBMITTED por (employee, plan_year).
      - Una elección por plan_type.
    """

    id: UUID
    tenant_id: UUID
    employee_user_id: UUID
    plan_year_id: UUID
    status: EnrollmentStatus
    elections: tuple[ElectionSnapshot, ...] = ()
    dependent_ids: tuple[UUID, ...] = ()
    effective_date: Optional[date] = None
    submitted_at: Optional[datetime] = None
    confirmation_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_submitted(self) -> bool:
        return self.status == EnrollmentStatus.SUBMITTED


# ---------------------------------------------------------------------------
# Sessions / tokens / invites
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AuthSession:
    """
    Sesión de refresh. Solo se guarda el hash del refresh token.

    Activa sii revoked_at is None y expires_at > now.
    """

    id: UUID
    user_id: UUID
    refresh_token_hash: str
    created_at: datetime
    expires_at: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoke_reason: Optional[str] = None
    replaced_by_session_id: Optional[UUID] = None

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at > now


@dataclass(frozen=True, slots=True)
class PasswordResetToken:
    id: UUID
    user_id: UUID
    token_hash: str
    created_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class InviteCode:
    """Código de alta de usuarios para un tenant y rol destino."""

    id: UUID
    tenant_id: UUID
    code: str
    target_role: InviteTargetRole
    created_by_user_id: UUID
    max_uses: Optional[int] = None
    uses_count: int = 0
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.uses_count >= self.max_uses


@dataclass(frozen=True, slots=True)
class ElectionRequest:
    """Elección tal como llega del caller (valores crudos, aún sin normalizar)."""

    plan_type: str
    plan_id: UUID
    coverage_tier: str


__all__ = [
    "BenefitClass",
    "EmploymentStatus",
    "PlanType",
    "CoverageTier",
    "EnrollmentStatus",
    "DependentRelationship",
    "InviteTargetRole",
    "Tenant",
    "EmployeeProfile",
    "PlanYear",
    "Plan",
    "PlanPremium",
    "Dependent",
    "ElectionSnapshot",
    "ElectionRequest",
    "Enrollment",
    "AuthSession",
    "PasswordResetToken",
    "InviteCode",
]
