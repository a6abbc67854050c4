"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/store.py
============================================================
Class: InMemoryBenefitsStore / InMemoryBenefitsUnitOfWork

Responsibilities:
  - Almacenar tenants, usuarios, planes, enrollments, sesiones, tokens,
    invites y eventos en memoria (tests / local dev).
  - Implementar domain.repositories.BenefitsUnitOfWork con la MISMA
    semántica observable que el adapter Postgres.
  - Transaccionalidad: una unidad de trabajo a la vez (RLock del store) y
    snapshot de las tablas restaurado si la unidad falla.
  - Replicar las restricciones únicas del schema (email, refresh hash,
    invite code, un DRAFT y un SUBMITTED por empleado+plan year).

Collaborators:
  - domain.entities / domain.security_events / identity.users
  - domain.repositories.BenefitsStore (contrato a implementar)

Constraints / Notes:
  - Entidades inmutables (frozen): el snapshot es una copia superficial de
    cada "tabla" y nunca comparte estado mutable con los callers.
  - Repo puro: NO aplica reglas de negocio (viven en los use cases).
============================================================
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from threading import RLock
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
from uuid import UUID

from ....crosscutting.exceptions import ConflictError
from ....crosscutting.logger import logger
from ....domain.entities import (
    AuthSession,
    CoverageTier,
    Dependent,
    EmployeeProfile,
    Enrollment,
    EnrollmentStatus,
    InviteCode,
    PasswordResetToken,
    Plan,
    PlanPremium,
    PlanYear,
    Tenant,
)
from ....domain.security_events import SecurityEvent, SecuritySeverity
from ....identity.users import User, normalize_email


@dataclass
class _Tables:
    """R: Las "tablas" en memoria. Insertion order = orden de creación."""

    tenants: Dict[UUID, Tenant] = field(default_factory=dict)
    users: Dict[UUID, User] = field(default_factory=dict)
    profiles: Dict[UUID, EmployeeProfile] = field(default_factory=dict)
    plan_years: Dict[UUID, PlanYear] = field(default_factory=dict)
    plans: Dict[UUID, Plan] = field(default_factory=dict)
    premiums: Dict[Tuple[UUID, CoverageTier], PlanPremium] = field(
        default_factory=dict
    )
    dependents: Dict[UUID, Dependent] = field(default_factory=dict)
    enrollments: Dict[UUID, Enrollment] = field(default_factory=dict)
    sessions: Dict[UUID, AuthSession] = field(default_factory=dict)
    reset_tokens: Dict[UUID, PasswordResetToken] = field(default_factory=dict)
    invites: Dict[UUID, InviteCode] = field(default_factory=dict)
    security_events: List[SecurityEvent] = field(default_factory=list)

    def snapshot(self) -> "_Tables":
        return _Tables(**{name: copy.copy(value) for name, value in vars(self).items()})

    def restore(self, snapshot: "_Tables") -> None:
        """R: Restaura in-place (las unidades de trabajo anidadas ven el mismo objeto)."""
        for name, value in vars(snapshot).items():
            setattr(self, name, value)


class InMemoryBenefitsUnitOfWork:
    """
    Vista transaccional sobre las tablas del store.

    Se obtiene solo vía InMemoryBenefitsStore.unit_of_work().
    """

    def __init__(self, tables: _Tables) -> None:
        self._t = tables

    # =========================================================
    # Tenants / users
    # =========================================================
    def create_tenant(self, tenant: Tenant) -> Tenant:
        if tenant.id in self._t.tenants:
            raise ConflictError(f"Tenant {tenant.id} already exists")
        self._t.tenants[tenant.id] = tenant
        return tenant

    def get_tenant(self, tenant_id: UUID) -> Optional[Tenant]:
        return self._t.tenants.get(tenant_id)

    def create_user(self, user: User) -> User:
        user = replace(user, email=normalize_email(user.email))
        if any(u.email == user.email for u in self._t.users.values()):
            raise ConflictError("Email is already registered")
        self._t.users[user.id] = user
        return user

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._t.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        for user in self._t.users.values():
            if user.email == normalized:
                return user
        return None

    def update_user_password(self, user_id: UUID, password_hash: str) -> None:
        user = self._t.users.get(user_id)
        if user is not None:
            self._t.users[user_id] = replace(user, password_hash=password_hash)

    # =========================================================
    # Employee profiles
    # =========================================================
    def upsert_employee_profile(self, profile: EmployeeProfile) -> EmployeeProfile:
        for other in self._t.profiles.values():
            if (
                other.user_id != profile.user_id
                and other.tenant_id == profile.tenant_id
                and other.employee_code == profile.employee_code
            ):
                raise ConflictError("Employee code already exists in tenant")
        self._t.profiles[profile.user_id] = profile
        return profile

    def get_employee_profile(self, user_id: UUID) -> Optional[EmployeeProfile]:
        return self._t.profiles.get(user_id)

    # =========================================================
    # Plan years / plans / premiums
    # =========================================================
    def create_plan_year(self, plan_year: PlanYear) -> PlanYear:
        for other in self._t.plan_years.values():
            if (
                other.tenant_id == plan_year.tenant_id
                and other.start_date <= plan_year.end_date
                and plan_year.start_date <= other.end_date
            ):
                raise ConflictError("Plan year overlaps an existing plan year")
        self._t.plan_years[plan_year.id] = plan_year
        return plan_year

    def get_plan_year(
        self, tenant_id: UUID, plan_year_id: UUID
    ) -> Optional[PlanYear]:
        plan_year = self._t.plan_years.get(plan_year_id)
        if plan_year is None or plan_year.tenant_id != tenant_id:
            return None
        return plan_year

    def create_plan(self, plan: Plan) -> Plan:
        self._t.plans[plan.id] = plan
        return plan

    def get_plan(self, plan_id: UUID) -> Optional[Plan]:
        return self._t.plans.get(plan_id)

    def replace_plan_premiums(
        self, plan_id: UUID, premiums: Sequence[PlanPremium]
    ) -> List[PlanPremium]:
        tiers = [p.coverage_tier for p in premiums]
        if len(set(tiers)) != len(tiers):
            raise ConflictError("Duplicate coverage tier in premiums")

        for key in [k for k in self._t.premiums if k[0] == plan_id]:
            del self._t.premiums[key]
        stored = []
        for premium in premiums:
            premium = replace(premium, plan_id=plan_id)
            self._t.premiums[(plan_id, premium.coverage_tier)] = premium
            stored.append(premium)
        return stored

    def get_plan_premium(
        self, plan_id: UUID, coverage_tier: CoverageTier
    ) -> Optional[PlanPremium]:
        return self._t.premiums.get((plan_id, coverage_tier))

    # =========================================================
    # Dependents
    # =========================================================
    def create_dependent(self, dependent: Dependent) -> Dependent:
        self._t.dependents[dependent.id] = dependent
        return dependent

    def list_dependents_by_ids(
        self, tenant_id: UUID, employee_user_id: UUID, dependent_ids: Sequence[UUID]
    ) -> List[Dependent]:
        found = []
        for dependent_id in dependent_ids:
            dependent = self._t.dependents.get(dependent_id)
            if (
                dependent is not None
                and dependent.tenant_id == tenant_id
                and dependent.employee_user_id == employee_user_id
            ):
                found.append(dependent)
        return found

    # =========================================================
    # Enrollments
    # =========================================================
    def lock_enrollment_key(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> None:
        # R: El RLock del store ya serializa toda unidad de trabajo.
        return None

    def _same_key(self, e: Enrollment, employee_user_id: UUID, plan_year_id: UUID):
        return e.employee_user_id == employee_user_id and e.plan_year_id == plan_year_id

    def list_draft_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> List[Enrollment]:
        return [
            e
            for e in self._t.enrollments.values()
            if e.tenant_id == tenant_id
            and self._same_key(e, employee_user_id, plan_year_id)
            and e.status == EnrollmentStatus.DRAFT
        ]

    def get_enrollment(
        self, enrollment_id: UUID, *, for_update: bool = False
    ) -> Optional[Enrollment]:
        return self._t.enrollments.get(enrollment_id)

    def _assert_unique_status(self, enrollment: Enrollment) -> None:
        """R: Replica los índices únicos parciales (uno por status y clave)."""
        for other in self._t.enrollments.values():
            if (
                other.id != enrollment.id
                and other.status == enrollment.status
                and self._same_key(
                    other, enrollment.employee_user_id, enrollment.plan_year_id
                )
            ):
                raise ConflictError(
                    f"Employee already has a {enrollment.status.value} "
                    "enrollment for this plan year"
                )

    def insert_enrollment(self, enrollment: Enrollment) -> Enrollment:
        if enrollment.id in self._t.enrollments:
            raise ConflictError(f"Enrollment {enrollment.id} already exists")
        self._assert_unique_status(enrollment)
        self._t.enrollments[enrollment.id] = enrollment
        return enrollment

    def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        if enrollment.id not in self._t.enrollments:
            raise ConflictError(f"Enrollment {enrollment.id} does not exist")
        self._assert_unique_status(enrollment)
        self._t.enrollments[enrollment.id] = enrollment
        return enrollment

    def delete_enrollments(self, enrollment_ids: Sequence[UUID]) -> None:
        for enrollment_id in enrollment_ids:
            self._t.enrollments.pop(enrollment_id, None)

    def find_other_submitted_enrollment(
        self, employee_user_id: UUID, plan_year_id: UUID, exclude_enrollment_id: UUID
    ) -> Optional[Enrollment]:
        for e in self._t.enrollments.values():
            if (
                e.id != exclude_enrollment_id
                and e.status == EnrollmentStatus.SUBMITTED
                and self._same_key(e, employee_user_id, plan_year_id)
            ):
                return e
        return None

    def list_employee_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID
    ) -> List[Enrollment]:
        owned = [
            (position, e)
            for position, e in enumerate(self._t.enrollments.values())
            if e.tenant_id == tenant_id and e.employee_user_id == employee_user_id
        ]
        # R: newest first, igual que el adapter Postgres (created_at DESC).
        owned.sort(
            key=lambda item: (
                item[1].created_at is not None,
                item[1].created_at,
                item[0],
            ),
            reverse=True,
        )
        return [e for _, e in owned]

    # =========================================================
    # Auth sessions
    # =========================================================
    def create_auth_session(self, session: AuthSession) -> AuthSession:
        if any(
            s.refresh_token_hash == session.refresh_token_hash
            for s in self._t.sessions.values()
        ):
            raise ConflictError("Refresh token hash already exists")
        self._t.sessions[session.id] = session
        return session

    def get_auth_session(self, session_id: UUID) -> Optional[AuthSession]:
        return self._t.sessions.get(session_id)

    def get_auth_session_by_token_hash(
        self, refresh_token_hash: str, *, for_update: bool = False
    ) -> Optional[AuthSession]:
        for session in self._t.sessions.values():
            if session.refresh_token_hash == refresh_token_hash:
                return session
        return None

    def revoke_auth_session(
        self,
        session_id: UUID,
        *,
        reason: str,
        at: datetime,
        replaced_by_session_id: Optional[UUID] = None,
    ) -> None:
        session = self._t.sessions.get(session_id)
        if session is None:
            return
        self._t.sessions[session_id] = replace(
            session,
            revoked_at=session.revoked_at or at,
            revoke_reason=session.revoke_reason or reason,
            replaced_by_session_id=session.replaced_by_session_id
            or replaced_by_session_id,
        )

    def revoke_all_user_sessions(
        self, user_id: UUID, *, reason: str, at: datetime
    ) -> None:
        for session in list(self._t.sessions.values()):
            if session.user_id == user_id:
                self.revoke_auth_session(session.id, reason=reason, at=at)

    def is_auth_session_active(self, session_id: UUID, now: datetime) -> bool:
        session = self._t.sessions.get(session_id)
        return session is not None and session.is_active(now)

    # =========================================================
    # Password reset tokens
    # =========================================================
    def create_password_reset_token(
        self, token: PasswordResetToken
    ) -> PasswordResetToken:
        if any(t.token_hash == token.token_hash for t in self._t.reset_tokens.values()):
            raise ConflictError("Reset token hash already exists")
        self._t.reset_tokens[token.id] = token
        return token

    def get_password_reset_token_by_hash(
        self, token_hash: str, *, for_update: bool = False
    ) -> Optional[PasswordResetToken]:
        for token in self._t.reset_tokens.values():
            if token.token_hash == token_hash:
                return token
        return None

    def mark_password_reset_token_used(self, token_id: UUID, at: datetime) -> None:
        token = self._t.reset_tokens.get(token_id)
        if token is not None and token.used_at is None:
            self._t.reset_tokens[token_id] = replace(token, used_at=at)

    # =========================================================
    # Invite codes
    # =========================================================
    def create_invite_code(self, invite: InviteCode) -> InviteCode:
        if self.invite_code_exists(invite.code):
            raise ConflictError("Invite code already exists")
        self._t.invites[invite.id] = invite
        return invite

    def get_invite_code_by_code(
        self, code: str, *, for_update: bool = False
    ) -> Optional[InviteCode]:
        for invite in self._t.invites.values():
            if invite.code == code:
                return invite
        return None

    def invite_code_exists(self, code: str) -> bool:
        return self.get_invite_code_by_code(code) is not None

    def update_invite_code_usage(
        self, invite_id: UUID, *, uses_count: int, is_active: bool
    ) -> None:
        invite = self._t.invites.get(invite_id)
        if invite is not None:
            self._t.invites[invite_id] = replace(
                invite, uses_count=uses_count, is_active=is_active
            )

    # =========================================================
    # Security events
    # =========================================================
    def record_security_event(self, event: SecurityEvent) -> None:
        self._t.security_events.append(event)

    def list_security_events(
        self,
        *,
        tenant_id: Optional[UUID] = None,
        severity: Optional[SecuritySeverity] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[SecurityEvent]:
        events = [
            e
            for e in self._t.security_events
            if (tenant_id is None or e.tenant_id == tenant_id)
            and (severity is None or e.severity == severity)
            and (event_type is None or e.event_type == event_type)
        ]
        # R: newest first; a igual timestamp gana el último insertado.
        ordered = sorted(
            enumerate(events), key=lambda item: (item[1].created_at, item[0]), reverse=True
        )
        return [e for _, e in ordered][: max(0, limit)]


class InMemoryBenefitsStore:
    """
    Store in-memory, thread-safe.

    Modelo mental:
    - Un único RLock: cada unidad de trabajo corre en exclusión mutua, lo que
      serializa trivialmente draft/submit/refresh sobre la misma clave.
    - Si la unidad de trabajo levanta excepción, se restauran las tablas al
      snapshot tomado al entrar (rollback completo).
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._tables = _Tables()

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryBenefitsUnitOfWork]:
        with self._lock:
            snapshot = self._tables.snapshot()
            try:
                yield InMemoryBenefitsUnitOfWork(self._tables)
            except BaseException:
                self._tables.restore(snapshot)
                logger.debug("in_memory.unit_of_work.rolled_back")
                raise

    def reset(self) -> None:
        """Vacía todas las tablas (tests)."""
        with self._lock:
            self._tables.restore(_Tables())
