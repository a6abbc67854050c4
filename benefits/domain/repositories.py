"""
CRC — domain/repositories.py

Name
- Persistence port (Protocols): BenefitsStore + BenefitsUnitOfWork

Responsibilities
- Define the persistence contract consumed by the enrollment engine and the
  auth session protocol.
- Keep business rules in exactly one place: adapters only store and fetch.
- Make every operation transactional: a unit of work commits on clean exit and
  rolls back every write when an exception escapes.

Collaborators
- domain.entities / domain.security_events / identity.users
- infrastructure.repositories.in_memory.InMemoryBenefitsStore
- infrastructure.repositories.postgres.PostgresBenefitsStore

Constraints
- Pure interfaces only: no side effects, no infrastructure imports, no SQL.
- Implementations MUST match method signatures exactly.
- `for_update=True` means "hold a row lock until the unit of work ends".

Notes
- lock_enrollment_key serializes draft/submit per (tenant, employee, plan year).
- Outputs are concrete lists for predictable iteration/serialization.
"""

from datetime import datetime
from typing import ContextManager, List, Optional, Protocol, Sequence
from uuid import UUID

from ..identity.users import User
from .entities import (
    AuthSession,
    CoverageTier,
    Dependent,
    EmployeeProfile,
    Enrollment,
    InviteCode,
    PasswordResetToken,
    Plan,
    PlanPremium,
    PlanYear,
    Tenant,
)
from .security_events import SecurityEvent, SecuritySeverity


class BenefitsUnitOfWork(Protocol):
    """
    R: Transactional view over the store.

    Obtained from BenefitsStore.unit_of_work(); never shared across threads.
    """

    # =========================================================
    # Tenants / users
    # =========================================================
    def create_tenant(self, tenant: Tenant) -> Tenant: ...

    def get_tenant(self, tenant_id: UUID) -> Optional[Tenant]: ...

    def create_user(self, user: User) -> User:
        """R: Insert a user. Duplicate (lowercase) email -> ConflictError."""
        ...

    def get_user(self, user_id: UUID) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        """R: Case-insensitive lookup."""
        ...

    def update_user_password(self, user_id: UUID, password_hash: str) -> None: ...

    # =========================================================
    # Employee profiles
    # =========================================================
    def upsert_employee_profile(self, profile: EmployeeProfile) -> EmployeeProfile:
        """R: Insert or replace the single profile of profile.user_id."""
        ...

    def get_employee_profile(self, user_id: UUID) -> Optional[EmployeeProfile]: ...

    # =========================================================
    # Plan years / plans / premiums
    # =========================================================
    def create_plan_year(self, plan_year: PlanYear) -> PlanYear: ...

    def get_plan_year(
        self, tenant_id: UUID, plan_year_id: UUID
    ) -> Optional[PlanYear]: ...

    def create_plan(self, plan: Plan) -> Plan: ...

    def get_plan(self, plan_id: UUID) -> Optional[Plan]: ...

    def replace_plan_premiums(
        self, plan_id: UUID, premiums: Sequence[PlanPremium]
    ) -> List[PlanPremium]:
        """R: Full replace (delete-all-then-insert), never a partial patch."""
        ...

    def get_plan_premium(
        self, plan_id: UUID, coverage_tier: CoverageTier
    ) -> Optional[PlanPremium]: ...

    # =========================================================
    # Dependents
    # =========================================================
    def create_dependent(self, dependent: Dependent) -> Dependent: ...

    def list_dependents_by_ids(
        self, tenant_id: UUID, employee_user_id: UUID, dependent_ids: Sequence[UUID]
    ) -> List[Dependent]:
        """R: Only dependents owned by (tenant, employee); unknown ids are omitted."""
        ...

    # =========================================================
    # Enrollments
    # =========================================================
    def lock_enrollment_key(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> None:
        """R: Serialize writers of one (tenant, employee, plan year) until commit."""
        ...

    def list_draft_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> List[Enrollment]:
        """R: Oldest first."""
        ...

    def get_enrollment(
        self, enrollment_id: UUID, *, for_update: bool = False
    ) -> Optional[Enrollment]: ...

    def insert_enrollment(self, enrollment: Enrollment) -> Enrollment: ...

    def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """R: Full update, elections and dependent ids included."""
        ...

    def delete_enrollments(self, enrollment_ids: Sequence[UUID]) -> None: ...

    def find_other_submitted_enrollment(
        self, employee_user_id: UUID, plan_year_id: UUID, exclude_enrollment_id: UUID
    ) -> Optional[Enrollment]: ...

    def list_employee_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID
    ) -> List[Enrollment]: ...

    # =========================================================
    # Auth sessions
    # =========================================================
    def create_auth_session(self, session: AuthSession) -> AuthSession: ...

    def get_auth_session(self, session_id: UUID) -> Optional[AuthSession]: ...

    def get_auth_session_by_token_hash(
        self, refresh_token_hash: str, *, for_update: bool = False
    ) -> Optional[AuthSession]: ...

    def revoke_auth_session(
        self,
        session_id: UUID,
        *,
        reason: str,
        at: datetime,
        replaced_by_session_id: Optional[UUID] = None,
    ) -> None:
        """R: First revocation wins; an already revoked session keeps its data."""
        ...

    def revoke_all_user_sessions(
        self, user_id: UUID, *, reason: str, at: datetime
    ) -> None: ...

    def is_auth_session_active(self, session_id: UUID, now: datetime) -> bool: ...

    # =========================================================
    # Password reset tokens
    # =========================================================
    def create_password_reset_token(
        self, token: PasswordResetToken
    ) -> PasswordResetToken: ...

    def get_password_reset_token_by_hash(
        self, token_hash: str, *, for_update: bool = False
    ) -> Optional[PasswordResetToken]: ...

    def mark_password_reset_token_used(self, token_id: UUID, at: datetime) -> None: ...

    # =========================================================
    # Invite codes
    # =========================================================
    def create_invite_code(self, invite: InviteCode) -> InviteCode: ...

    def get_invite_code_by_code(
        self, code: str, *, for_update: bool = False
    ) -> Optional[InviteCode]: ...

    def invite_code_exists(self, code: str) -> bool: ...

    def update_invite_code_usage(
        self, invite_id: UUID, *, uses_count: int, is_active: bool
    ) -> None: ...

    # =========================================================
    # Security events (append-only)
    # =========================================================
    def record_security_event(self, event: SecurityEvent) -> None: ...

    def list_security_events(
        self,
        *,
        tenant_id: Optional[UUID] = None,
        severity: Optional[SecuritySeverity] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[SecurityEvent]:
        """R: Newest first."""
        ...


class BenefitsStore(Protocol):
    """R: Factory of units of work. One instance per process."""

    def unit_of_work(self) -> ContextManager[BenefitsUnitOfWork]: ...
