"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/benefits.py
============================================================
Class: PostgresBenefitsMixin

Responsibilities:
  - Perfiles, plan years, planes, premiums, dependents y enrollments sobre
    PostgreSQL.
  - Enrollment = fila + elecciones (enrollment_elections) + dependents
    (enrollment_dependents), escritos como un todo (full update).
  - Serializar escritores por (tenant, employee, plan year) con un advisory
    lock de transacción; filas candidatas con SELECT ... FOR UPDATE.

Collaborators:
  - PostgresUnitOfWorkBase (_execute/_fetchone/_fetchall/_executemany)
  - domain.entities

Constraints / Notes:
  - Los índices únicos parciales del schema son la última línea de defensa:
    una violación llega como ConflictError.
  - Montos NUMERIC <-> Decimal sin pasar por float.
============================================================
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from ....crosscutting.exceptions import ConflictError
from ....domain.entities import (
    BenefitClass,
    CoverageTier,
    Dependent,
    DependentRelationship,
    ElectionSnapshot,
    EmployeeProfile,
    EmploymentStatus,
    Enrollment,
    EnrollmentStatus,
    Plan,
    PlanPremium,
    PlanType,
    PlanYear,
)
from .base import PostgresUnitOfWorkBase, enum_or_db_error

_PROFILE_COLUMNS = """
    tenant_id, user_id, employee_code, first_name, last_name, date_of_birth,
    hire_date, salary, benefit_class, employment_status, updated_at
"""

_PLAN_YEAR_COLUMNS = "id, tenant_id, name, start_date, end_date"

_PLAN_COLUMNS = "id, tenant_id, plan_year_id, plan_type, carrier, plan_name"

_PREMIUM_COLUMNS = (
    "plan_id, coverage_tier, employee_monthly_cost, employer_monthly_cost"
)

_DEPENDENT_COLUMNS = """
    id, tenant_id, employee_user_id, relationship, first_name, last_name,
    date_of_birth, created_at
"""

_ENROLLMENT_COLUMNS = """
    id, tenant_id, employee_user_id, plan_year_id, status, effective_date,
    submitted_at, confirmation_code, created_at, updated_at
"""

# R: Orden determinístico de elecciones (mismo orden que ve el in-memory).
_PLAN_TYPE_ORDER = {t: i for i, t in enumerate(PlanType)}


def _row_to_profile(row: tuple) -> EmployeeProfile:
    return EmployeeProfile(
        tenant_id=row[0],
        user_id=row[1],
        employee_code=row[2],
        first_name=row[3],
        last_name=row[4],
        date_of_birth=row[5],
        hire_date=row[6],
        salary=row[7],
        benefit_class=enum_or_db_error(BenefitClass, row[8], column="benefit class"),
        employment_status=enum_or_db_error(
            EmploymentStatus, row[9], column="employment status"
        ),
        updated_at=row[10],
    )


def _row_to_plan_year(row: tuple) -> PlanYear:
    return PlanYear(
        id=row[0], tenant_id=row[1], name=row[2], start_date=row[3], end_date=row[4]
    )


def _row_to_plan(row: tuple) -> Plan:
    return Plan(
        id=row[0],
        tenant_id=row[1],
        plan_year_id=row[2],
        plan_type=enum_or_db_error(PlanType, row[3], column="plan type"),
        carrier=row[4],
        plan_name=row[5],
    )


def _row_to_premium(row: tuple) -> PlanPremium:
    return PlanPremium(
        plan_id=row[0],
        coverage_tier=enum_or_db_error(CoverageTier, row[1], column="coverage tier"),
        employee_monthly_cost=row[2],
        employer_monthly_cost=row[3],
    )


def _row_to_dependent(row: tuple) -> Dependent:
    return Dependent(
        id=row[0],
        tenant_id=row[1],
        employee_user_id=row[2],
        relationship=enum_or_db_error(
            DependentRelationship, row[3], column="relationship"
        ),
        first_name=row[4],
        last_name=row[5],
        date_of_birth=row[6],
        created_at=row[7],
    )


class PostgresBenefitsMixin(PostgresUnitOfWorkBase):
    # =========================================================
    # Employee profiles
    # =========================================================
    def upsert_employee_profile(self, profile: EmployeeProfile) -> EmployeeProfile:
        row = self._execute(
            f"""
            INSERT INTO employee_profiles (
                tenant_id, user_id, employee_code, first_name, last_name,
                date_of_birth, hire_date, salary, benefit_class, employment_status,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, now()))
            ON CONFLICT (user_id) DO UPDATE
            SET employee_code = EXCLUDED.employee_code,
                first_name = EXCLUDED.first_name,
                last_name = EXCLUDED.last_name,
                date_of_birth = EXCLUDED.date_of_birth,
                hire_date = EXCLUDED.hire_date,
                salary = EXCLUDED.salary,
                benefit_class = EXCLUDED.benefit_class,
                employment_status = EXCLUDED.employment_status,
                updated_at = EXCLUDED.updated_at
            RETURNING {_PROFILE_COLUMNS}
            """,
            (
                profile.tenant_id,
                profile.user_id,
                profile.employee_code,
                profile.first_name,
                profile.last_name,
                profile.date_of_birth,
                profile.hire_date,
                profile.salary,
                profile.benefit_class.value,
                profile.employment_status.value,
                profile.updated_at,
            ),
            context_msg="PostgresBenefitsStore: upsert_employee_profile failed",
            conflict_msg="Employee code already exists in tenant",
        ).fetchone()
        return _row_to_profile(row)

    def get_employee_profile(self, user_id: UUID) -> Optional[EmployeeProfile]:
        row = self._fetchone(
            f"SELECT {_PROFILE_COLUMNS} FROM employee_profiles WHERE user_id = %s",
            (user_id,),
            context_msg="PostgresBenefitsStore: get_employee_profile failed",
        )
        return _row_to_profile(row) if row else None

    # =========================================================
    # Plan years / plans / premiums
    # =========================================================
    def create_plan_year(self, plan_year: PlanYear) -> PlanYear:
        overlap = self._fetchone(
            """
            SELECT 1 FROM plan_years
            WHERE tenant_id = %s AND start_date <= %s AND %s <= end_date
            LIMIT 1
            """,
            (plan_year.tenant_id, plan_year.end_date, plan_year.start_date),
            context_msg="PostgresBenefitsStore: create_plan_year overlap check failed",
        )
        if overlap:
            raise ConflictError("Plan year overlaps an existing plan year")

        row = self._execute(
            f"""
            INSERT INTO plan_years (id, tenant_id, name, start_date, end_date)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {_PLAN_YEAR_COLUMNS}
            """,
            (
                plan_year.id,
                plan_year.tenant_id,
                plan_year.name,
                plan_year.start_date,
                plan_year.end_date,
            ),
            context_msg="PostgresBenefitsStore: create_plan_year failed",
        ).fetchone()
        return _row_to_plan_year(row)

    def get_plan_year(
        self, tenant_id: UUID, plan_year_id: UUID
    ) -> Optional[PlanYear]:
        row = self._fetchone(
            f"SELECT {_PLAN_YEAR_COLUMNS} FROM plan_years WHERE id = %s AND tenant_id = %s",
            (plan_year_id, tenant_id),
            context_msg="PostgresBenefitsStore: get_plan_year failed",
        )
        return _row_to_plan_year(row) if row else None

    def create_plan(self, plan: Plan) -> Plan:
        row = self._execute(
            f"""
            INSERT INTO plans (id, tenant_id, plan_year_id, plan_type, carrier, plan_name)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {_PLAN_COLUMNS}
            """,
            (
                plan.id,
                plan.tenant_id,
                plan.plan_year_id,
                plan.plan_type.value,
                plan.carrier,
                plan.plan_name,
            ),
            context_msg="PostgresBenefitsStore: create_plan failed",
        ).fetchone()
        return _row_to_plan(row)

    def get_plan(self, plan_id: UUID) -> Optional[Plan]:
        row = self._fetchone(
            f"SELECT {_PLAN_COLUMNS} FROM plans WHERE id = %s",
            (plan_id,),
            context_msg="PostgresBenefitsStore: get_plan failed",
        )
        return _row_to_plan(row) if row else None

    def replace_plan_premiums(
        self, plan_id: UUID, premiums: Sequence[PlanPremium]
    ) -> List[PlanPremium]:
        self._execute(
            "DELETE FROM plan_premiums WHERE plan_id = %s",
            (plan_id,),
            context_msg="PostgresBenefitsStore: replace_plan_premiums delete failed",
        )
        self._executemany(
            f"INSERT INTO plan_premiums ({_PREMIUM_COLUMNS}) VALUES (%s, %s, %s, %s)",
            [
                (
                    plan_id,
                    p.coverage_tier.value,
                    p.employee_monthly_cost,
                    p.employer_monthly_cost,
                )
                for p in premiums
            ],
            context_msg="PostgresBenefitsStore: replace_plan_premiums insert failed",
        )
        return [replace(p, plan_id=plan_id) for p in premiums]

    def get_plan_premium(
        self, plan_id: UUID, coverage_tier: CoverageTier
    ) -> Optional[PlanPremium]:
        row = self._fetchone(
            f"""
            SELECT {_PREMIUM_COLUMNS} FROM plan_premiums
            WHERE plan_id = %s AND coverage_tier = %s
            """,
            (plan_id, coverage_tier.value),
            context_msg="PostgresBenefitsStore: get_plan_premium failed",
        )
        return _row_to_premium(row) if row else None

    # =========================================================
    # Dependents
    # =========================================================
    def create_dependent(self, dependent: Dependent) -> Dependent:
        row = self._execute(
            f"""
            INSERT INTO dependents (
                id, tenant_id, employee_user_id, relationship, first_name,
                last_name, date_of_birth, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, COALESCE(%s, now()))
            RETURNING {_DEPENDENT_COLUMNS}
            """,
            (
                dependent.id,
                dependent.tenant_id,
                dependent.employee_user_id,
                dependent.relationship.value,
                dependent.first_name,
                dependent.last_name,
                dependent.date_of_birth,
                dependent.created_at,
            ),
            context_msg="PostgresBenefitsStore: create_dependent failed",
        ).fetchone()
        return _row_to_dependent(row)

    def list_dependents_by_ids(
        self, tenant_id: UUID, employee_user_id: UUID, dependent_ids: Sequence[UUID]
    ) -> List[Dependent]:
        if not dependent_ids:
            return []
        rows = self._fetchall(
            f"""
            SELECT {_DEPENDENT_COLUMNS}
            FROM dependents
            WHERE tenant_id = %s AND employee_user_id = %s AND id = ANY(%s)
            """,
            (tenant_id, employee_user_id, list(dependent_ids)),
            context_msg="PostgresBenefitsStore: list_dependents_by_ids failed",
        )
        by_id = {r[0]: _row_to_dependent(r) for r in rows}
        # R: Respeta el orden pedido por el caller.
        return [by_id[i] for i in dependent_ids if i in by_id]

    # =========================================================
    # Enrollments
    # =========================================================
    def lock_enrollment_key(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> None:
        self._execute(
            "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
            (f"enrollment:{tenant_id}:{employee_user_id}:{plan_year_id}",),
            context_msg="PostgresBenefitsStore: lock_enrollment_key failed",
        )

    def _hydrate_enrollments(self, rows: List[tuple]) -> List[Enrollment]:
        if not rows:
            return []
        ids = [r[0] for r in rows]

        elections: Dict[UUID, List[ElectionSnapshot]] = defaultdict(list)
        for er in self._fetchall(
            """
            SELECT enrollment_id, plan_type, plan_id, coverage_tier,
                   employee_monthly_cost, employer_monthly_cost
            FROM enrollment_elections
            WHERE enrollment_id = ANY(%s)
            """,
            (ids,),
            context_msg="PostgresBenefitsStore: load enrollment elections failed",
        ):
            elections[er[0]].append(
                ElectionSnapshot(
                    plan_type=enum_or_db_error(PlanType, er[1], column="plan type"),
                    plan_id=er[2],
                    coverage_tier=enum_or_db_error(
                        CoverageTier, er[3], column="coverage tier"
                    ),
                    employee_monthly_cost=er[4],
                    employer_monthly_cost=er[5],
                )
            )

        dependents: Dict[UUID, List[UUID]] = defaultdict(list)
        for dr in self._fetchall(
            """
            SELECT enrollment_id, dependent_id
            FROM enrollment_dependents
            WHERE enrollment_id = ANY(%s)
            ORDER BY enrollment_id, position
            """,
            (ids,),
            context_msg="PostgresBenefitsStore: load enrollment dependents failed",
        ):
            dependents[dr[0]].append(dr[1])

        return [
            Enrollment(
                id=r[0],
                tenant_id=r[1],
                employee_user_id=r[2],
                plan_year_id=r[3],
                status=enum_or_db_error(EnrollmentStatus, r[4], column="status"),
                effective_date=r[5],
                submitted_at=r[6],
                confirmation_code=r[7],
                created_at=r[8],
                updated_at=r[9],
                elections=tuple(
                    sorted(
                        elections.get(r[0], []),
                        key=lambda e: _PLAN_TYPE_ORDER[e.plan_type],
                    )
                ),
                dependent_ids=tuple(dependents.get(r[0], [])),
            )
            for r in rows
        ]

    def list_draft_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID, plan_year_id: UUID
    ) -> List[Enrollment]:
        rows = self._fetchall(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM enrollments
            WHERE tenant_id = %s AND employee_user_id = %s AND plan_year_id = %s
              AND status = 'DRAFT'
            ORDER BY created_at ASC, id ASC
            FOR UPDATE
            """,
            (tenant_id, employee_user_id, plan_year_id),
            context_msg="PostgresBenefitsStore: list_draft_enrollments failed",
        )
        return self._hydrate_enrollments(rows)

    def get_enrollment(
        self, enrollment_id: UUID, *, for_update: bool = False
    ) -> Optional[Enrollment]:
        lock = " FOR UPDATE" if for_update else ""
        rows = self._fetchall(
            f"SELECT {_ENROLLMENT_COLUMNS} FROM enrollments WHERE id = %s{lock}",
            (enrollment_id,),
            context_msg="PostgresBenefitsStore: get_enrollment failed",
        )
        hydrated = self._hydrate_enrollments(rows)
        return hydrated[0] if hydrated else None

    def _write_enrollment_children(self, enrollment: Enrollment) -> None:
        self._execute(
            "DELETE FROM enrollment_elections WHERE enrollment_id = %s",
            (enrollment.id,),
            context_msg="PostgresBenefitsStore: clear enrollment elections failed",
        )
        self._execute(
            "DELETE FROM enrollment_dependents WHERE enrollment_id = %s",
            (enrollment.id,),
            context_msg="PostgresBenefitsStore: clear enrollment dependents failed",
        )
        self._executemany(
            """
            INSERT INTO enrollment_elections (
                enrollment_id, plan_type, plan_id, coverage_tier,
                employee_monthly_cost, employer_monthly_cost
            )
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            [
                (
                    enrollment.id,
                    e.plan_type.value,
                    e.plan_id,
                    e.coverage_tier.value,
                    e.employee_monthly_cost,
                    e.employer_monthly_cost,
                )
                for e in enrollment.elections
            ],
            context_msg="PostgresBenefitsStore: insert enrollment elections failed",
        )
        self._executemany(
            """
            INSERT INTO enrollment_dependents (enrollment_id, dependent_id, position)
            VALUES (%s, %s, %s)
            """,
            [
                (enrollment.id, dependent_id, position)
                for position, dependent_id in enumerate(enrollment.dependent_ids)
            ],
            context_msg="PostgresBenefitsStore: insert enrollment dependents failed",
        )

    def insert_enrollment(self, enrollment: Enrollment) -> Enrollment:
        self._execute(
            """
            INSERT INTO enrollments (
                id, tenant_id, employee_user_id, plan_year_id, status,
                effective_date, submitted_at, confirmation_code, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, now()), COALESCE(%s, now()))
            """,
            (
                enrollment.id,
                enrollment.tenant_id,
                enrollment.employee_user_id,
                enrollment.plan_year_id,
                enrollment.status.value,
                enrollment.effective_date,
                enrollment.submitted_at,
                enrollment.confirmation_code,
                enrollment.created_at,
                enrollment.updated_at,
            ),
            context_msg="PostgresBenefitsStore: insert_enrollment failed",
            conflict_msg=(
                f"Employee already has a {enrollment.status.value} "
                "enrollment for this plan year"
            ),
        )
        self._write_enrollment_children(enrollment)
        return self.get_enrollment(enrollment.id) or enrollment

    def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        cur = self._execute(
            """
            UPDATE enrollments
            SET status = %s,
                effective_date = %s,
                submitted_at = %s,
                confirmation_code = %s,
                updated_at = COALESCE(%s, now())
            WHERE id = %s
            """,
            (
                enrollment.status.value,
                enrollment.effective_date,
                enrollment.submitted_at,
                enrollment.confirmation_code,
                enrollment.updated_at,
                enrollment.id,
            ),
            context_msg="PostgresBenefitsStore: update_enrollment failed",
            conflict_msg=(
                f"Employee already has a {enrollment.status.value} "
                "enrollment for this plan year"
            ),
        )
        if cur.rowcount == 0:
            raise ConflictError(f"Enrollment {enrollment.id} does not exist")
        self._write_enrollment_children(enrollment)
        return self.get_enrollment(enrollment.id) or enrollment

    def delete_enrollments(self, enrollment_ids: Sequence[UUID]) -> None:
        if not enrollment_ids:
            return
        self._execute(
            "DELETE FROM enrollments WHERE id = ANY(%s)",
            (list(enrollment_ids),),
            context_msg="PostgresBenefitsStore: delete_enrollments failed",
        )

    def find_other_submitted_enrollment(
        self, employee_user_id: UUID, plan_year_id: UUID, exclude_enrollment_id: UUID
    ) -> Optional[Enrollment]:
        rows = self._fetchall(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM enrollments
            WHERE employee_user_id = %s AND plan_year_id = %s
              AND status = 'SUBMITTED' AND id <> %s
            LIMIT 1
            FOR UPDATE
            """,
            (employee_user_id, plan_year_id, exclude_enrollment_id),
            context_msg="PostgresBenefitsStore: find_other_submitted_enrollment failed",
        )
        hydrated = self._hydrate_enrollments(rows)
        return hydrated[0] if hydrated else None

    def list_employee_enrollments(
        self, tenant_id: UUID, employee_user_id: UUID
    ) -> List[Enrollment]:
        rows = self._fetchall(
            f"""
            SELECT {_ENROLLMENT_COLUMNS}
            FROM enrollments
            WHERE tenant_id = %s AND employee_user_id = %s
            ORDER BY created_at DESC, id DESC
            """,
            (tenant_id, employee_user_id),
            context_msg="PostgresBenefitsStore: list_employee_enrollments failed",
        )
        return self._hydrate_enrollments(rows)
