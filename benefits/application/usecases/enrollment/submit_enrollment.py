"""
===============================================================================
USE CASE: Submit Enrollment
===============================================================================

Business Goal:
    Pasar un DRAFT a SUBMITTED (terminal) con fecha efectiva, código de
    confirmación y costos refrescados.

Why (Context / Intención):
    - A lo sumo un SUBMITTED por (employee, plan year), aun con submits
      concurrentes: el chequeo "no hay otro SUBMITTED" y el cambio de estado
      ocurren bajo el lock de la clave dentro de una sola transacción.
    - La edad de hijos se valida acá y solo acá, contra la fecha efectiva.
    - Los premiums pueden haber cambiado desde el draft: se vuelven a leer.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    SubmitEnrollmentUseCase

Responsibilities:
    - Resolver enrollment del employee en el tenant (NOT_FOUND si no).
    - Rechazar doble submit y un segundo SUBMITTED para el plan year (CONFLICT).
    - Exigir perfil elegible: FULL_TIME_ELIGIBLE + ACTIVE (BUSINESS_RULE).
    - Calcular fecha efectiva y revalidar cobertura + edad de hijos.
    - Refrescar snapshots de costos (BUSINESS_RULE si falta un premium).
    - Generar confirmation code "ENR-" + 10 hex en mayúsculas.

Collaborators:
    - BenefitsStore, Clock, TokenGenerator
    - domain.coverage_rules / domain.effective_date

Notas:
    - El confirmation code no se chequea contra colisiones (riesgo aceptado:
      40 bits aleatorios para un código interno de bajo volumen).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from ....crosscutting.exceptions import BusinessRuleError, ConflictError, NotFoundError
from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_enrollment_transition
from ....domain.coverage_rules import (
    DEFAULT_CHILD_AGE_LIMIT,
    assert_children_within_age_limit,
    validate_coverage_selection,
)
from ....domain.effective_date import calculate_effective_date
from ....domain.entities import (
    ElectionSnapshot,
    Enrollment,
    EnrollmentStatus,
)
from ....domain.repositories import BenefitsStore, BenefitsUnitOfWork
from ....domain.services import Clock, TokenGenerator
from .employee_scope import load_employee_in_tenant

CONFIRMATION_PREFIX = "ENR-"
CONFIRMATION_BYTES = 5


@dataclass(frozen=True)
class SubmitEnrollmentInput:
    tenant_id: UUID
    employee_user_id: UUID
    enrollment_id: UUID


class SubmitEnrollmentUseCase:
    def __init__(
        self,
        store: BenefitsStore,
        clock: Clock,
        tokens: TokenGenerator,
        *,
        child_age_limit: int = DEFAULT_CHILD_AGE_LIMIT,
    ) -> None:
        self._store = store
        self._clock = clock
        self._tokens = tokens
        self._child_age_limit = child_age_limit

    def execute(self, input_data: SubmitEnrollmentInput) -> Enrollment:
        with self._store.unit_of_work() as uow:
            load_employee_in_tenant(
                uow, input_data.tenant_id, input_data.employee_user_id
            )
            enrollment = self._load_locked(uow, input_data)

            if enrollment.is_submitted:
                raise ConflictError("Enrollment already submitted")

            other = uow.find_other_submitted_enrollment(
                enrollment.employee_user_id, enrollment.plan_year_id, enrollment.id
            )
            if other is not None:
                raise ConflictError(
                    "Employee already has a submitted enrollment for this plan year"
                )

            profile = uow.get_employee_profile(enrollment.employee_user_id)
            if profile is None:
                raise BusinessRuleError(
                    "Employee profile is required before enrollment submit"
                )
            if not profile.is_benefits_eligible:
                raise BusinessRuleError("Employee is not benefits-eligible")

            effective_date = calculate_effective_date(
                profile.hire_date, self._clock.today()
            )

            dependents = uow.list_dependents_by_ids(
                enrollment.tenant_id,
                enrollment.employee_user_id,
                list(enrollment.dependent_ids),
            )
            found = {d.id for d in dependents}
            for dependent_id in enrollment.dependent_ids:
                if dependent_id not in found:
                    raise BusinessRuleError(f"Dependent {dependent_id} not found")

            validate_coverage_selection(
                [e.coverage_tier for e in enrollment.elections], dependents
            )
            assert_children_within_age_limit(
                dependents, effective_date, age_limit=self._child_age_limit
            )

            refreshed = tuple(
                self._refresh_election(uow, e) for e in enrollment.elections
            )

            now = self._clock.now()
            submitted = uow.update_enrollment(
                replace(
                    enrollment,
                    status=EnrollmentStatus.SUBMITTED,
                    elections=refreshed,
                    effective_date=effective_date,
                    submitted_at=now,
                    confirmation_code=self._confirmation_code(),
                    updated_at=now,
                )
            )

        record_enrollment_transition("submitted")
        logger.info(
            "enrollment.submitted",
            extra={
                "enrollment_id": str(submitted.id),
                "effective_date": submitted.effective_date.isoformat(),
            },
        )
        return submitted

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _load_locked(
        uow: BenefitsUnitOfWork, input_data: SubmitEnrollmentInput
    ) -> Enrollment:
        def _in_scope(candidate: Enrollment | None) -> bool:
            return (
                candidate is not None
                and candidate.tenant_id == input_data.tenant_id
                and candidate.employee_user_id == input_data.employee_user_id
            )

        candidate = uow.get_enrollment(input_data.enrollment_id)
        if not _in_scope(candidate):
            raise NotFoundError("Enrollment not found for employee in tenant")

        # R: Primero el lock de la clave, después el row lock (mismo orden
        # que el draft, evita deadlocks).
        uow.lock_enrollment_key(
            candidate.tenant_id, candidate.employee_user_id, candidate.plan_year_id
        )
        locked = uow.get_enrollment(input_data.enrollment_id, for_update=True)
        if not _in_scope(locked):
            raise NotFoundError("Enrollment not found for employee in tenant")
        return locked

    @staticmethod
    def _refresh_election(
        uow: BenefitsUnitOfWork, election: ElectionSnapshot
    ) -> ElectionSnapshot:
        premium = uow.get_plan_premium(election.plan_id, election.coverage_tier)
        if premium is None:
            raise BusinessRuleError(
                "Cannot submit enrollment; missing premium for plan "
                f"{election.plan_id} tier {election.coverage_tier.value}"
            )
        return replace(
            election,
            employee_monthly_cost=premium.employee_monthly_cost,
            employer_monthly_cost=premium.employer_monthly_cost,
        )

    def _confirmation_code(self) -> str:
        return CONFIRMATION_PREFIX + self._tokens.token_hex(CONFIRMATION_BYTES).upper()
