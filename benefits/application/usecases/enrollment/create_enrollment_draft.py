"""
===============================================================================
USE CASE: Create Enrollment Draft
===============================================================================

Business Goal:
    Guardar (o reemplazar) el borrador de inscripción de un empleado para un
    plan year, con costos copiados de los premiums vigentes.

Why (Context / Intención):
    - Re-draftear es idempotente: el DRAFT existente se sobreescribe en el
      lugar (mismo id), nunca se duplica.
    - Si aparecen DRAFTs extra para la misma clave se purgan.
    - La edad de hijos NO se valida acá (solo en submit, contra la fecha
      efectiva real).

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    CreateEnrollmentDraftUseCase

Responsibilities:
    - Validar precondiciones en orden (la primera falla gana):
        1) employee pertenece al tenant con rol EMPLOYEE      -> NOT_FOUND
        2) dependent ids sin duplicados                       -> VALIDATION
        3) plan year pertenece al tenant                      -> NOT_FOUND
        4) por elección: plan type válido y no repetido       -> VALIDATION
           plan existe en tenant+plan year                    -> NOT_FOUND
           tipo del plan == tipo declarado                    -> VALIDATION
           tier soportado                                     -> VALIDATION
           premium configurado para (plan, tier)              -> BUSINESS_RULE
        5) cada dependent pertenece al employee+tenant        -> BUSINESS_RULE
        6) selección de cobertura coherente                   -> BUSINESS_RULE
    - Persistir bajo el lock de la clave (tenant, employee, plan year).

Collaborators:
    - BenefitsStore (unidad de trabajo)
    - domain.coverage_rules
    - Clock
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence
from uuid import UUID, uuid4

from ....crosscutting.exceptions import BusinessRuleError, NotFoundError, ValidationError
from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_enrollment_transition
from ....domain.coverage_rules import (
    assert_unique_dependent_ids,
    parse_coverage_tier,
    validate_coverage_selection,
)
from ....domain.entities import (
    ElectionRequest,
    ElectionSnapshot,
    Enrollment,
    EnrollmentStatus,
    PlanType,
)
from ....domain.repositories import BenefitsStore, BenefitsUnitOfWork
from ....domain.services import Clock
from .employee_scope import load_employee_in_tenant


@dataclass(frozen=True)
class CreateEnrollmentDraftInput:
    tenant_id: UUID
    employee_user_id: UUID
    plan_year_id: UUID
    elections: Sequence[ElectionRequest]
    dependent_ids: Sequence[UUID] = ()


def parse_plan_type(value: PlanType | str) -> PlanType:
    if isinstance(value, PlanType):
        return value
    try:
        return PlanType(str(value))
    except ValueError:
        raise ValidationError(f"Unsupported plan type: {value}") from None


class CreateEnrollmentDraftUseCase:
    def __init__(self, store: BenefitsStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def execute(self, input_data: CreateEnrollmentDraftInput) -> Enrollment:
        dependent_ids = list(input_data.dependent_ids)

        with self._store.unit_of_work() as uow:
            load_employee_in_tenant(
                uow, input_data.tenant_id, input_data.employee_user_id
            )
            assert_unique_dependent_ids(dependent_ids)

            if uow.get_plan_year(input_data.tenant_id, input_data.plan_year_id) is None:
                raise NotFoundError("Plan year not found for tenant")

            snapshots = self._build_snapshots(uow, input_data)

            dependents = uow.list_dependents_by_ids(
                input_data.tenant_id, input_data.employee_user_id, dependent_ids
            )
            found = {d.id for d in dependents}
            for dependent_id in dependent_ids:
                if dependent_id not in found:
                    raise BusinessRuleError(
                        f"Dependent {dependent_id} does not belong to employee"
                    )

            validate_coverage_selection(
                [s.coverage_tier for s in snapshots], dependents
            )

            return self._save_draft(uow, input_data, snapshots, dependent_ids)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _build_snapshots(
        uow: BenefitsUnitOfWork, input_data: CreateEnrollmentDraftInput
    ) -> list[ElectionSnapshot]:
        if not input_data.elections:
            raise ValidationError("At least one election is required")

        seen: set[PlanType] = set()
        snapshots: list[ElectionSnapshot] = []
        for election in input_data.elections:
            plan_type = parse_plan_type(election.plan_type)
            if plan_type in seen:
                raise ValidationError(
                    f"Duplicate election plan type: {plan_type.value}"
                )
            seen.add(plan_type)

            plan = uow.get_plan(election.plan_id)
            if (
                plan is None
                or plan.tenant_id != input_data.tenant_id
                or plan.plan_year_id != input_data.plan_year_id
            ):
                raise NotFoundError(
                    f"Plan {election.plan_id} not found in tenant plan year"
                )
            if plan.plan_type != plan_type:
                raise ValidationError(
                    f"Election planType {plan_type.value} does not match "
                    f"plan type {plan.plan_type.value}"
                )

            tier = parse_coverage_tier(election.coverage_tier)
            premium = uow.get_plan_premium(plan.id, tier)
            if premium is None:
                raise BusinessRuleError(
                    f"No premium configured for plan {plan.id} and tier {tier.value}"
                )

            snapshots.append(
                ElectionSnapshot(
                    plan_type=plan_type,
                    plan_id=plan.id,
                    coverage_tier=tier,
                    employee_monthly_cost=premium.employee_monthly_cost,
                    employer_monthly_cost=premium.employer_monthly_cost,
                )
            )
        return snapshots

    def _save_draft(
        self,
        uow: BenefitsUnitOfWork,
        input_data: CreateEnrollmentDraftInput,
        snapshots: list[ElectionSnapshot],
        dependent_ids: list[UUID],
    ) -> Enrollment:
        now = self._clock.now()
        uow.lock_enrollment_key(
            input_data.tenant_id, input_data.employee_user_id, input_data.plan_year_id
        )
        drafts = uow.list_draft_enrollments(
            input_data.tenant_id, input_data.employee_user_id, input_data.plan_year_id
        )

        if drafts:
            draft, strays = drafts[0], drafts[1:]
            if strays:
                # R: DRAFTs huérfanos de la misma clave se eliminan.
                uow.delete_enrollments([s.id for s in strays])
                logger.warning(
                    "enrollment.stray_drafts_purged",
                    extra={
                        "enrollment_id": str(draft.id),
                        "purged": len(strays),
                    },
                )
            saved = uow.update_enrollment(
                replace(
                    draft,
                    elections=tuple(snapshots),
                    dependent_ids=tuple(dependent_ids),
                    effective_date=None,
                    submitted_at=None,
                    confirmation_code=None,
                    updated_at=now,
                )
            )
            transition = "draft_replaced"
        else:
            saved = uow.insert_enrollment(
                Enrollment(
                    id=uuid4(),
                    tenant_id=input_data.tenant_id,
                    employee_user_id=input_data.employee_user_id,
                    plan_year_id=input_data.plan_year_id,
                    status=EnrollmentStatus.DRAFT,
                    elections=tuple(snapshots),
                    dependent_ids=tuple(dependent_ids),
                    created_at=now,
                    updated_at=now,
                )
            )
            transition = "draft_created"

        record_enrollment_transition(transition)
        logger.info(
            "enrollment.draft_saved",
            extra={
                "enrollment_id": str(saved.id),
                "transition": transition,
                "elections": len(snapshots),
            },
        )
        return saved
