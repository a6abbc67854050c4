"""
Name: Enrollment Use Case Tests

Responsibilities:
  - Draft precondition order and error kinds
  - Idempotent draft replacement (same id, one DRAFT)
  - Stray draft purge
  - Submit: conflicts, eligibility, effective date, age-out, premium refresh,
    confirmation code format, one winner under concurrent submits
  - Listing scoped by actor

Notes:
  - Unit tests over the in-memory store (see conftest.world)
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from benefits.application.usecases.enrollment import (
    CreateEnrollmentDraftInput,
    CreateEnrollmentDraftUseCase,
    ListEmployeeEnrollmentsInput,
    ListEmployeeEnrollmentsUseCase,
    SubmitEnrollmentInput,
    SubmitEnrollmentUseCase,
)
from benefits.crosscutting.exceptions import (
    BusinessRuleError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from benefits.domain.entities import (
    BenefitClass,
    CoverageTier,
    ElectionRequest,
    Enrollment,
    EnrollmentStatus,
    EmploymentStatus,
    PlanPremium,
)
from benefits.identity.users import AuthUser, UserRole

CONFIRMATION_RE = re.compile(r"^ENR-[A-F0-9]{10}$")


def _medical(world, tier=CoverageTier.EMPLOYEE_ONLY):
    return ElectionRequest(
        plan_type="MEDICAL", plan_id=world.medical.id, coverage_tier=tier.value
    )


def _draft_input(world, elections, dependent_ids=()):
    return CreateEnrollmentDraftInput(
        tenant_id=world.tenant_id,
        employee_user_id=world.employee.id,
        plan_year_id=world.plan_year.id,
        elections=elections,
        dependent_ids=dependent_ids,
    )


@pytest.fixture
def draft_uc(store, clock):
    return CreateEnrollmentDraftUseCase(store, clock)


@pytest.fixture
def submit_uc(store, clock, tokens):
    return SubmitEnrollmentUseCase(store, clock, tokens)


def _submit(submit_uc, world, enrollment_id):
    return submit_uc.execute(
        SubmitEnrollmentInput(
            tenant_id=world.tenant_id,
            employee_user_id=world.employee.id,
            enrollment_id=enrollment_id,
        )
    )


def _drafts(store, world):
    with store.unit_of_work() as uow:
        return uow.list_draft_enrollments(
            world.tenant_id, world.employee.id, world.plan_year.id
        )


# ============================================================================
# Draft
# ============================================================================


@pytest.mark.unit
class TestCreateEnrollmentDraft:
    def test_creates_draft_with_premium_snapshot(self, draft_uc, world):
        enrollment = draft_uc.execute(
            _draft_input(
                world,
                [_medical(world, CoverageTier.EMPLOYEE_CHILDREN)],
                [world.child.id],
            )
        )

        assert enrollment.status == EnrollmentStatus.DRAFT
        assert enrollment.dependent_ids == (world.child.id,)
        (election,) = enrollment.elections
        assert election.coverage_tier == CoverageTier.EMPLOYEE_CHILDREN
        # R: EMPLOYEE_CHILDREN es el 3er tier del seed -> 300.00
        assert election.employee_monthly_cost == Decimal("300.00")
        assert election.employer_monthly_cost == Decimal("250.00")
        assert enrollment.effective_date is None
        assert enrollment.confirmation_code is None

    def test_redraft_replaces_in_place(self, draft_uc, store, world):
        first = draft_uc.execute(_draft_input(world, [_medical(world)]))
        second = draft_uc.execute(
            _draft_input(
                world,
                [
                    _medical(world, CoverageTier.EMPLOYEE_SPOUSE),
                ],
                [world.spouse.id],
            )
        )

        assert second.id == first.id
        drafts = _drafts(store, world)
        assert len(drafts) == 1
        assert drafts[0].elections[0].coverage_tier == CoverageTier.EMPLOYEE_SPOUSE
        assert drafts[0].dependent_ids == (world.spouse.id,)

    def test_multiple_plan_types(self, draft_uc, world):
        enrollment = draft_uc.execute(
            _draft_input(
                world,
                [
                    _medical(world),
                    ElectionRequest("DENTAL", world.dental.id, "EMPLOYEE_ONLY"),
                ],
            )
        )
        assert {e.plan_type.value for e in enrollment.elections} == {"MEDICAL", "DENTAL"}

    def test_unknown_employee_is_not_found(self, draft_uc, world):
        data = replace(_draft_input(world, [_medical(world)]), employee_user_id=uuid4())
        with pytest.raises(NotFoundError, match="Employee not found in tenant"):
            draft_uc.execute(data)

    def test_employee_of_other_tenant_is_not_found(self, draft_uc, world):
        data = replace(
            _draft_input(world, [_medical(world)]),
            employee_user_id=world.other_employee.id,
        )
        with pytest.raises(NotFoundError):
            draft_uc.execute(data)

    def test_admin_user_is_not_an_employee(self, draft_uc, world):
        data = replace(
            _draft_input(world, [_medical(world)]),
            employee_user_id=world.company_admin.id,
        )
        with pytest.raises(NotFoundError):
            draft_uc.execute(data)

    def test_duplicate_dependent_ids_checked_before_plan_year(self, draft_uc, world):
        """First failure wins: duplicate ids (400) before unknown plan year (404)."""
        data = replace(
            _draft_input(world, [_medical(world)], [world.child.id, world.child.id]),
            plan_year_id=uuid4(),
        )
        with pytest.raises(ValidationError, match="Duplicate dependentIds"):
            draft_uc.execute(data)

    def test_unknown_plan_year(self, draft_uc, world):
        data = replace(_draft_input(world, [_medical(world)]), plan_year_id=uuid4())
        with pytest.raises(NotFoundError, match="Plan year not found for tenant"):
            draft_uc.execute(data)

    def test_duplicate_plan_type(self, draft_uc, world):
        with pytest.raises(ValidationError, match="Duplicate election plan type: MEDICAL"):
            draft_uc.execute(_draft_input(world, [_medical(world), _medical(world)]))

    def test_unknown_plan_type(self, draft_uc, world):
        with pytest.raises(ValidationError, match="Unsupported plan type"):
            draft_uc.execute(
                _draft_input(
                    world, [ElectionRequest("LIFE", world.medical.id, "EMPLOYEE_ONLY")]
                )
            )

    def test_unknown_plan(self, draft_uc, world):
        with pytest.raises(NotFoundError, match="not found in tenant plan year"):
            draft_uc.execute(
                _draft_input(world, [ElectionRequest("MEDICAL", uuid4(), "EMPLOYEE_ONLY")])
            )

    def test_plan_type_mismatch(self, draft_uc, world):
        with pytest.raises(ValidationError, match="does not match plan type DENTAL"):
            draft_uc.execute(
                _draft_input(
                    world, [ElectionRequest("MEDICAL", world.dental.id, "EMPLOYEE_ONLY")]
                )
            )

    def test_unsupported_tier(self, draft_uc, world):
        with pytest.raises(ValidationError, match="Unsupported coverage tier"):
            draft_uc.execute(
                _draft_input(world, [ElectionRequest("MEDICAL", world.medical.id, "GOLD")])
            )

    def test_missing_premium(self, draft_uc, world):
        with pytest.raises(BusinessRuleError, match="No premium configured"):
            draft_uc.execute(
                _draft_input(
                    world,
                    [ElectionRequest("DENTAL", world.dental.id, "FAMILY")],
                    [world.spouse.id, world.child.id],
                )
            )

    def test_foreign_dependent(self, draft_uc, world):
        with pytest.raises(BusinessRuleError, match="does not belong to employee"):
            draft_uc.execute(
                _draft_input(
                    world, [_medical(world, CoverageTier.EMPLOYEE_CHILDREN)], [uuid4()]
                )
            )

    def test_coverage_mismatch_spouse_tier_without_spouse(self, draft_uc, store, world):
        """EMPLOYEE_SPOUSE with zero spouses fails 422 and writes nothing."""
        with pytest.raises(BusinessRuleError) as exc_info:
            draft_uc.execute(_draft_input(world, [_medical(world, CoverageTier.EMPLOYEE_SPOUSE)]))
        assert exc_info.value.http_status == 422
        assert _drafts(store, world) == []

    def test_no_elections(self, draft_uc, world):
        with pytest.raises(ValidationError, match="At least one election"):
            draft_uc.execute(_draft_input(world, []))

    def test_age_not_checked_at_draft(self, draft_uc, world):
        enrollment = draft_uc.execute(
            _draft_input(
                world,
                [_medical(world, CoverageTier.EMPLOYEE_CHILDREN)],
                [world.old_child.id],
            )
        )
        assert enrollment.status == EnrollmentStatus.DRAFT


@pytest.mark.unit
class TestStrayDraftPurge:
    def test_extra_drafts_are_deleted_and_first_is_reused(self, store, clock, world):
        """R: Con el puerto mockeado: dos DRAFTs existentes -> se reusa el primero."""
        keep = Enrollment(
            id=uuid4(),
            tenant_id=world.tenant_id,
            employee_user_id=world.employee.id,
            plan_year_id=world.plan_year.id,
            status=EnrollmentStatus.DRAFT,
        )
        stray = replace(keep, id=uuid4())

        with store.unit_of_work() as real:
            employee = real.get_user(world.employee.id)
            plan_year = real.get_plan_year(world.tenant_id, world.plan_year.id)
            plan = real.get_plan(world.medical.id)
            premium = real.get_plan_premium(world.medical.id, CoverageTier.EMPLOYEE_ONLY)

        uow = MagicMock()
        uow.get_user.return_value = employee
        uow.get_plan_year.return_value = plan_year
        uow.get_plan.return_value = plan
        uow.get_plan_premium.return_value = premium
        uow.list_dependents_by_ids.return_value = []
        uow.list_draft_enrollments.return_value = [keep, stray]
        uow.update_enrollment.side_effect = lambda e: e

        mock_store = MagicMock()
        mock_store.unit_of_work.return_value.__enter__.return_value = uow

        result = CreateEnrollmentDraftUseCase(mock_store, clock).execute(
            _draft_input(world, [_medical(world)])
        )

        assert result.id == keep.id
        uow.lock_enrollment_key.assert_called_once_with(
            world.tenant_id, world.employee.id, world.plan_year.id
        )
        uow.delete_enrollments.assert_called_once_with([stray.id])
        uow.insert_enrollment.assert_not_called()


# ============================================================================
# Submit
# ============================================================================


@pytest.mark.unit
class TestSubmitEnrollment:
    def test_end_to_end_example(self, draft_uc, submit_uc, world, clock):
        """hire 2024-01-15, CHILD born 2015-05-01, MEDICAL/EMPLOYEE_CHILDREN."""
        draft = draft_uc.execute(
            _draft_input(
                world,
                [_medical(world, CoverageTier.EMPLOYEE_CHILDREN)],
                [world.child.id],
            )
        )

        submitted = _submit(submit_uc, world, draft.id)

        assert submitted.id == draft.id
        assert submitted.status == EnrollmentStatus.SUBMITTED
        assert CONFIRMATION_RE.match(submitted.confirmation_code)
        assert submitted.effective_date == date(2025, 3, 10)
        assert submitted.submitted_at == clock.now()

    def test_same_month_hire_gets_next_month(self, draft_uc, submit_uc, store, world):
        with store.unit_of_work() as uow:
            profile = uow.get_employee_profile(world.employee.id)
            uow.upsert_employee_profile(replace(profile, hire_date=date(2025, 3, 2)))
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))

        assert _submit(submit_uc, world, draft.id).effective_date == date(2025, 4, 1)

    def test_second_submit_conflicts(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        _submit(submit_uc, world, draft.id)

        with pytest.raises(ConflictError, match="Enrollment already submitted"):
            _submit(submit_uc, world, draft.id)
        with store.unit_of_work() as uow:
            assert uow.get_enrollment(draft.id).status == EnrollmentStatus.SUBMITTED

    def test_concurrent_submits_have_one_winner(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        workers = 16
        barrier = threading.Barrier(workers)

        def attempt():
            barrier.wait()
            try:
                return _submit(submit_uc, world, draft.id)
            except ConflictError as exc:
                return exc

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda _: attempt(), range(workers)))

        winners = [r for r in results if isinstance(r, Enrollment)]
        assert len(winners) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == workers - 1
        with store.unit_of_work() as uow:
            stored = uow.get_enrollment(draft.id)
        assert stored.status == EnrollmentStatus.SUBMITTED
        assert stored.confirmation_code == winners[0].confirmation_code

    def test_other_submitted_for_plan_year_conflicts(self, draft_uc, submit_uc, world):
        first = draft_uc.execute(_draft_input(world, [_medical(world)]))
        _submit(submit_uc, world, first.id)
        second = draft_uc.execute(_draft_input(world, [_medical(world)]))
        assert second.id != first.id

        with pytest.raises(ConflictError, match="already has a submitted enrollment"):
            _submit(submit_uc, world, second.id)

    def test_enrollment_of_other_employee_is_not_found(self, draft_uc, submit_uc, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with pytest.raises(NotFoundError):
            submit_uc.execute(
                SubmitEnrollmentInput(
                    tenant_id=world.other_tenant.id,
                    employee_user_id=world.other_employee.id,
                    enrollment_id=draft.id,
                )
            )

    def test_unknown_enrollment(self, submit_uc, world):
        with pytest.raises(NotFoundError, match="Enrollment not found"):
            _submit(submit_uc, world, uuid4())

    def test_missing_profile(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with store.unit_of_work() as uow:
            uow._t.profiles.pop(world.employee.id)

        with pytest.raises(BusinessRuleError, match="profile is required"):
            _submit(submit_uc, world, draft.id)

    @pytest.mark.parametrize(
        "changes",
        [
            {"benefit_class": BenefitClass.INELIGIBLE},
            {"employment_status": EmploymentStatus.TERMED},
        ],
    )
    def test_not_eligible(self, draft_uc, submit_uc, store, world, changes):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with store.unit_of_work() as uow:
            profile = uow.get_employee_profile(world.employee.id)
            uow.upsert_employee_profile(replace(profile, **changes))

        with pytest.raises(BusinessRuleError, match="not benefits-eligible"):
            _submit(submit_uc, world, draft.id)

    def test_future_hire_fails(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with store.unit_of_work() as uow:
            profile = uow.get_employee_profile(world.employee.id)
            uow.upsert_employee_profile(replace(profile, hire_date=date(2025, 6, 1)))

        with pytest.raises(BusinessRuleError, match="FUTURE_HIRE_DATE"):
            _submit(submit_uc, world, draft.id)

    def test_child_aged_out_at_submit(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(
            _draft_input(
                world,
                [_medical(world, CoverageTier.EMPLOYEE_CHILDREN)],
                [world.old_child.id],
            )
        )
        with pytest.raises(BusinessRuleError, match="child dependents must be under 26"):
            _submit(submit_uc, world, draft.id)
        with store.unit_of_work() as uow:
            assert uow.get_enrollment(draft.id).status == EnrollmentStatus.DRAFT

    def test_premiums_are_refreshed(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with store.unit_of_work() as uow:
            uow.replace_plan_premiums(
                world.medical.id,
                [
                    PlanPremium(
                        plan_id=world.medical.id,
                        coverage_tier=CoverageTier.EMPLOYEE_ONLY,
                        employee_monthly_cost=Decimal("123.45"),
                        employer_monthly_cost=Decimal("400.00"),
                    )
                ],
            )

        submitted = _submit(submit_uc, world, draft.id)
        assert submitted.elections[0].employee_monthly_cost == Decimal("123.45")
        assert submitted.elections[0].employer_monthly_cost == Decimal("400.00")

    def test_missing_premium_at_submit(self, draft_uc, submit_uc, store, world):
        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        with store.unit_of_work() as uow:
            uow.replace_plan_premiums(world.medical.id, [])

        with pytest.raises(BusinessRuleError, match="Cannot submit enrollment; missing premium"):
            _submit(submit_uc, world, draft.id)

    def test_confirmation_code_comes_from_token_generator(
        self, draft_uc, store, clock, world
    ):
        from benefits.infrastructure.services import SeededTokenGenerator

        draft = draft_uc.execute(_draft_input(world, [_medical(world)]))
        submit = SubmitEnrollmentUseCase(store, clock, SeededTokenGenerator(seed=7))

        code = _submit(submit, world, draft.id).confirmation_code

        expected = "ENR-" + SeededTokenGenerator(seed=7).token_hex(5).upper()
        assert code == expected


# ============================================================================
# Listing
# ============================================================================


@pytest.mark.unit
class TestListEmployeeEnrollments:
    def _actor(self, user, role=None):
        return AuthUser(
            user_id=user.id,
            email=user.email,
            role=role or user.role,
            tenant_id=user.tenant_id,
        )

    def test_employee_lists_own(self, draft_uc, store, world):
        draft_uc.execute(_draft_input(world, [_medical(world)]))
        result = ListEmployeeEnrollmentsUseCase(store).execute(
            ListEmployeeEnrollmentsInput(
                actor=self._actor(world.employee),
                tenant_id=world.tenant_id,
                employee_user_id=world.employee.id,
            )
        )
        assert len(result) == 1

    def test_company_admin_of_other_tenant_denied(self, store, world):
        outsider = AuthUser(
            user_id=uuid4(),
            email="x@globex.test",
            role=UserRole.COMPANY_ADMIN,
            tenant_id=world.other_tenant.id,
        )
        with pytest.raises(ForbiddenError, match="Tenant access denied"):
            ListEmployeeEnrollmentsUseCase(store).execute(
                ListEmployeeEnrollmentsInput(
                    actor=outsider,
                    tenant_id=world.tenant_id,
                    employee_user_id=world.employee.id,
                )
            )

    def test_employee_cannot_list_someone_else(self, store, world):
        with pytest.raises(ForbiddenError):
            ListEmployeeEnrollmentsUseCase(store).execute(
                ListEmployeeEnrollmentsInput(
                    actor=self._actor(world.employee),
                    tenant_id=world.tenant_id,
                    employee_user_id=uuid4(),
                )
            )
