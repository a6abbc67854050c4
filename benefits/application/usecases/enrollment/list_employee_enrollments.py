"""
USE CASE: List Employee Enrollments

Historial de enrollments de un empleado (más reciente primero). El caller
debe pasar un actor: EMPLOYEE solo ve lo suyo; admins dentro de su tenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ....domain.entities import Enrollment
from ....domain.repositories import BenefitsStore
from ....identity.access import (
    assert_roles,
    assert_self_employee_or_admin,
    assert_tenant_scope,
)
from ....identity.users import AuthUser, UserRole
from .employee_scope import load_employee_in_tenant


@dataclass(frozen=True)
class ListEmployeeEnrollmentsInput:
    actor: AuthUser
    tenant_id: UUID
    employee_user_id: UUID


class ListEmployeeEnrollmentsUseCase:
    def __init__(self, store: BenefitsStore) -> None:
        self._store = store

    def execute(self, input_data: ListEmployeeEnrollmentsInput) -> list[Enrollment]:
        actor = input_data.actor
        assert_roles(
            actor, [UserRole.FULL_ADMIN, UserRole.COMPANY_ADMIN, UserRole.EMPLOYEE]
        )
        assert_tenant_scope(actor, input_data.tenant_id)
        assert_self_employee_or_admin(actor, input_data.employee_user_id)

        with self._store.unit_of_work() as uow:
            load_employee_in_tenant(
                uow, input_data.tenant_id, input_data.employee_user_id
            )
            return uow.list_employee_enrollments(
                input_data.tenant_id, input_data.employee_user_id
            )
