"""
Chequeos de alcance compartidos por los use cases de enrollment.

Un "employee en tenant" es un User con rol EMPLOYEE cuyo tenant_id coincide;
cualquier otra cosa se reporta como NOT_FOUND (no se revela existencia).
"""

from __future__ import annotations

from uuid import UUID

from ....crosscutting.exceptions import NotFoundError
from ....domain.repositories import BenefitsUnitOfWork
from ....identity.users import User, UserRole


def load_employee_in_tenant(
    uow: BenefitsUnitOfWork, tenant_id: UUID, employee_user_id: UUID
) -> User:
    user = uow.get_user(employee_user_id)
    if user is None or user.role != UserRole.EMPLOYEE or user.tenant_id != tenant_id:
        raise NotFoundError("Employee not found in tenant")
    return user
