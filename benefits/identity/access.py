"""
===============================================================================
TARJETA CRC — identity/access.py
===============================================================================

Módulo:
    Guards de rol y de tenant

Responsabilidades:
    - Verificar que el usuario autenticado tenga uno de los roles requeridos.
    - Verificar acceso al tenant (FULL_ADMIN ve todos; el resto solo el propio).
    - Verificar que un EMPLOYEE solo opere sobre sus propios registros.

Colaboradores:
    - identity/auth_users.require_roles (FastAPI)
    - application/usecases (invites)

Notas:
    - Fallan con ForbiddenError; la capa HTTP lo traduce a 403.
===============================================================================
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from ..crosscutting.exceptions import ForbiddenError
from .users import AuthUser, UserRole


def assert_roles(user: AuthUser, roles: Iterable[UserRole | str]) -> None:
    allowed = [UserRole(r) for r in roles]
    if user.role not in allowed:
        raise ForbiddenError(
            "Requires role: " + ", ".join(role.value for role in allowed)
        )


def assert_tenant_scope(user: AuthUser, tenant_id: UUID) -> None:
    if user.role == UserRole.FULL_ADMIN:
        return
    if user.tenant_id is None or user.tenant_id != tenant_id:
        raise ForbiddenError("Tenant access denied")


def assert_self_employee_or_admin(user: AuthUser, employee_user_id: UUID) -> None:
    """Un EMPLOYEE solo accede a lo suyo; admins pasan (el tenant se chequea aparte)."""
    if user.role == UserRole.EMPLOYEE and user.user_id != employee_user_id:
        raise ForbiddenError("Employees may only access their own records")
