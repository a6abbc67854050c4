"""
USE CASE: List Security Events

FULL_ADMIN lista cualquier tenant (o todos); COMPANY_ADMIN solo el suyo.
Orden: más reciente primero. limit acotado a [1, 500].
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ....crosscutting.exceptions import ValidationError
from ....domain.repositories import BenefitsStore
from ....domain.security_events import SecurityEvent, SecuritySeverity
from ....identity.access import assert_roles, assert_tenant_scope
from ....identity.users import AuthUser, UserRole

MAX_LIMIT = 500


@dataclass(frozen=True)
class ListSecurityEventsInput:
    actor: AuthUser
    tenant_id: UUID | None = None
    severity: SecuritySeverity | str | None = None
    event_type: str | None = None
    limit: int = 100


class ListSecurityEventsUseCase:
    def __init__(self, store: BenefitsStore) -> None:
        self._store = store

    def execute(self, input_data: ListSecurityEventsInput) -> list[SecurityEvent]:
        actor = input_data.actor
        assert_roles(actor, [UserRole.FULL_ADMIN, UserRole.COMPANY_ADMIN])

        tenant_id = input_data.tenant_id
        if actor.role == UserRole.COMPANY_ADMIN:
            # R: COMPANY_ADMIN sin tenant explícito = su propio tenant.
            tenant_id = tenant_id or actor.tenant_id
            assert_tenant_scope(actor, tenant_id)

        if not 1 <= input_data.limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")

        severity = None
        if input_data.severity is not None:
            try:
                severity = SecuritySeverity(input_data.severity)
            except ValueError:
                raise ValidationError(
                    f"Unsupported severity: {input_data.severity}"
                ) from None

        with self._store.unit_of_work() as uow:
            return uow.list_security_events(
                tenant_id=tenant_id,
                severity=severity,
                event_type=input_data.event_type,
                limit=input_data.limit,
            )
