"""
===============================================================================
USE CASE: Create Invite Code
===============================================================================

Reglas de autorización (creador -> rol destino):
    - COMPANY_ADMIN: solo FULL_ADMIN puede crearlo.
    - EMPLOYEE: solo COMPANY_ADMIN, y únicamente para su propio tenant.

Código: "INV-" + sufijo url-safe en mayúsculas; se regenera mientras colisione.

Error Mapping:
    - NOT_FOUND: creador o tenant inexistente
    - FORBIDDEN: combinación creador/rol destino no permitida
    - VALIDATION_ERROR: max_uses < 1
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from ....audit import emit_security_event
from ....crosscutting.exceptions import ForbiddenError, NotFoundError, ValidationError
from ....crosscutting.logger import logger
from ....domain.entities import InviteCode, InviteTargetRole
from ....domain.repositories import BenefitsStore, BenefitsUnitOfWork
from ....domain.security_events import SecurityEventType
from ....domain.services import Clock, TokenGenerator
from ....identity.users import UserRole

INVITE_PREFIX = "INV-"
INVITE_SUFFIX_BYTES = 6


@dataclass(frozen=True)
class CreateInviteCodeInput:
    creator_user_id: UUID
    tenant_id: UUID
    target_role: InviteTargetRole | str
    max_uses: int | None = None
    expires_at: datetime | None = None


class CreateInviteCodeUseCase:
    def __init__(self, store: BenefitsStore, tokens: TokenGenerator, clock: Clock) -> None:
        self._store = store
        self._tokens = tokens
        self._clock = clock

    def execute(self, input_data: CreateInviteCodeInput) -> InviteCode:
        try:
            target_role = InviteTargetRole(input_data.target_role)
        except ValueError:
            raise ValidationError(
                f"Unsupported invite target role: {input_data.target_role}"
            ) from None
        if input_data.max_uses is not None and input_data.max_uses < 1:
            raise ValidationError("max_uses must be >= 1")

        with self._store.unit_of_work() as uow:
            creator = uow.get_user(input_data.creator_user_id)
            if creator is None:
                raise NotFoundError("Invite code creator not found")
            if uow.get_tenant(input_data.tenant_id) is None:
                raise NotFoundError("Tenant not found")

            if target_role == InviteTargetRole.COMPANY_ADMIN:
                if creator.role != UserRole.FULL_ADMIN:
                    raise ForbiddenError(
                        "Only FULL_ADMIN can create COMPANY_ADMIN invite codes"
                    )
            elif target_role == InviteTargetRole.EMPLOYEE:
                if creator.role != UserRole.COMPANY_ADMIN:
                    raise ForbiddenError(
                        "Only COMPANY_ADMIN can create EMPLOYEE invite codes"
                    )
                if creator.tenant_id != input_data.tenant_id:
                    raise ForbiddenError(
                        "COMPANY_ADMIN can only create employee invite codes "
                        "for their own tenant"
                    )

            invite = uow.create_invite_code(
                InviteCode(
                    id=uuid4(),
                    tenant_id=input_data.tenant_id,
                    code=self._unique_code(uow),
                    target_role=target_role,
                    created_by_user_id=creator.id,
                    max_uses=input_data.max_uses,
                    expires_at=input_data.expires_at,
                    created_at=self._clock.now(),
                )
            )

        logger.info(
            "invite_code.created",
            extra={"invite_id": str(invite.id), "target_role": target_role.value},
        )
        emit_security_event(
            self._store,
            self._clock,
            event_type=SecurityEventType.INVITE_CODE_CREATED,
            tenant_id=invite.tenant_id,
            user_id=creator.id,
            email=creator.email,
            metadata={"invite_id": str(invite.id), "target_role": target_role.value},
        )
        return invite

    def _unique_code(self, uow: BenefitsUnitOfWork) -> str:
        while True:
            code = INVITE_PREFIX + self._tokens.token_urlsafe(INVITE_SUFFIX_BYTES).upper()
            if not uow.invite_code_exists(code):
                return code
