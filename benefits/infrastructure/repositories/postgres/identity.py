"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/identity.py
============================================================
Class: PostgresIdentityMixin

Responsibilities:
  - Tenants, usuarios, sesiones de refresh, reset tokens, invites y
    eventos de seguridad sobre PostgreSQL.
  - Mapear filas crudas -> entidades de dominio.
  - Revocación con COALESCE: la primera revocación gana.
  - Row locks (FOR UPDATE) para rotación de refresh, reset y consumo de invites.

Collaborators:
  - PostgresUnitOfWorkBase (_execute/_fetchone/_fetchall)
  - identity.users.User / UserRole
  - domain.entities / domain.security_events

Constraints / Notes:
  - Repositorio puro: NO define reglas de negocio.
  - Retorna None cuando no existe el recurso.
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from psycopg.types.json import Json

from ....domain.entities import (
    AuthSession,
    InviteCode,
    InviteTargetRole,
    PasswordResetToken,
    Tenant,
)
from ....domain.security_events import SecurityEvent, SecuritySeverity
from ....identity.users import User, UserRole, normalize_email
from .base import PostgresUnitOfWorkBase, enum_or_db_error

_USER_COLUMNS = "id, email, password_hash, role, tenant_id, is_active, created_at"

_SESSION_COLUMNS = """
    id, user_id, refresh_token_hash, created_at, expires_at,
    user_agent, ip_address, revoked_at, revoked_reason, replaced_by_session_id
"""

_RESET_COLUMNS = "id, user_id, token_hash, created_at, expires_at, used_at"

_INVITE_COLUMNS = """
    id, tenant_id, code, target_role, created_by_user_id,
    max_uses, uses_count, is_active, expires_at, created_at
"""

_EVENT_COLUMNS = """
    id, event_type, severity, created_at, tenant_id, user_id,
    email, ip_address, user_agent, metadata
"""


def _row_to_user(row: tuple) -> User:
    return User(
        id=row[0],
        email=row[1],
        password_hash=row[2],
        role=enum_or_db_error(UserRole, row[3], column="user role"),
        tenant_id=row[4],
        is_active=row[5],
        created_at=row[6],
    )


def _row_to_session(row: tuple) -> AuthSession:
    return AuthSession(
        id=row[0],
        user_id=row[1],
        refresh_token_hash=row[2],
        created_at=row[3],
        expires_at=row[4],
        user_agent=row[5],
        ip_address=row[6],
        revoked_at=row[7],
        revoke_reason=row[8],
        replaced_by_session_id=row[9],
    )


def _row_to_reset_token(row: tuple) -> PasswordResetToken:
    return PasswordResetToken(
        id=row[0],
        user_id=row[1],
        token_hash=row[2],
        created_at=row[3],
        expires_at=row[4],
        used_at=row[5],
    )


def _row_to_invite(row: tuple) -> InviteCode:
    return InviteCode(
        id=row[0],
        tenant_id=row[1],
        code=row[2],
        target_role=enum_or_db_error(InviteTargetRole, row[3], column="invite role"),
        created_by_user_id=row[4],
        max_uses=row[5],
        uses_count=row[6],
        is_active=row[7],
        expires_at=row[8],
        created_at=row[9],
    )


def _row_to_event(row: tuple) -> SecurityEvent:
    return SecurityEvent(
        id=row[0],
        event_type=row[1],
        severity=enum_or_db_error(SecuritySeverity, row[2], column="severity"),
        created_at=row[3],
        tenant_id=row[4],
        user_id=row[5],
        email=row[6],
        ip_address=row[7],
        user_agent=row[8],
        metadata=row[9] or {},
    )


class PostgresIdentityMixin(PostgresUnitOfWorkBase):
    # =========================================================
    # Tenants / users
    # =========================================================
    def create_tenant(self, tenant: Tenant) -> Tenant:
        row = self._execute(
            """
            INSERT INTO tenants (id, name, created_at)
            VALUES (%s, %s, COALESCE(%s, now()))
            RETURNING id, name, created_at
            """,
            (tenant.id, tenant.name, tenant.created_at),
            context_msg="PostgresBenefitsStore: create_tenant failed",
            conflict_msg=f"Tenant {tenant.id} already exists",
        ).fetchone()
        return Tenant(id=row[0], name=row[1], created_at=row[2])

    def get_tenant(self, tenant_id: UUID) -> Optional[Tenant]:
        row = self._fetchone(
            "SELECT id, name, created_at FROM tenants WHERE id = %s",
            (tenant_id,),
            context_msg="PostgresBenefitsStore: get_tenant failed",
        )
        return Tenant(id=row[0], name=row[1], created_at=row[2]) if row else None

    def create_user(self, user: User) -> User:
        row = self._execute(
            f"""
            INSERT INTO users (id, email, password_hash, role, tenant_id, is_active, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, COALESCE(%s, now()))
            RETURNING {_USER_COLUMNS}
            """,
            (
                user.id,
                normalize_email(user.email),
                user.password_hash,
                user.role.value,
                user.tenant_id,
                user.is_active,
                user.created_at,
            ),
            context_msg="PostgresBenefitsStore: create_user failed",
            conflict_msg="Email is already registered",
        ).fetchone()
        return _row_to_user(row)

    def get_user(self, user_id: UUID) -> Optional[User]:
        row = self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
            context_msg="PostgresBenefitsStore: get_user failed",
        )
        return _row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE lower(email) = %s",
            (normalize_email(email),),
            context_msg="PostgresBenefitsStore: get_user_by_email failed",
        )
        return _row_to_user(row) if row else None

    def update_user_password(self, user_id: UUID, password_hash: str) -> None:
        self._execute(
            "UPDATE users SET password_hash = %s WHERE id = %s",
            (password_hash, user_id),
            context_msg="PostgresBenefitsStore: update_user_password failed",
        )

    # =========================================================
    # Auth sessions
    # =========================================================
    def create_auth_session(self, session: AuthSession) -> AuthSession:
        row = self._execute(
            f"""
            INSERT INTO auth_sessions (
                id, user_id, refresh_token_hash, created_at, expires_at,
                user_agent, ip_address
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_SESSION_COLUMNS}
            """,
            (
                session.id,
                session.user_id,
                session.refresh_token_hash,
                session.created_at,
                session.expires_at,
                session.user_agent,
                session.ip_address,
            ),
            context_msg="PostgresBenefitsStore: create_auth_session failed",
            conflict_msg="Refresh token hash already exists",
        ).fetchone()
        return _row_to_session(row)

    def get_auth_session(self, session_id: UUID) -> Optional[AuthSession]:
        row = self._fetchone(
            f"SELECT {_SESSION_COLUMNS} FROM auth_sessions WHERE id = %s",
            (session_id,),
            context_msg="PostgresBenefitsStore: get_auth_session failed",
        )
        return _row_to_session(row) if row else None

    def get_auth_session_by_token_hash(
        self, refresh_token_hash: str, *, for_update: bool = False
    ) -> Optional[AuthSession]:
        lock = " FOR UPDATE" if for_update else ""
        row = self._fetchone(
            f"""
            SELECT {_SESSION_COLUMNS}
            FROM auth_sessions
            WHERE refresh_token_hash = %s{lock}
            """,
            (refresh_token_hash,),
            context_msg="PostgresBenefitsStore: get_auth_session_by_token_hash failed",
        )
        return _row_to_session(row) if row else None

    def revoke_auth_session(
        self,
        session_id: UUID,
        *,
        reason: str,
        at: datetime,
        replaced_by_session_id: Optional[UUID] = None,
    ) -> None:
        self._execute(
            """
            UPDATE auth_sessions
            SET revoked_at = COALESCE(revoked_at, %s),
                revoked_reason = COALESCE(revoked_reason, %s),
                replaced_by_session_id = COALESCE(replaced_by_session_id, %s)
            WHERE id = %s
            """,
            (at, reason, replaced_by_session_id, session_id),
            context_msg="PostgresBenefitsStore: revoke_auth_session failed",
        )

    def revoke_all_user_sessions(
        self, user_id: UUID, *, reason: str, at: datetime
    ) -> None:
        self._execute(
            """
            UPDATE auth_sessions
            SET revoked_at = COALESCE(revoked_at, %s),
                revoked_reason = COALESCE(revoked_reason, %s)
            WHERE user_id = %s
            """,
            (at, reason, user_id),
            context_msg="PostgresBenefitsStore: revoke_all_user_sessions failed",
        )

    def is_auth_session_active(self, session_id: UUID, now: datetime) -> bool:
        row = self._fetchone(
            """
            SELECT EXISTS (
                SELECT 1 FROM auth_sessions
                WHERE id = %s AND revoked_at IS NULL AND expires_at > %s
            )
            """,
            (session_id, now),
            context_msg="PostgresBenefitsStore: is_auth_session_active failed",
        )
        return bool(row and row[0])

    # =========================================================
    # Password reset tokens
    # =========================================================
    def create_password_reset_token(
        self, token: PasswordResetToken
    ) -> PasswordResetToken:
        row = self._execute(
            f"""
            INSERT INTO password_reset_tokens (id, user_id, token_hash, created_at, expires_at)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {_RESET_COLUMNS}
            """,
            (token.id, token.user_id, token.token_hash, token.created_at, token.expires_at),
            context_msg="PostgresBenefitsStore: create_password_reset_token failed",
            conflict_msg="Reset token hash already exists",
        ).fetchone()
        return _row_to_reset_token(row)

    def get_password_reset_token_by_hash(
        self, token_hash: str, *, for_update: bool = False
    ) -> Optional[PasswordResetToken]:
        lock = " FOR UPDATE" if for_update else ""
        row = self._fetchone(
            f"SELECT {_RESET_COLUMNS} FROM password_reset_tokens WHERE token_hash = %s{lock}",
            (token_hash,),
            context_msg="PostgresBenefitsStore: get_password_reset_token_by_hash failed",
        )
        return _row_to_reset_token(row) if row else None

    def mark_password_reset_token_used(self, token_id: UUID, at: datetime) -> None:
        self._execute(
            """
            UPDATE password_reset_tokens
            SET used_at = COALESCE(used_at, %s)
            WHERE id = %s
            """,
            (at, token_id),
            context_msg="PostgresBenefitsStore: mark_password_reset_token_used failed",
        )

    # =========================================================
    # Invite codes
    # =========================================================
    def create_invite_code(self, invite: InviteCode) -> InviteCode:
        row = self._execute(
            f"""
            INSERT INTO invite_codes (
                id, tenant_id, code, target_role, created_by_user_id,
                max_uses, uses_count, is_active, expires_at, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, now()))
            RETURNING {_INVITE_COLUMNS}
            """,
            (
                invite.id,
                invite.tenant_id,
                invite.code,
                invite.target_role.value,
                invite.created_by_user_id,
                invite.max_uses,
                invite.uses_count,
                invite.is_active,
                invite.expires_at,
                invite.created_at,
            ),
            context_msg="PostgresBenefitsStore: create_invite_code failed",
            conflict_msg="Invite code already exists",
        ).fetchone()
        return _row_to_invite(row)

    def get_invite_code_by_code(
        self, code: str, *, for_update: bool = False
    ) -> Optional[InviteCode]:
        lock = " FOR UPDATE" if for_update else ""
        row = self._fetchone(
            f"SELECT {_INVITE_COLUMNS} FROM invite_codes WHERE code = %s{lock}",
            (code,),
            context_msg="PostgresBenefitsStore: get_invite_code_by_code failed",
        )
        return _row_to_invite(row) if row else None

    def invite_code_exists(self, code: str) -> bool:
        row = self._fetchone(
            "SELECT EXISTS (SELECT 1 FROM invite_codes WHERE code = %s)",
            (code,),
            context_msg="PostgresBenefitsStore: invite_code_exists failed",
        )
        return bool(row and row[0])

    def update_invite_code_usage(
        self, invite_id: UUID, *, uses_count: int, is_active: bool
    ) -> None:
        self._execute(
            "UPDATE invite_codes SET uses_count = %s, is_active = %s WHERE id = %s",
            (uses_count, is_active, invite_id),
            context_msg="PostgresBenefitsStore: update_invite_code_usage failed",
        )

    # =========================================================
    # Security events
    # =========================================================
    def record_security_event(self, event: SecurityEvent) -> None:
        self._execute(
            """
            INSERT INTO security_events (
                id, event_type, severity, created_at, tenant_id, user_id,
                email, ip_address, user_agent, metadata
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                event.id,
                event.event_type,
                event.severity.value,
                event.created_at,
                event.tenant_id,
                event.user_id,
                event.email,
                event.ip_address,
                event.user_agent,
                Json(event.metadata or {}),
            ),
            context_msg="PostgresBenefitsStore: record_security_event failed",
        )

    def list_security_events(
        self,
        *,
        tenant_id: Optional[UUID] = None,
        severity: Optional[SecuritySeverity] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[SecurityEvent]:
        if limit <= 0:
            return []

        filters: list[str] = []
        params: list[object] = []
        if tenant_id is not None:
            filters.append("tenant_id = %s")
            params.append(tenant_id)
        if severity is not None:
            filters.append("severity = %s")
            params.append(severity.value)
        if event_type is not None:
            filters.append("event_type = %s")
            params.append(event_type)

        where = f"WHERE {' AND '.join(filters)}" if filters else ""
        rows = self._fetchall(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM security_events
            {where}
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (*params, limit),
            context_msg="PostgresBenefitsStore: list_security_events failed",
        )
        return [_row_to_event(r) for r in rows]
