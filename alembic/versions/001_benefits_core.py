"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 001_benefits_core (Alembic Migration)

Responsibilities:
  - Crear el esquema completo desde cero (migración fundacional).
  - Traducir a constraints los invariantes de almacenamiento:
      - un premium por (plan, tier)
      - una elección por (enrollment, plan_type)
      - un SUBMITTED y un DRAFT por (employee, plan_year) (índices parciales)
      - unicidad de email (lower), refresh hash, reset hash, invite code,
        employee_code por tenant

Collaborators:
  - PostgreSQL 14+
  - infrastructure/repositories/postgres (usa este esquema como contrato)

Policy:
  - Migración BASELINE. Downgrade elimina todo.
  - Convención de nombres:
      pk_<tabla> / uq_<tabla>_<col> / ix_<tabla>_<col> / fk_<tabla>_<col>__<ref>
============================================================
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_benefits_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_UUID = postgresql.UUID(as_uuid=True)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """
    Orden por dependencias:
      1) Tenants + identity
      2) Perfiles + planes + premiums
      3) Dependents + enrollments
      4) Sesiones, reset tokens, invites
      5) Security events
    """

    # =========================================================
    # 1) TENANTS / USERS
    # =========================================================
    op.create_table(
        "tenants",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
    )

    op.create_table(
        "users",
        sa.Column("id", _UUID, nullable=False),
        # FULL_ADMIN no tiene tenant.
        sa.Column("tenant_id", _UUID, nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column(
            "is_active", sa.Boolean, nullable=False, server_default=sa.text("true")
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_users_tenant_id__tenants"
        ),
        sa.CheckConstraint(
            "role IN ('FULL_ADMIN','COMPANY_ADMIN','EMPLOYEE')", name="ck_users_role"
        ),
    )
    op.execute("CREATE UNIQUE INDEX uq_users_email_lower ON users (lower(email))")
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])

    # =========================================================
    # 2) PROFILES / PLAN YEARS / PLANS / PREMIUMS
    # =========================================================
    op.create_table(
        "employee_profiles",
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("employee_code", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        sa.Column("hire_date", sa.Date, nullable=False),
        sa.Column("salary", sa.Numeric(12, 2), nullable=False),
        sa.Column("benefit_class", sa.String(32), nullable=False),
        sa.Column("employment_status", sa.String(32), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id", name="pk_employee_profiles"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_employee_profiles_user_id__users"
        ),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name="fk_employee_profiles_tenant_id__tenants",
        ),
        sa.UniqueConstraint(
            "tenant_id", "employee_code", name="uq_employee_profiles_employee_code"
        ),
    )

    op.create_table(
        "plan_years",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_plan_years"),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_plan_years_tenant_id__tenants"
        ),
        sa.CheckConstraint("start_date <= end_date", name="ck_plan_years_range"),
    )
    op.create_index("ix_plan_years_tenant_id", "plan_years", ["tenant_id"])

    op.create_table(
        "plans",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("plan_year_id", _UUID, nullable=False),
        sa.Column("plan_type", sa.String(16), nullable=False),
        sa.Column("carrier", sa.String(120), nullable=False),
        sa.Column("plan_name", sa.String(200), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_plans"),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_plans_tenant_id__tenants"
        ),
        sa.ForeignKeyConstraint(
            ["plan_year_id"],
            ["plan_years.id"],
            name="fk_plans_plan_year_id__plan_years",
        ),
        sa.CheckConstraint(
            "plan_type IN ('MEDICAL','DENTAL','VISION')", name="ck_plans_plan_type"
        ),
    )
    op.create_index("ix_plans_plan_year_id", "plans", ["plan_year_id"])

    op.create_table(
        "plan_premiums",
        sa.Column("plan_id", _UUID, nullable=False),
        sa.Column("coverage_tier", sa.String(32), nullable=False),
        sa.Column("employee_monthly_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("employer_monthly_cost", sa.Numeric(10, 2), nullable=False),
        # R: la PK ES el invariante "un premium por (plan, tier)".
        sa.PrimaryKeyConstraint("plan_id", "coverage_tier", name="pk_plan_premiums"),
        sa.ForeignKeyConstraint(
            ["plan_id"],
            ["plans.id"],
            name="fk_plan_premiums_plan_id__plans",
            ondelete="CASCADE",
        ),
    )

    # =========================================================
    # 3) DEPENDENTS / ENROLLMENTS
    # =========================================================
    op.create_table(
        "dependents",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("employee_user_id", _UUID, nullable=False),
        sa.Column("relationship", sa.String(16), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_dependents"),
        sa.ForeignKeyConstraint(
            ["employee_user_id"],
            ["users.id"],
            name="fk_dependents_employee_user_id__users",
        ),
        sa.CheckConstraint(
            "relationship IN ('SPOUSE','CHILD')", name="ck_dependents_relationship"
        ),
    )
    op.create_index(
        "ix_dependents_tenant_employee",
        "dependents",
        ["tenant_id", "employee_user_id"],
    )

    op.create_table(
        "enrollments",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("employee_user_id", _UUID, nullable=False),
        sa.Column("plan_year_id", _UUID, nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("effective_date", sa.Date, nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmation_code", sa.String(32), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_enrollments"),
        sa.ForeignKeyConstraint(
            ["employee_user_id"],
            ["users.id"],
            name="fk_enrollments_employee_user_id__users",
        ),
        sa.ForeignKeyConstraint(
            ["plan_year_id"],
            ["plan_years.id"],
            name="fk_enrollments_plan_year_id__plan_years",
        ),
        sa.CheckConstraint(
            "status IN ('DRAFT','SUBMITTED')", name="ck_enrollments_status"
        ),
    )
    op.create_index(
        "ix_enrollments_tenant_employee",
        "enrollments",
        ["tenant_id", "employee_user_id"],
    )
    # R: índices únicos parciales: como máximo un SUBMITTED y un DRAFT por clave.
    op.execute(
        "CREATE UNIQUE INDEX uq_enrollments_submitted_per_plan_year "
        "ON enrollments (employee_user_id, plan_year_id) WHERE status = 'SUBMITTED'"
    )
    op.execute(
        "CREATE UNIQUE INDEX uq_enrollments_draft_per_plan_year "
        "ON enrollments (employee_user_id, plan_year_id) WHERE status = 'DRAFT'"
    )

    op.create_table(
        "enrollment_elections",
        sa.Column("enrollment_id", _UUID, nullable=False),
        sa.Column("plan_type", sa.String(16), nullable=False),
        sa.Column("plan_id", _UUID, nullable=False),
        sa.Column("coverage_tier", sa.String(32), nullable=False),
        sa.Column("employee_monthly_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("employer_monthly_cost", sa.Numeric(10, 2), nullable=False),
        sa.PrimaryKeyConstraint(
            "enrollment_id", "plan_type", name="pk_enrollment_elections"
        ),
        sa.ForeignKeyConstraint(
            ["enrollment_id"],
            ["enrollments.id"],
            name="fk_enrollment_elections_enrollment_id__enrollments",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["plan_id"], ["plans.id"], name="fk_enrollment_elections_plan_id__plans"
        ),
    )

    op.create_table(
        "enrollment_dependents",
        sa.Column("enrollment_id", _UUID, nullable=False),
        sa.Column("dependent_id", _UUID, nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.PrimaryKeyConstraint(
            "enrollment_id", "dependent_id", name="pk_enrollment_dependents"
        ),
        sa.ForeignKeyConstraint(
            ["enrollment_id"],
            ["enrollments.id"],
            name="fk_enrollment_dependents_enrollment_id__enrollments",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["dependent_id"],
            ["dependents.id"],
            name="fk_enrollment_dependents_dependent_id__dependents",
        ),
    )

    # =========================================================
    # 4) AUTH SESSIONS / RESET TOKENS / INVITES
    # =========================================================
    op.create_table(
        "auth_sessions",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("refresh_token_hash", sa.String(64), nullable=False),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(64), nullable=True),
        sa.Column("replaced_by_session_id", _UUID, nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_auth_sessions"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_auth_sessions_user_id__users"
        ),
        sa.UniqueConstraint(
            "refresh_token_hash", name="uq_auth_sessions_refresh_token_hash"
        ),
    )
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_password_reset_tokens"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_password_reset_tokens_user_id__users"
        ),
        sa.UniqueConstraint("token_hash", name="uq_password_reset_tokens_token_hash"),
    )

    op.create_table(
        "invite_codes",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("tenant_id", _UUID, nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("target_role", sa.String(32), nullable=False),
        sa.Column("created_by_user_id", _UUID, nullable=False),
        sa.Column("max_uses", sa.Integer, nullable=True),
        sa.Column(
            "uses_count", sa.Integer, nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "is_active", sa.Boolean, nullable=False, server_default=sa.text("true")
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_invite_codes"),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_invite_codes_tenant_id__tenants"
        ),
        sa.UniqueConstraint("code", name="uq_invite_codes_code"),
        sa.CheckConstraint("max_uses IS NULL OR max_uses > 0", name="ck_invite_codes_max_uses"),
    )

    # =========================================================
    # 5) SECURITY EVENTS (append-only)
    # =========================================================
    op.create_table(
        "security_events",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("severity", sa.String(8), nullable=False),
        sa.Column("tenant_id", _UUID, nullable=True),
        sa.Column("user_id", _UUID, nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_security_events"),
    )
    op.create_index(
        "ix_security_events_created_at", "security_events", ["created_at"]
    )
    op.create_index("ix_security_events_tenant_id", "security_events", ["tenant_id"])


def downgrade() -> None:
    for table in (
        "security_events",
        "invite_codes",
        "password_reset_tokens",
        "auth_sessions",
        "enrollment_dependents",
        "enrollment_elections",
        "enrollments",
        "dependents",
        "plan_premiums",
        "plans",
        "plan_years",
        "employee_profiles",
        "users",
        "tenants",
    ):
        op.drop_table(table)
