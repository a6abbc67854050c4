"""
Name: Auth Use Case Tests

Responsibilities:
  - Login: success, invalid credentials, lockout, best-effort auditing
  - Refresh rotation, replay detection (revokes every session), expiry
  - Logout / logout-all
  - Password reset (single use, revokes sessions, token exposure)
  - Invite codes and signup
  - Security event listing scope

Notes:
  - In-memory store + fixed clock + seeded tokens (see conftest)
"""

from dataclasses import replace
from datetime import timedelta
from uuid import uuid4

import pytest

from benefits.application.usecases.auth import (
    ConfirmPasswordResetInput,
    ConfirmPasswordResetUseCase,
    CreateInviteCodeInput,
    CreateInviteCodeUseCase,
    ListSecurityEventsInput,
    ListSecurityEventsUseCase,
    LoginInput,
    LoginUseCase,
    LogoutAllInput,
    LogoutAllUseCase,
    LogoutInput,
    LogoutUseCase,
    RefreshSessionInput,
    RefreshSessionUseCase,
    RequestPasswordResetInput,
    RequestPasswordResetUseCase,
    SignupWithInviteInput,
    SignupWithInviteUseCase,
)
from benefits.crosscutting.exceptions import (
    BusinessRuleError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)
from benefits.domain.entities import InviteTargetRole
from benefits.domain.security_events import SecuritySeverity
from benefits.identity.auth_users import hash_opaque_token
from benefits.identity.users import AuthUser, UserRole
from benefits.infrastructure.repositories.in_memory import InMemoryBenefitsUnitOfWork


IP = "203.0.113.7"


@pytest.fixture
def login_uc(store, limiter, hasher, issuer, clock):
    return LoginUseCase(store, limiter, hasher, issuer, clock)


@pytest.fixture
def refresh_uc(store, issuer, clock):
    return RefreshSessionUseCase(store, issuer, clock)


def _login(login_uc, world, password=None, email="JANE@acme.test "):
    return login_uc.execute(
        LoginInput(
            email=email,
            password=password or world.employee_password,
            ip_address=IP,
            user_agent="pytest",
        )
    )


def _events(store, event_type=None):
    with store.unit_of_work() as uow:
        return uow.list_security_events(event_type=event_type, limit=500)


def _session_for(store, refresh_token):
    with store.unit_of_work() as uow:
        return uow.get_auth_session_by_token_hash(hash_opaque_token(refresh_token))


def _actor(user):
    return AuthUser(user_id=user.id, email=user.email, role=user.role, tenant_id=user.tenant_id)


# ============================================================================
# Login
# ============================================================================


@pytest.mark.unit
class TestLogin:
    def test_success_issues_session(self, login_uc, store, token_service, world):
        tokens = _login(login_uc, world)

        assert tokens.token_type == "bearer"
        assert tokens.expires_in == 3600
        session = _session_for(store, tokens.refresh_token)
        assert session is not None
        assert session.user_id == world.employee.id
        assert session.user_agent == "pytest"
        assert session.ip_address == IP

        decoded = token_service.decode_access_token(tokens.access_token)
        assert decoded.user_id == world.employee.id
        assert decoded.session_id == session.id
        assert tokens.user.session_id == session.id

        (event,) = _events(store, "AUTH_LOGIN_SUCCESS")
        assert event.tenant_id == world.tenant_id
        assert event.email == "jane@acme.test"

    def test_refresh_token_is_only_stored_hashed(self, login_uc, store, world):
        tokens = _login(login_uc, world)
        session = _session_for(store, tokens.refresh_token)
        assert session.refresh_token_hash != tokens.refresh_token
        assert session.refresh_token_hash == hash_opaque_token(tokens.refresh_token)

    def test_wrong_password(self, login_uc, limiter, store, world):
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            _login(login_uc, world, password="wrong-password")

        assert limiter.failures(f"jane@acme.test|{IP}") == 1
        (event,) = _events(store, "AUTH_LOGIN_FAILED")
        assert event.severity == SecuritySeverity.WARN

    def test_unknown_email_has_same_error(self, login_uc, world):
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            _login(login_uc, world, email="nobody@acme.test")

    def test_inactive_user_cannot_login(self, login_uc, store, world):
        with store.unit_of_work() as uow:
            uow._t.users[world.employee.id] = replace(world.employee, is_active=False)

        with pytest.raises(UnauthorizedError):
            _login(login_uc, world)

    def test_lockout_after_five_failures(self, login_uc, store, clock, world):
        for _ in range(5):
            with pytest.raises(UnauthorizedError):
                _login(login_uc, world, password="wrong-password")

        # R: Incluso con la password correcta, la clave está bloqueada.
        with pytest.raises(RateLimitedError) as exc_info:
            _login(login_uc, world)
        assert exc_info.value.retry_after_seconds == 15 * 60
        assert exc_info.value.http_status == 429

        (locked,) = _events(store, "AUTH_LOGIN_LOCKED")
        assert locked.severity == SecuritySeverity.WARN
        assert locked.email == "jane@acme.test"
        assert locked.ip_address == IP
        assert locked.metadata == {"retry_after_seconds": 15 * 60}

        clock.advance(minutes=15)
        assert _login(login_uc, world).access_token

    def test_success_clears_failures(self, login_uc, limiter, world):
        for _ in range(4):
            with pytest.raises(UnauthorizedError):
                _login(login_uc, world, password="wrong-password")

        _login(login_uc, world)

        assert limiter.failures(f"jane@acme.test|{IP}") == 0

    def test_event_persist_failure_is_swallowed(self, login_uc, store, world, monkeypatch):
        def _boom(self, event):
            raise RuntimeError("events table unavailable")

        monkeypatch.setattr(InMemoryBenefitsUnitOfWork, "record_security_event", _boom)

        tokens = _login(login_uc, world)

        assert tokens.access_token
        assert _session_for(store, tokens.refresh_token) is not None


# ============================================================================
# Refresh / logout
# ============================================================================


@pytest.mark.unit
class TestRefreshSession:
    def test_rotation(self, login_uc, refresh_uc, store, world):
        first = _login(login_uc, world)

        second = refresh_uc.execute(RefreshSessionInput(refresh_token=first.refresh_token))

        assert second.refresh_token != first.refresh_token
        old = _session_for(store, first.refresh_token)
        new = _session_for(store, second.refresh_token)
        assert old.revoked_at is not None
        assert old.revoke_reason == "rotated"
        assert old.replaced_by_session_id == new.id
        assert new.revoked_at is None
        # R: Sin user agent explícito se hereda el de la sesión anterior.
        assert new.user_agent == "pytest"

    def test_replay_revokes_every_session(self, login_uc, refresh_uc, store, world):
        first = _login(login_uc, world)
        second = refresh_uc.execute(RefreshSessionInput(refresh_token=first.refresh_token))

        with pytest.raises(UnauthorizedError, match="reuse detected"):
            refresh_uc.execute(RefreshSessionInput(refresh_token=first.refresh_token))

        current = _session_for(store, second.refresh_token)
        assert current.revoked_at is not None
        assert current.revoke_reason == "refresh_token_replay"
        # R: La razón original de la sesión vieja no se pisa.
        assert _session_for(store, first.refresh_token).revoke_reason == "rotated"

        (event,) = _events(store, "AUTH_REFRESH_REPLAY_DETECTED")
        assert event.severity == SecuritySeverity.ERROR

        with pytest.raises(UnauthorizedError):
            refresh_uc.execute(RefreshSessionInput(refresh_token=second.refresh_token))

    def test_expired(self, login_uc, refresh_uc, clock, world):
        tokens = _login(login_uc, world)
        clock.advance(days=30)

        with pytest.raises(UnauthorizedError, match="Refresh token expired"):
            refresh_uc.execute(RefreshSessionInput(refresh_token=tokens.refresh_token))

    def test_unknown_token(self, refresh_uc, store, world):
        with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
            refresh_uc.execute(RefreshSessionInput(refresh_token="not-a-token"))
        assert len(_events(store, "AUTH_REFRESH_FAILED")) == 1

    def test_access_token_session_dies_with_rotation(
        self, login_uc, refresh_uc, store, clock, world
    ):
        first = _login(login_uc, world)
        refresh_uc.execute(RefreshSessionInput(refresh_token=first.refresh_token))

        with store.unit_of_work() as uow:
            assert not uow.is_auth_session_active(first.user.session_id, clock.now())


@pytest.mark.unit
class TestLogout:
    def test_logout_revokes_session(self, login_uc, refresh_uc, store, clock, world):
        tokens = _login(login_uc, world)

        LogoutUseCase(store, clock).execute(LogoutInput(refresh_token=tokens.refresh_token))

        session = _session_for(store, tokens.refresh_token)
        assert session.revoke_reason == "logout"
        assert len(_events(store, "AUTH_LOGOUT")) == 1

    def test_logout_unknown_token_is_silent(self, store, clock, world):
        LogoutUseCase(store, clock).execute(LogoutInput(refresh_token="unknown"))
        assert _events(store, "AUTH_LOGOUT") == []

    def test_logout_all(self, login_uc, store, clock, world):
        a = _login(login_uc, world)
        b = _login(login_uc, world)

        LogoutAllUseCase(store, clock).execute(LogoutAllInput(user_id=world.employee.id))

        for tokens in (a, b):
            assert _session_for(store, tokens.refresh_token).revoke_reason == "logout_all"
        assert len(_events(store, "AUTH_LOGOUT_ALL")) == 1


# ============================================================================
# Password reset
# ============================================================================


@pytest.mark.unit
class TestPasswordReset:
    def _request(self, store, tokens, clock, *, expose=True, email="jane@acme.test"):
        return RequestPasswordResetUseCase(
            store, tokens, clock, ttl_minutes=30, expose_token=expose
        ).execute(RequestPasswordResetInput(email=email))

    def test_full_flow(self, login_uc, store, tokens, hasher, clock, world):
        session_tokens = _login(login_uc, world)
        result = self._request(store, tokens, clock)
        assert result.accepted
        assert result.reset_token
        assert result.expires_at == clock.now() + timedelta(minutes=30)

        ConfirmPasswordResetUseCase(store, hasher, clock).execute(
            ConfirmPasswordResetInput(token=result.reset_token, new_password="NewPassw0rd!")
        )

        assert _session_for(store, session_tokens.refresh_token).revoke_reason == "password_reset"
        assert _login(login_uc, world, password="NewPassw0rd!").access_token
        with pytest.raises(UnauthorizedError):
            _login(login_uc, world)

    def test_token_is_single_use(self, store, tokens, hasher, clock, world):
        token = self._request(store, tokens, clock).reset_token
        confirm = ConfirmPasswordResetUseCase(store, hasher, clock)
        confirm.execute(ConfirmPasswordResetInput(token=token, new_password="NewPassw0rd!"))

        with pytest.raises(ConflictError, match="already used"):
            confirm.execute(ConfirmPasswordResetInput(token=token, new_password="Another-1234"))

    def test_expired_token(self, store, tokens, hasher, clock, world):
        token = self._request(store, tokens, clock).reset_token
        clock.advance(minutes=30)

        with pytest.raises(UnauthorizedError, match="expired"):
            ConfirmPasswordResetUseCase(store, hasher, clock).execute(
                ConfirmPasswordResetInput(token=token, new_password="NewPassw0rd!")
            )

    def test_unknown_token(self, store, hasher, clock, world):
        with pytest.raises(NotFoundError):
            ConfirmPasswordResetUseCase(store, hasher, clock).execute(
                ConfirmPasswordResetInput(token="nope", new_password="NewPassw0rd!")
            )

    def test_weak_password_rejected(self, store, tokens, hasher, clock, world):
        token = self._request(store, tokens, clock).reset_token
        with pytest.raises(ValidationError, match="at least 8"):
            ConfirmPasswordResetUseCase(store, hasher, clock).execute(
                ConfirmPasswordResetInput(token=token, new_password="short")
            )

    def test_token_hidden_when_not_exposed(self, store, tokens, clock, world):
        result = self._request(store, tokens, clock, expose=False)
        assert result.accepted
        assert result.reset_token is None
        assert len(_events(store, "PASSWORD_RESET_REQUESTED")) == 1

    def test_unknown_email_is_accepted_silently(self, store, tokens, clock, world):
        result = self._request(store, tokens, clock, email="ghost@acme.test")
        assert result.accepted
        assert result.reset_token is None
        assert _events(store, "PASSWORD_RESET_REQUESTED") == []


# ============================================================================
# Invites / signup
# ============================================================================


@pytest.mark.unit
class TestInviteCodes:
    def _create(self, store, tokens, clock, creator, tenant_id, role, **kwargs):
        return CreateInviteCodeUseCase(store, tokens, clock).execute(
            CreateInviteCodeInput(
                creator_user_id=creator.id,
                tenant_id=tenant_id,
                target_role=role,
                **kwargs,
            )
        )

    def test_company_admin_creates_employee_invite(self, store, tokens, clock, world):
        invite = self._create(
            store, tokens, clock, world.company_admin, world.tenant_id, "EMPLOYEE"
        )
        assert invite.code.startswith("INV-")
        assert invite.target_role == InviteTargetRole.EMPLOYEE
        assert invite.max_uses is None
        assert len(_events(store, "INVITE_CODE_CREATED")) == 1

    def test_full_admin_creates_company_admin_invite(self, store, tokens, clock, world):
        invite = self._create(
            store, tokens, clock, world.full_admin, world.tenant_id, "COMPANY_ADMIN"
        )
        assert invite.target_role == InviteTargetRole.COMPANY_ADMIN

    @pytest.mark.parametrize(
        "creator_attr, role, tenant_attr",
        [
            ("company_admin", "COMPANY_ADMIN", "tenant"),
            ("full_admin", "EMPLOYEE", "tenant"),
            ("company_admin", "EMPLOYEE", "other_tenant"),
            ("employee", "EMPLOYEE", "tenant"),
        ],
    )
    def test_forbidden_combinations(
        self, store, tokens, clock, world, creator_attr, role, tenant_attr
    ):
        with pytest.raises(ForbiddenError):
            self._create(
                store,
                tokens,
                clock,
                getattr(world, creator_attr),
                getattr(world, tenant_attr).id,
                role,
            )

    def test_invalid_role_and_max_uses(self, store, tokens, clock, world):
        with pytest.raises(ValidationError):
            self._create(store, tokens, clock, world.full_admin, world.tenant_id, "FULL_ADMIN")
        with pytest.raises(ValidationError):
            self._create(
                store, tokens, clock, world.company_admin, world.tenant_id, "EMPLOYEE",
                max_uses=0,
            )

    def test_unknown_tenant(self, store, tokens, clock, world):
        with pytest.raises(NotFoundError, match="Tenant not found"):
            self._create(store, tokens, clock, world.full_admin, uuid4(), "COMPANY_ADMIN")


@pytest.mark.unit
class TestSignupWithInvite:
    def _invite(self, store, tokens, clock, world, **kwargs):
        return CreateInviteCodeUseCase(store, tokens, clock).execute(
            CreateInviteCodeInput(
                creator_user_id=world.company_admin.id,
                tenant_id=world.tenant_id,
                target_role="EMPLOYEE",
                **kwargs,
            )
        )

    def _signup(self, store, hasher, issuer, clock, code, email):
        return SignupWithInviteUseCase(store, hasher, issuer, clock).execute(
            SignupWithInviteInput(
                invite_code=f"  {code} ", email=email, password="Welcome-2025"
            )
        )

    def test_signup_creates_user_with_invite_role(
        self, store, tokens, hasher, issuer, clock, world
    ):
        invite = self._invite(store, tokens, clock, world)

        result = self._signup(store, hasher, issuer, clock, invite.code, "New@Acme.test")

        assert result.user.role == UserRole.EMPLOYEE
        assert result.user.tenant_id == world.tenant_id
        assert result.user.email == "new@acme.test"
        assert _session_for(store, result.refresh_token) is not None
        assert len(_events(store, "AUTH_SIGNUP_SUCCESS")) == 1

    def test_max_uses_exhausts_invite(self, store, tokens, hasher, issuer, clock, world):
        invite = self._invite(store, tokens, clock, world, max_uses=1)
        self._signup(store, hasher, issuer, clock, invite.code, "one@acme.test")

        with pytest.raises(BusinessRuleError, match="inactive"):
            self._signup(store, hasher, issuer, clock, invite.code, "two@acme.test")

    def test_expired_invite(self, store, tokens, hasher, issuer, clock, world):
        invite = self._invite(
            store, tokens, clock, world, expires_at=clock.now() + timedelta(hours=1)
        )
        clock.advance(hours=1)

        with pytest.raises(BusinessRuleError, match="expired"):
            self._signup(store, hasher, issuer, clock, invite.code, "late@acme.test")

    def test_duplicate_email(self, store, tokens, hasher, issuer, clock, world):
        invite = self._invite(store, tokens, clock, world)

        with pytest.raises(ConflictError, match="Email already exists"):
            self._signup(store, hasher, issuer, clock, invite.code, "jane@acme.test")

        with store.unit_of_work() as uow:
            assert uow.get_invite_code_by_code(invite.code).uses_count == 0

    def test_unknown_code(self, store, hasher, issuer, clock, world):
        with pytest.raises(NotFoundError):
            self._signup(store, hasher, issuer, clock, "INV-NOPE", "x@acme.test")


# ============================================================================
# Security events
# ============================================================================


@pytest.mark.unit
class TestListSecurityEvents:
    def _seed(self, login_uc, world):
        _login(login_uc, world)
        with pytest.raises(UnauthorizedError):
            _login(login_uc, world, password="wrong-password")

    def test_full_admin_sees_everything_newest_first(
        self, login_uc, store, clock, world
    ):
        _login(login_uc, world)
        clock.advance(seconds=1)
        with pytest.raises(UnauthorizedError):
            _login(login_uc, world, password="wrong-password")

        events = ListSecurityEventsUseCase(store).execute(
            ListSecurityEventsInput(actor=_actor(world.full_admin))
        )
        assert [e.event_type for e in events] == ["AUTH_LOGIN_FAILED", "AUTH_LOGIN_SUCCESS"]

    def test_filters(self, login_uc, store, world):
        self._seed(login_uc, world)

        events = ListSecurityEventsUseCase(store).execute(
            ListSecurityEventsInput(actor=_actor(world.full_admin), severity="WARN")
        )
        assert [e.event_type for e in events] == ["AUTH_LOGIN_FAILED"]

    def test_company_admin_defaults_to_own_tenant(self, login_uc, store, world):
        self._seed(login_uc, world)

        events = ListSecurityEventsUseCase(store).execute(
            ListSecurityEventsInput(actor=_actor(world.company_admin))
        )
        assert events
        assert all(e.tenant_id == world.tenant_id for e in events)

    def test_company_admin_cannot_read_other_tenant(self, store, world):
        with pytest.raises(ForbiddenError):
            ListSecurityEventsUseCase(store).execute(
                ListSecurityEventsInput(
                    actor=_actor(world.company_admin), tenant_id=world.other_tenant.id
                )
            )

    def test_employee_forbidden(self, store, world):
        with pytest.raises(ForbiddenError):
            ListSecurityEventsUseCase(store).execute(
                ListSecurityEventsInput(actor=_actor(world.employee))
            )

    @pytest.mark.parametrize("limit", [0, 501])
    def test_limit_bounds(self, store, world, limit):
        with pytest.raises(ValidationError):
            ListSecurityEventsUseCase(store).execute(
                ListSecurityEventsInput(actor=_actor(world.full_admin), limit=limit)
            )
