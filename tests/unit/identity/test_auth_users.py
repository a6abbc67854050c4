"""
Name: Access Token Tests

Responsibilities:
  - JWT claims round trip (sub, role, tenant, sid)
  - Expiry checked against the injected clock
  - Tampered / wrong-secret tokens rejected
  - Session liveness: revoked session invalidates a still-valid JWT
"""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from benefits.crosscutting.exceptions import UnauthorizedError
from benefits.identity.auth_users import (
    AccessTokenService,
    _extract_bearer_token,
    authenticate_access_token,
    hash_opaque_token,
)
from benefits.identity.users import UserRole


@pytest.mark.unit
class TestAccessTokenService:
    def test_claims_round_trip(self, token_service, world):
        session_id = uuid4()
        token, expires_in = token_service.create_access_token(
            world.employee, session_id=session_id
        )
        assert expires_in == 3600

        user = token_service.decode_access_token(token)
        assert user.user_id == world.employee.id
        assert user.email == "jane@acme.test"
        assert user.role == UserRole.EMPLOYEE
        assert user.tenant_id == world.tenant_id
        assert user.session_id == session_id

    def test_full_admin_has_no_tenant(self, token_service, world):
        token, _ = token_service.create_access_token(world.full_admin)
        user = token_service.decode_access_token(token)
        assert user.tenant_id is None
        assert user.session_id is None

    def test_expired_by_clock(self, token_service, world, clock):
        token, _ = token_service.create_access_token(world.employee)
        clock.advance(timedelta(minutes=60))
        with pytest.raises(UnauthorizedError, match="Invalid or expired token"):
            token_service.decode_access_token(token)

    def test_wrong_secret_rejected(self, clock, world):
        other = AccessTokenService(
            secret="another-secret-another-secret-000000", ttl_minutes=60, clock=clock
        )
        token, _ = other.create_access_token(world.employee)
        service = AccessTokenService(
            secret="test-secret-for-unit-tests-only-0123456789",
            ttl_minutes=60,
            clock=clock,
        )
        with pytest.raises(UnauthorizedError):
            service.decode_access_token(token)

    def test_non_access_type_rejected(self, token_service, world, clock):
        payload = {
            "sub": str(world.employee.id),
            "email": world.employee.email,
            "role": "EMPLOYEE",
            "exp": int(clock.now().timestamp()) + 60,
            "typ": "refresh",
        }
        token = jwt.encode(
            payload, "test-secret-for-unit-tests-only-0123456789", algorithm="HS256"
        )
        with pytest.raises(UnauthorizedError, match="Invalid token type"):
            token_service.decode_access_token(token)

    def test_garbage_rejected(self, token_service):
        with pytest.raises(UnauthorizedError):
            token_service.decode_access_token("not-a-jwt")


@pytest.mark.unit
class TestAuthenticateAccessToken:
    def test_active_session_passes(self, store, issuer, token_service, clock, world):
        with store.unit_of_work() as uow:
            issued = issuer.issue(uow, world.employee)

        user = authenticate_access_token(
            issued.tokens.access_token,
            token_service=token_service,
            store=store,
            clock=clock,
        )
        assert user.session_id == issued.session.id

    def test_revoked_session_rejects_valid_jwt(
        self, store, issuer, token_service, clock, world
    ):
        with store.unit_of_work() as uow:
            issued = issuer.issue(uow, world.employee)
            uow.revoke_auth_session(issued.session.id, reason="logout", at=clock.now())

        with pytest.raises(UnauthorizedError, match="Session is no longer active"):
            authenticate_access_token(
                issued.tokens.access_token,
                token_service=token_service,
                store=store,
                clock=clock,
            )

    def test_token_without_sid_skips_session_check(
        self, store, token_service, clock, world
    ):
        token, _ = token_service.create_access_token(world.employee)
        user = authenticate_access_token(
            token, token_service=token_service, store=store, clock=clock
        )
        assert user.user_id == world.employee.id


@pytest.mark.unit
class TestHelpers:
    def test_hash_opaque_token_is_sha256_hex(self):
        digest = hash_opaque_token("abc")
        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_bearer_token(self, header, expected):
        assert _extract_bearer_token(header) == expected
