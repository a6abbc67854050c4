"""
Name: Exception Handler Tests

Responsibilities:
  - BenefitsError subclasses map to their status + stable code
  - Retry-After on 429, WWW-Authenticate on 401
  - Database / unhandled errors are masked in production
"""

from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from benefits.api import exception_handlers
from benefits.api.exception_handlers import register_exception_handlers
from benefits.crosscutting.exceptions import (
    BusinessRuleError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)

ERRORS = {
    "validation": ValidationError("Duplicate dependentIds are not allowed"),
    "business": BusinessRuleError("EMPLOYEE_SPOUSE requires exactly one spouse"),
    "not_found": NotFoundError("Enrollment not found"),
    "conflict": ConflictError("Enrollment already submitted"),
    "unauthorized": UnauthorizedError("Invalid credentials"),
    "forbidden": ForbiddenError("Tenant access denied"),
    "rate_limited": RateLimitedError("Too many attempts", retry_after_seconds=42),
    "database": DatabaseError("connection refused at 10.0.0.5"),
}


@pytest.fixture
def client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/raise/{name}")
    def raise_named(name: str):
        if name == "boom":
            raise RuntimeError("kaboom internals")
        raise ERRORS[name]

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.unit
class TestBenefitsErrorMapping:
    @pytest.mark.parametrize(
        "name, status, code",
        [
            ("validation", 400, "VALIDATION_ERROR"),
            ("business", 422, "BUSINESS_RULE_VIOLATION"),
            ("not_found", 404, "NOT_FOUND"),
            ("conflict", 409, "CONFLICT"),
            ("unauthorized", 401, "UNAUTHORIZED"),
            ("forbidden", 403, "FORBIDDEN"),
            ("rate_limited", 429, "RATE_LIMITED"),
            ("database", 500, "DATABASE_ERROR"),
        ],
    )
    def test_status_and_code(self, client, name, status, code):
        response = client.get(f"/raise/{name}")

        assert response.status_code == status
        body = response.json()
        assert body["status"] == status
        assert body["code"] == code
        assert body["errors"][0]["error_id"] == ERRORS[name].error_id

    def test_retry_after_header(self, client):
        response = client.get("/raise/rate_limited")
        assert response.headers["Retry-After"] == "42"

    def test_www_authenticate_header(self, client):
        response = client.get("/raise/unauthorized")
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_detail_is_message_outside_production(self, client):
        assert client.get("/raise/conflict").json()["detail"] == "Enrollment already submitted"


@pytest.mark.unit
class TestMasking:
    @pytest.fixture
    def production(self, monkeypatch):
        monkeypatch.setattr(
            exception_handlers,
            "get_settings",
            lambda: SimpleNamespace(is_production=lambda: True),
        )

    def test_database_error_masked_in_production(self, client, production):
        body = client.get("/raise/database").json()
        assert "10.0.0.5" not in body["detail"]

    def test_unhandled_error_masked_in_production(self, client, production):
        response = client.get("/raise/boom")
        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert "kaboom" not in response.json()["detail"]

    def test_unhandled_error_detail_in_development(self, client):
        response = client.get("/raise/boom")
        assert response.status_code == 500
        assert response.json()["detail"] == "kaboom internals"
