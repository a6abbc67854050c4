"""
Name: JSON Logger Tests

Responsibilities:
  - Sensitive extras are redacted
  - Request / actor context is merged into every record
  - Oversized strings are truncated
"""

import json
import logging

import pytest

from benefits.context import clear_context, set_actor_context, set_request_context
from benefits.crosscutting.logger import JSONFormatter


def _format(**extra) -> dict:
    record = logging.LogRecord(
        name="benefits",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="auth.test",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(JSONFormatter().format(record))


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


@pytest.mark.unit
class TestJSONFormatter:
    def test_redacts_sensitive_keys(self):
        payload = _format(
            refresh_token="abc",
            password="hunter2",
            details={"Authorization": "Bearer xyz", "email": "jane@acme.test"},
        )
        assert payload["refresh_token"] == "***REDACTED***"
        assert payload["password"] == "***REDACTED***"
        assert payload["details"]["Authorization"] == "***REDACTED***"
        assert payload["details"]["email"] == "jane@acme.test"

    def test_merges_context(self):
        set_request_context(request_id="req-1", method="POST", path="/enrollments")
        set_actor_context(actor_id="u-1", tenant_id="t-1")

        payload = _format()

        assert payload["request_id"] == "req-1"
        assert payload["actor_id"] == "u-1"
        assert payload["tenant_id"] == "t-1"
        assert payload["message"] == "auth.test"

    def test_truncates_huge_strings(self):
        payload = _format(blob="x" * 10_000)
        assert payload["blob"].endswith("...(truncated)")
        assert len(payload["blob"]) < 10_000
