"""Tests for transport-level rate limiting."""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from tests.mocks.models import MOCK_PHONE


class TestRateLimiting:
    """Verify that slowapi throttles the verify endpoint."""

    @pytest.fixture()
    def limited_client(self, _test_env, store, manager):
        """
        TestClient with rate limiting **enabled** (unlike the default
        `client` fixture which disables it for convenience).
        """
        from app.rate_limit import limiter

        limiter.enabled = True
        # Reset in-memory state so previous tests don't pollute counts
        limiter.reset()

        with TestClient(app, raise_server_exceptions=False) as tc:
            app.state.store = store
            app.state.otp_manager = manager
            yield tc

        limiter.enabled = False

    def test_otp_verify_rate_limit(self, limited_client):
        """POST /api/otp/verify is limited to 10 requests/minute."""
        for i in range(10):
            resp = limited_client.post(
                "/api/otp/verify",
                json={"phone_number": MOCK_PHONE, "code": "000000"},
            )
            assert resp.status_code == 200, f"Request {i + 1} should not be rate-limited"

        # 11th request should be rate-limited
        resp = limited_client.post(
            "/api/otp/verify",
            json={"phone_number": MOCK_PHONE, "code": "000000"},
        )
        assert resp.status_code == 429

    def test_request_endpoint_not_limited_by_slowapi(self, limited_client):
        """Issuance is throttled by the OTP manager, not by slowapi."""
        for i in range(5):
            resp = limited_client.post(
                "/api/otp/request",
                json={"phone_number": f"0936000000{i}"},
            )
            assert resp.status_code == 200
