"""
Shared test fixtures.

Provides:
  • a fake clock and an in-memory TTL store driven by it
  • an OtpLifecycleManager with a deterministic code generator
  • a FastAPI TestClient whose app state points at that store/manager

The `client` fixture runs the full lifespan; the store built there is
replaced by the fixture store once startup has finished.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.otp import OtpLifecycleManager
from app.store import InMemoryTtlStore
from tests.mocks.models import MOCK_CODE, MOCK_SECOND_CODE
from tests.mocks.store import FakeClock, SequenceGenerator


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryTtlStore:
    return InMemoryTtlStore(clock=clock)


@pytest.fixture()
def codes() -> SequenceGenerator:
    return SequenceGenerator(MOCK_CODE, MOCK_SECOND_CODE, "600451")


@pytest.fixture()
def manager(store: InMemoryTtlStore, codes: SequenceGenerator) -> OtpLifecycleManager:
    return OtpLifecycleManager(store, generator=codes)


@pytest.fixture()
def _test_env(monkeypatch):
    """Use the in-memory backend and disable transport rate limiting."""
    monkeypatch.setattr("app.config.STORE_BACKEND", "memory")

    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(
    _test_env,
    store: InMemoryTtlStore,
    manager: OtpLifecycleManager,
) -> TestClient:
    """TestClient wired to the fixture store and manager."""
    with TestClient(app, raise_server_exceptions=False) as tc:
        app.state.store = store
        app.state.otp_manager = manager
        yield tc
