"""
tests/conftest.py -- Shared test fixtures for authgate integration tests.

This module provides:
  - _make_test_services(): isolated identity store + services per test module
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient plus handles on the services behind it

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because route handlers run on worker threads. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

Environment must be set before any auth/core import: DEBUG so get_settings()
auto-generates SECRET_KEY, BCRYPT_ROUNDS so hashing stays fast.
"""

from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from pathlib import Path

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import Identity
from auth.service import AuthService
from auth.sessions import SessionIssuer
from auth.store import SqlIdentityStore
from auth.tokens import hash_password
from core.config import get_settings
from resources.gateway import ResourceGateway

# Rate limits would trip on the many logins these tests perform from one
# client address. The limiter itself is exercised in test_api_routes.py.
limiter.enabled = False

OPERATOR_USERNAME = "operator"
OPERATOR_PASSWORD = "operator-pass-123"


@dataclass
class Services:
    identities: SqlIdentityStore
    sessions: SessionIssuer
    auth_service: AuthService
    gateway: ResourceGateway
    files_root: Path


# ---------------------------------------------------------------------------
# Service helpers
# ---------------------------------------------------------------------------


def _make_test_services(db_suffix: str, files_root: Path) -> Services:
    """Create an isolated service graph over a named shared-memory SQLite DB.

    files_root gets a readme.txt inside it and a secret.txt next to it, so
    "../secret.txt" names a real file that must stay unreachable.
    """
    files_root.mkdir(parents=True, exist_ok=True)
    (files_root / "readme.txt").write_bytes(b"hello from the files root\n")
    (files_root / "docs").mkdir(exist_ok=True)
    (files_root / "docs" / "guide.txt").write_bytes(b"nested guide\n")
    (files_root.parent / "secret.txt").write_bytes(b"outside the root\n")

    identities = SqlIdentityStore(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")
    sessions = SessionIssuer(identities, ttl_seconds=get_settings().session_ttl_seconds)
    return Services(
        identities=identities,
        sessions=sessions,
        auth_service=AuthService(identities, sessions),
        gateway=ResourceGateway(files_root),
        files_root=files_root,
    )


def _patch_lifespan(services: Services, settings_overrides: dict | None = None):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        previous = dict(app.state._state)
        app.state.settings = get_settings().model_copy(update=settings_overrides or {})
        app.state.identities = services.identities
        app.state.sessions = services.sessions
        app.state.auth_service = services.auth_service
        app.state.gateway = services.gateway
        yield
        # A nested client shares app.state with the module client; put it back.
        app.state._state.clear()
        app.state._state.update(previous)

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def services(tmp_path_factory, request) -> Generator[Services, None, None]:
    suffix = request.module.__name__.replace(".", "_")
    svc = _make_test_services(suffix, tmp_path_factory.mktemp(suffix) / "root")
    svc.identities.put(
        Identity(username=OPERATOR_USERNAME, password_digest=hash_password(OPERATOR_PASSWORD), role="operator")
    )
    yield svc
    svc.identities.close()


@pytest.fixture(scope="module")
def api_client(services: Services) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a patched lifespan.

    Secure cookies are never sent back over http://testserver, so tests pass
    the session explicitly (Cookie or Authorization header).
    """
    app.router.lifespan_context = _patch_lifespan(services)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def operator_token(services: Services) -> str:
    identity = services.identities.get(OPERATOR_USERNAME)
    return services.sessions.issue(identity).token


@pytest.fixture
def client_with(services: Services):
    """Build a short-lived TestClient whose settings carry the given overrides.

        with client_with(diagnostics_enabled=False) as client: ...
    """

    @contextmanager
    def _client(**overrides) -> Iterator[TestClient]:
        app.router.lifespan_context = _patch_lifespan(services, overrides)
        with TestClient(app) as client:
            yield client

    return _client
