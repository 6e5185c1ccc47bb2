"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pipeline_ledger.api.dependencies import get_client_service, get_stage_ledger, get_timeline_service
from pipeline_ledger.core.auth import AuthUser, require_auth
from pipeline_ledger.db.base import get_session_factory
from pipeline_ledger.services.client_service import ClientService
from pipeline_ledger.services.stage_ledger import StageLedgerService
from pipeline_ledger.services.timeline_service import TimelineService


@pytest.fixture
def test_user() -> AuthUser:
    return AuthUser(user_id="user-tazi", name="Tazi", claims={"sub": "user-tazi"})


@pytest.fixture
def api_client(engine, db_url, clock, test_user):
    """FastAPI test client with test database and a fixed caller.

    Initializes the global database via init_db inside the TestClient's
    own event loop so route handlers can use get_session_factory().
    The engine fixture ensures tables exist before this runs.
    """
    from pipeline_ledger.api.routes import api_router
    from pipeline_ledger.db import close_db, init_db
    from pipeline_ledger.main import register_exception_handlers

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - initialize DB in TestClient's event loop."""
        # Reset global so init_db creates a fresh engine in THIS loop
        import pipeline_ledger.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        yield
        await close_db()

    def timeline_service() -> TimelineService:
        return TimelineService(get_session_factory(), clock=clock)

    def stage_ledger() -> StageLedgerService:
        return StageLedgerService(get_session_factory(), timeline=timeline_service(), clock=clock, strict_stages=False)

    def client_service() -> ClientService:
        return ClientService(get_session_factory(), stage_ledger(), timeline=timeline_service(), clock=clock)

    async def fixed_user():
        return test_user

    app = FastAPI(title="Pipeline Ledger - Test Client", lifespan=test_lifespan)

    # Exception handlers (needed for debug_id / retryable assertions)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    app.dependency_overrides[require_auth] = fixed_user
    app.dependency_overrides[get_timeline_service] = timeline_service
    app.dependency_overrides[get_stage_ledger] = stage_ledger
    app.dependency_overrides[get_client_service] = client_service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def api_seeded_client(api_client) -> str:
    """Client created through the API at T0; returns its id."""
    response = api_client.post("/api/clients", json={"id": "client-api-001", "name": "Villa Anfa", "city": "Casablanca"})
    assert response.status_code == 201, response.json()
    return response.json()["id"]
