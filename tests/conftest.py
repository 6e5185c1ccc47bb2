"""Shared test fixtures for all test groups.

DB-backed tests use TEST_DATABASE_URL when set (e.g. a PostgreSQL test
database), otherwise a throwaway SQLite file per test via aiosqlite.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from pipeline_ledger.db.base import Base, build_engine, build_session_factory, create_schema
from pipeline_ledger.schemas.client import ClientCreate
from pipeline_ledger.services.client_service import ClientService
from pipeline_ledger.services.stage_ledger import StageLedgerService
from pipeline_ledger.services.timeline_service import TimelineService

T0 = datetime(2025, 10, 12, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def db_url(tmp_path) -> str:
    return os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'ledger_test.db'}")


@pytest.fixture
async def engine(db_url) -> AsyncEngine:
    """Fresh schema for every test; dropped afterwards."""
    engine = build_engine(db_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_schema(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timeline(session_factory, clock) -> TimelineService:
    return TimelineService(session_factory, clock=clock)


@pytest.fixture
def ledger(session_factory, timeline, clock) -> StageLedgerService:
    return StageLedgerService(session_factory, timeline=timeline, clock=clock, strict_stages=False)


@pytest.fixture
def client_service(session_factory, ledger, timeline, clock) -> ClientService:
    return ClientService(session_factory, ledger, timeline=timeline, clock=clock)


@pytest.fixture
async def seeded_client(client_service):
    """Client created at T0 in stage "qualifie" by "creator"."""
    return await client_service.create_client(
        ClientCreate(id="client-test-001", name="Villa Anfa", initial_stage="qualifie"),
        created_by="creator",
    )


@pytest.fixture
def t0() -> datetime:
    return T0
