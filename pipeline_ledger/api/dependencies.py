"""Service providers for route handlers.

Override these in tests via ``app.dependency_overrides``.
"""

from pipeline_ledger.db.base import get_session_factory
from pipeline_ledger.services.client_service import ClientService
from pipeline_ledger.services.stage_ledger import StageLedgerService
from pipeline_ledger.services.timeline_service import TimelineService


def get_timeline_service() -> TimelineService:
    return TimelineService(get_session_factory())


def get_stage_ledger() -> StageLedgerService:
    session_factory = get_session_factory()
    return StageLedgerService(session_factory, timeline=TimelineService(session_factory))


def get_client_service() -> ClientService:
    session_factory = get_session_factory()
    timeline = TimelineService(session_factory)
    ledger = StageLedgerService(session_factory, timeline=timeline)
    return ClientService(session_factory, ledger, timeline=timeline)
