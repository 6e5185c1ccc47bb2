"""Client and client-history endpoints.

POST /api/clients                    - Create a client (opens its first stage)
GET  /api/clients/{client_id}        - Client record
GET  /api/clients/{client_id}/timeline - History feed with search and filters
POST /api/clients/{client_id}/timeline - Append a note, call, payment, ...
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from pipeline_ledger.api.dependencies import get_client_service, get_timeline_service
from pipeline_ledger.core.auth import AuthUser, require_auth
from pipeline_ledger.schemas.client import ClientCreate, ClientResponse
from pipeline_ledger.schemas.timeline import TimelineEntryCreate, TimelineEntryResponse, TimelineResponse
from pipeline_ledger.services.client_service import ClientService
from pipeline_ledger.services.timeline_service import TimelineService

router = APIRouter()


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    request: ClientCreate,
    user: AuthUser = Depends(require_auth),
    clients: ClientService = Depends(get_client_service),
) -> ClientResponse:
    """Create a client; the caller is recorded as actor of the seed stage."""
    client = await clients.create_client(request, created_by=user.name)
    return ClientResponse.from_client(client)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    user: AuthUser = Depends(require_auth),
    clients: ClientService = Depends(get_client_service),
) -> ClientResponse:
    client = await clients.get_client(client_id)
    return ClientResponse.from_client(client)


@router.get("/{client_id}/timeline", response_model=TimelineResponse)
async def get_client_timeline(
    client_id: str,
    user: AuthUser = Depends(require_auth),
    query: str | None = None,
    type_filter: str | None = Query(None, alias="typeFilter"),
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    clients: ClientService = Depends(get_client_service),
    timeline: TimelineService = Depends(get_timeline_service),
) -> TimelineResponse:
    """History entries, newest first.

    Query params:
        query: Optional text search (case-insensitive match on description + author)
        typeFilter: Optional entry type ("note", "statut", "paiement", ...)
        dateFrom / dateTo: Optional inclusive date range
    """
    await clients.get_client(client_id)
    entries = await timeline.get_entries(
        client_id,
        query=query,
        type_filter=type_filter,
        date_from=date_from,
        date_to=date_to,
    )
    return TimelineResponse(
        client_id=client_id,
        items=[TimelineEntryResponse.from_entry(entry) for entry in entries],
        total=len(entries),
    )


@router.post("/{client_id}/timeline", response_model=TimelineEntryResponse, status_code=201)
async def add_client_timeline_entry(
    client_id: str,
    request: TimelineEntryCreate,
    user: AuthUser = Depends(require_auth),
    timeline: TimelineService = Depends(get_timeline_service),
) -> TimelineEntryResponse:
    entry = await timeline.add_entry(
        client_id,
        request.type,
        request.description,
        request.author or user.name,
        previous_status=request.previous_status,
        new_status=request.new_status,
        duration_in_hours=request.duration_in_hours,
        timestamp_start=request.timestamp_start,
        timestamp_end=request.timestamp_end,
        details=request.metadata,
    )
    return TimelineEntryResponse.from_entry(entry)
