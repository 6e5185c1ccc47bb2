"""Stage-transition API endpoints.

POST /api/stage-transitions           - Move a client to a new stage
GET  /api/stage-transitions           - Stage history, most recent first
GET  /api/stage-transitions/current   - Open interval
GET  /api/stage-transitions/duration  - Display duration of one stage
GET  /api/stage-transitions/summary   - Total time spent per stage
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from pipeline_ledger.api.dependencies import get_client_service, get_stage_ledger
from pipeline_ledger.core.auth import AuthUser, require_auth
from pipeline_ledger.core.exceptions import ConflictError
from pipeline_ledger.domain.durations import format_duration_detailed
from pipeline_ledger.domain.stages import stage_label, stage_order
from pipeline_ledger.schemas.stage import (
    StageDurationResponse,
    StageHistoryResponse,
    StageIntervalResponse,
    StageSummaryResponse,
    StageTotal,
    StageTransitionRequest,
    StageTransitionResponse,
)
from pipeline_ledger.services.client_service import ClientService
from pipeline_ledger.services.stage_ledger import StageLedgerService, TransitionOutcome

router = APIRouter()
logger = structlog.get_logger(__name__)


@retry(
    retry=retry_if_exception_type(ConflictError),
    stop=stop_after_attempt(2),
    wait=wait_fixed(0.05),
    reraise=True,
    before_sleep=lambda rs: logger.warning("stage_transition_conflict_retrying", attempt=rs.attempt_number),
)
async def _transition_with_retry(
    ledger: StageLedgerService, entity_id: str, new_stage: str, changed_by: str
) -> TransitionOutcome:
    """One automatic retry on ConflictError; other errors propagate immediately."""
    return await ledger.transition(entity_id, new_stage, changed_by)


@router.post("", response_model=StageTransitionResponse, status_code=201)
async def create_stage_transition(
    request: StageTransitionRequest,
    user: AuthUser = Depends(require_auth),
    ledger: StageLedgerService = Depends(get_stage_ledger),
) -> StageTransitionResponse:
    """Close the client's current stage and open ``newStage``.

    Raises:
        ValidationError(400): empty newStage/changedBy or malformed entityId
        NotFoundError(404): client does not exist
        ConflictError(409): lost a concurrent transition twice in a row
        StorageError(500): database failure, nothing written
    """
    outcome = await _transition_with_retry(ledger, request.entity_id, request.new_stage, request.changed_by)
    return StageTransitionResponse(
        new_interval=StageIntervalResponse.from_interval(outcome.new_interval, now=ledger.clock()),
        previous_stage=outcome.previous_stage,
    )


@router.get("", response_model=StageHistoryResponse)
async def get_stage_history(
    entity_id: str = Query(..., alias="entityId"),
    user: AuthUser = Depends(require_auth),
    ledger: StageLedgerService = Depends(get_stage_ledger),
    clients: ClientService = Depends(get_client_service),
) -> StageHistoryResponse:
    """All stage intervals of a client, most recent first."""
    await clients.get_client(entity_id)
    history = await ledger.get_history(entity_id)
    now = ledger.clock()
    return StageHistoryResponse(
        entity_id=entity_id,
        items=[StageIntervalResponse.from_interval(interval, now=now) for interval in history],
        total=len(history),
    )


@router.get("/current", response_model=StageIntervalResponse)
async def get_current_stage(
    entity_id: str = Query(..., alias="entityId"),
    user: AuthUser = Depends(require_auth),
    ledger: StageLedgerService = Depends(get_stage_ledger),
) -> StageIntervalResponse:
    """The open interval, 404 when the client has none."""
    interval = await ledger.get_current_stage(entity_id)
    if interval is None:
        raise HTTPException(status_code=404, detail="No current stage")
    return StageIntervalResponse.from_interval(interval, now=ledger.clock())


@router.get("/duration", response_model=StageDurationResponse)
async def get_stage_duration(
    entity_id: str = Query(..., alias="entityId"),
    stage_name: str = Query(..., alias="stageName"),
    user: AuthUser = Depends(require_auth),
    ledger: StageLedgerService = Depends(get_stage_ledger),
) -> StageDurationResponse:
    """Display text for a stage; ``display`` is null if the client never was in it."""
    display = await ledger.get_display_duration(entity_id, stage_name)
    return StageDurationResponse(entity_id=entity_id, stage_name=stage_name, display=display)


@router.get("/summary", response_model=StageSummaryResponse)
async def get_stage_summary(
    entity_id: str = Query(..., alias="entityId"),
    user: AuthUser = Depends(require_auth),
    ledger: StageLedgerService = Depends(get_stage_ledger),
    clients: ClientService = Depends(get_client_service),
) -> StageSummaryResponse:
    """Time spent per stage (re-entries summed), in order of first entry."""
    client = await clients.get_client(entity_id)
    totals = await ledger.get_stage_durations(entity_id)
    return StageSummaryResponse(
        entity_id=entity_id,
        current_stage=client.current_stage,
        stages=[
            StageTotal(
                stage_name=name,
                label=stage_label(name),
                order=stage_order(name),
                seconds=seconds,
                display=format_duration_detailed(seconds),
            )
            for name, seconds in totals.items()
        ],
    )
