from fastapi import APIRouter

from pipeline_ledger.api.routes import clients, health, stage_transitions

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(stage_transitions.router, prefix="/stage-transitions", tags=["stage-transitions"])
