"""Pydantic schemas for client records."""

from datetime import datetime

from pipeline_ledger.domain.durations import as_utc
from pipeline_ledger.schemas.stage import CamelModel


class ClientCreate(CamelModel):
    id: str | None = None
    name: str
    phone: str = ""
    city: str = ""
    email: str | None = None
    project_type: str = "autre"
    assigned_architect: str = ""
    budget: float | None = None
    initial_stage: str | None = None


class ClientResponse(CamelModel):
    id: str
    name: str
    phone: str
    city: str
    email: str | None = None
    project_type: str
    assigned_architect: str
    budget: float | None = None
    current_stage: str
    last_activity_at: datetime
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_client(cls, client) -> "ClientResponse":
        return cls(
            id=client.id,
            name=client.name,
            phone=client.phone,
            city=client.city,
            email=client.email,
            project_type=client.project_type,
            assigned_architect=client.assigned_architect,
            budget=client.budget,
            current_stage=client.current_stage,
            last_activity_at=as_utc(client.last_activity_at),
            created_by=client.created_by,
            created_at=as_utc(client.created_at),
            updated_at=as_utc(client.updated_at),
        )
