"""Pydantic schemas for the client history feed."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from pipeline_ledger.domain.durations import as_utc
from pipeline_ledger.schemas.stage import CamelModel


class TimelineEntryCreate(CamelModel):
    """Body of POST /clients/{id}/timeline. ``author`` falls back to the caller."""

    type: str = "note"
    description: str = ""
    author: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    duration_in_hours: float | None = None
    timestamp_start: datetime | None = None
    timestamp_end: datetime | None = None
    metadata: dict[str, Any] | None = None


class TimelineEntryResponse(CamelModel):
    id: uuid.UUID
    client_id: str
    date: datetime
    type: str
    description: str
    author: str
    previous_status: str | None = None
    new_status: str | None = None
    duration_in_hours: float | None = None
    timestamp_start: datetime | None = None
    timestamp_end: datetime | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_entry(cls, entry) -> "TimelineEntryResponse":
        return cls(
            id=entry.id,
            client_id=entry.client_id,
            date=as_utc(entry.occurred_at),
            type=entry.type,
            description=entry.description,
            author=entry.author,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            duration_in_hours=entry.duration_in_hours,
            timestamp_start=as_utc(entry.timestamp_start) if entry.timestamp_start else None,
            timestamp_end=as_utc(entry.timestamp_end) if entry.timestamp_end else None,
            metadata=entry.details,
        )


class TimelineResponse(CamelModel):
    """Newest first; items is an empty array when none exist."""

    client_id: str
    items: list[TimelineEntryResponse] = Field(default_factory=list)
    total: int = 0
