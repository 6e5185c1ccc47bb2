"""Pydantic schemas for the stage-transition API.

Wire format is camelCase; attributes stay snake_case.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pipeline_ledger.domain.durations import (
    as_utc,
    format_date_range,
    format_stage_update_date,
    get_stage_display_duration,
)
from pipeline_ledger.domain.stages import is_terminal_stage, stage_label


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class StageTransitionRequest(CamelModel):
    """Missing or null fields are rejected by the ledger with a 400."""

    entity_id: str | None = None
    new_stage: str | None = None
    changed_by: str | None = None


class StageIntervalResponse(CamelModel):
    """One stage-occupancy period: persisted fields plus display helpers."""

    id: uuid.UUID
    entity_id: str
    stage_name: str
    started_at: datetime
    ended_at: datetime | None = None
    duration_seconds: int | None = None
    changed_by: str
    created_at: datetime
    updated_at: datetime

    label: str = ""
    is_active: bool = False
    is_terminal: bool = False
    display_duration: str | None = None
    date_range: str | None = None
    update_label: str | None = None

    @classmethod
    def from_interval(cls, interval, now: datetime | None = None) -> "StageIntervalResponse":
        is_active = interval.is_open
        return cls(
            id=interval.id,
            entity_id=interval.client_id,
            stage_name=interval.stage_name,
            started_at=as_utc(interval.started_at),
            ended_at=as_utc(interval.ended_at) if interval.ended_at is not None else None,
            duration_seconds=interval.duration_seconds,
            changed_by=interval.changed_by,
            created_at=as_utc(interval.created_at),
            updated_at=as_utc(interval.updated_at),
            label=stage_label(interval.stage_name),
            is_active=is_active,
            is_terminal=is_terminal_stage(interval.stage_name),
            display_duration=get_stage_display_duration(
                is_active,
                interval.started_at,
                interval.ended_at,
                interval.duration_seconds,
                now=now,
            ),
            date_range=format_date_range(interval.started_at, interval.ended_at),
            update_label=format_stage_update_date(interval.started_at, interval.changed_by),
        )


class StageTransitionResponse(CamelModel):
    new_interval: StageIntervalResponse
    previous_stage: str | None = None


class StageHistoryResponse(CamelModel):
    """Most recent interval first; items is an empty array when none exist."""

    entity_id: str
    items: list[StageIntervalResponse] = Field(default_factory=list)
    total: int = 0


class StageDurationResponse(CamelModel):
    entity_id: str
    stage_name: str
    display: str | None = None


class StageTotal(CamelModel):
    stage_name: str
    label: str
    order: int | None = None
    seconds: int
    display: str


class StageSummaryResponse(CamelModel):
    entity_id: str
    current_stage: str | None = None
    stages: list[StageTotal] = Field(default_factory=list)
