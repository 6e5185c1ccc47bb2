"""StageInterval model: one row per period a client spent in a stage."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Uuid

from pipeline_ledger.db.base import Base


class StageInterval(Base):
    __tablename__ = "client_stage_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(String(64), ForeignKey("clients.id"), nullable=False, index=True)

    stage_name = Column(String(50), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)  # null while the stage is current
    duration_seconds = Column(Integer, nullable=True)  # set together with ended_at
    changed_by = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        # At most one open interval per client
        Index(
            "uq_stage_history_one_open_per_client",
            "client_id",
            unique=True,
            postgresql_where=ended_at.is_(None),
            sqlite_where=ended_at.is_(None),
        ),
        Index("ix_stage_history_client_started", "client_id", "started_at"),
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None
