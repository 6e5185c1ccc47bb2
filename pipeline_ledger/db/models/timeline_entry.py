"""TimelineEntry model: append-only human-readable history feed."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, String, Text, Uuid

from pipeline_ledger.db.base import Base


class TimelineEntry(Base):
    __tablename__ = "historique"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(String(64), ForeignKey("clients.id"), nullable=False, index=True)

    occurred_at = Column(DateTime(timezone=True), nullable=False, index=True)
    type = Column(String(30), nullable=False)  # note, appel, statut, paiement, ...
    description = Column(Text, nullable=False, default="")
    author = Column(String(255), nullable=False)

    # Only set for "statut" entries
    previous_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=True)

    duration_in_hours = Column(Float, nullable=True)
    timestamp_start = Column(DateTime(timezone=True), nullable=True)
    timestamp_end = Column(DateTime(timezone=True), nullable=True)
    details = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    # No updated_at: entries are never modified
