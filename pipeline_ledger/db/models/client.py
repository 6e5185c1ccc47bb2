"""Client model: the CRM record whose pipeline stage is tracked."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String

from pipeline_ledger.db.base import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(64), primary_key=True)

    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    city = Column(String(120), nullable=False, default="")
    email = Column(String(255), nullable=True)
    project_type = Column(String(50), nullable=False, default="autre")  # villa, appartement, magasin, ...
    assigned_architect = Column(String(255), nullable=False, default="")
    budget = Column(Float, nullable=True)

    # Denormalised copy of the open StageInterval's stage_name
    current_stage = Column(String(50), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    created_by = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
