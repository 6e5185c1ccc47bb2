"""Re-export all models so Base.metadata sees them."""

from pipeline_ledger.db.models.client import Client
from pipeline_ledger.db.models.stage_interval import StageInterval
from pipeline_ledger.db.models.timeline_entry import TimelineEntry

__all__ = [
    "Client",
    "StageInterval",
    "TimelineEntry",
]
