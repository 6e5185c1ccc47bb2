"""TimelineService: append-only client history feed ("historique").

The feed is an audit trail next to the stage ledger, not part of it: stage
transitions write a companion "statut" entry after the ledger commit, and
that write may fail without affecting the transition.
Entries are never updated or deleted.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pipeline_ledger.core.exceptions import NotFoundError, StorageError, ValidationError
from pipeline_ledger.db.models.client import Client
from pipeline_ledger.db.models.timeline_entry import TimelineEntry
from pipeline_ledger.domain.durations import as_utc
from pipeline_ledger.domain.stages import stage_label, validate_actor, validate_entity_id

logger = structlog.get_logger(__name__)

TIMELINE_TYPES = frozenset({
    "note",
    "appel",
    "whatsapp",
    "modification",
    "statut",
    "document",
    "rendez-vous",
    "devis",
    "validation",
    "acompte",
    "paiement",
    "tache",
    "projet",
})

STATUS_CHANGE_TYPE = "statut"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_stage_change(previous_stage: str | None, new_stage: str) -> str:
    """Human-readable description of a stage change, with French labels."""
    if previous_stage is None:
        return f'Statut initialisé à "{stage_label(new_stage)}"'
    return f'Statut changé de "{stage_label(previous_stage)}" vers "{stage_label(new_stage)}"'


class TimelineService:
    """Writes and reads TimelineEntry rows for one client at a time.

    Uses dependency injection (takes session_factory) for testability.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or _utcnow

    async def add_entry(
        self,
        client_id: str,
        entry_type: str,
        description: str,
        author: str,
        *,
        occurred_at: datetime | None = None,
        previous_status: str | None = None,
        new_status: str | None = None,
        duration_in_hours: float | None = None,
        timestamp_start: datetime | None = None,
        timestamp_end: datetime | None = None,
        details: dict[str, Any] | None = None,
    ) -> TimelineEntry:
        """Append one entry to a client's history.

        Also bumps ``Client.last_activity_at`` in the same transaction.

        Raises:
            ValidationError: unknown entry type, empty author, bad client id
            NotFoundError: client does not exist
            StorageError: database failure
        """
        client_id = validate_entity_id(client_id)
        author = validate_actor(author)
        if entry_type not in TIMELINE_TYPES:
            raise ValidationError(f"Unknown timeline entry type '{entry_type}'")

        now = as_utc(self.clock())
        occurred_at = as_utc(occurred_at) if occurred_at else now

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    exists = await session.scalar(select(Client.id).where(Client.id == client_id))
                    if exists is None:
                        raise NotFoundError("Client", client_id)

                    entry = TimelineEntry(
                        client_id=client_id,
                        occurred_at=occurred_at,
                        type=entry_type,
                        description=description,
                        author=author,
                        previous_status=previous_status,
                        new_status=new_status,
                        duration_in_hours=duration_in_hours,
                        timestamp_start=timestamp_start,
                        timestamp_end=timestamp_end,
                        details=details,
                        created_at=now,
                    )
                    session.add(entry)
                    await session.execute(
                        update(Client).where(Client.id == client_id).values(last_activity_at=now, updated_at=now)
                    )
        except SQLAlchemyError as exc:
            logger.error("timeline_entry_write_failed", client_id=client_id, error=str(exc))
            raise StorageError("Failed to write timeline entry") from exc

        logger.info("timeline_entry_added", client_id=client_id, entry_type=entry_type, author=author)
        return entry

    async def record_stage_change(
        self,
        client_id: str,
        previous_stage: str | None,
        new_stage: str,
        author: str,
        occurred_at: datetime,
    ) -> TimelineEntry:
        """Write the "statut" companion entry for a stage transition.

        Carries the same actor and timestamp as the ledger interval it
        describes so the two feeds can be correlated by time.
        """
        return await self.add_entry(
            client_id,
            STATUS_CHANGE_TYPE,
            describe_stage_change(previous_stage, new_stage),
            author,
            occurred_at=occurred_at,
            previous_status=previous_stage,
            new_status=new_stage,
            timestamp_start=occurred_at,
        )

    async def get_entries(
        self,
        client_id: str,
        query: str | None = None,
        type_filter: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[TimelineEntry]:
        """Get a client's history with optional search/filter, newest first.

        Args:
            client_id: Client id
            query: Optional case-insensitive substring match on description + author
            type_filter: Optional entry type ("note", "statut", ...)
            date_from: Optional start of date range (inclusive)
            date_to: Optional end of date range (inclusive)
        """
        client_id = validate_entity_id(client_id)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(TimelineEntry)
                    .where(TimelineEntry.client_id == client_id)
                    .order_by(TimelineEntry.occurred_at.desc(), TimelineEntry.created_at.desc())
                )
                entries = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read timeline") from exc

        if type_filter is not None:
            entries = [entry for entry in entries if entry.type == type_filter]

        if query is not None:
            query_lower = query.lower()
            entries = [
                entry for entry in entries
                if query_lower in entry.description.lower() or query_lower in entry.author.lower()
            ]

        # Normalise to UTC so naive (SQLite) and aware values compare
        if date_from is not None:
            entries = [entry for entry in entries if as_utc(entry.occurred_at) >= as_utc(date_from)]
        if date_to is not None:
            entries = [entry for entry in entries if as_utc(entry.occurred_at) <= as_utc(date_to)]

        return entries
