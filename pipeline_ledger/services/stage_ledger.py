"""StageLedgerService: authoritative record of a client's pipeline stages.

Each client owns an ordered sequence of StageInterval rows. Exactly one of
them is open (``ended_at`` is NULL) once the client exists; a transition
closes it and opens the next one at the same instant, inside one database
transaction. The partial unique index on open intervals turns a lost race
into an IntegrityError, surfaced as ConflictError.

The ledger never retries internally. The timeline companion write happens
after commit and is allowed to fail on its own.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pipeline_ledger.core.config import get_settings
from pipeline_ledger.core.exceptions import ConflictError, NotFoundError, StorageError
from pipeline_ledger.db.models.client import Client
from pipeline_ledger.db.models.stage_interval import StageInterval
from pipeline_ledger.domain.durations import as_utc, calculate_duration, get_stage_display_duration
from pipeline_ledger.domain.stages import validate_actor, validate_entity_id, validate_stage_name
from pipeline_ledger.services.timeline_service import TimelineService

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Open interval first when two intervals share a started_at
_OPEN_FIRST = case((StageInterval.ended_at.is_(None), 0), else_=1)


@dataclass
class TransitionOutcome:
    """Result of a committed transition."""

    new_interval: StageInterval
    previous_stage: str | None = None


class StageLedgerService:
    """Service layer for stage transitions and stage-history queries.

    Uses dependency injection (session factory, optional timeline, clock)
    so tests can drive time and swap the companion writer.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeline: TimelineService | None = None,
        clock: Callable[[], datetime] | None = None,
        strict_stages: bool | None = None,
    ):
        """Initialize with dependency injection.

        Args:
            session_factory: SQLAlchemy async session factory
            timeline: Companion history writer; None disables the companion write
            clock: Returns the current UTC time
            strict_stages: Reject unknown stage names (defaults to settings)
        """
        self.session_factory = session_factory
        self.timeline = timeline
        self.clock = clock or _utcnow
        self.strict_stages = get_settings().enforce_known_stages if strict_stages is None else strict_stages

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def transition(self, entity_id: str, new_stage: str, changed_by: str) -> TransitionOutcome:
        """Close the client's open interval and open one for ``new_stage``.

        Both steps commit together or not at all. Moving to the stage the
        client is already in still closes and reopens (fresh timer).

        Raises:
            ValidationError: empty stage/actor or malformed entity id (no I/O done)
            NotFoundError: client does not exist
            ConflictError: a concurrent transition for the same client won
            StorageError: any other database failure; nothing was written
        """
        entity_id = validate_entity_id(entity_id)
        new_stage = validate_stage_name(new_stage, strict=self.strict_stages)
        changed_by = validate_actor(changed_by)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    client = await self._lock_client(session, entity_id)
                    now = as_utc(self.clock())

                    previous = await self._find_open_interval(session, entity_id, lock=True)
                    previous_stage = None
                    if previous is not None:
                        previous_stage = previous.stage_name
                        # Never close before the interval opened (clock skew)
                        now = max(now, as_utc(previous.started_at))
                        await self._close_interval(session, previous, now)

                    interval = await self._open_interval(session, entity_id, new_stage, changed_by, now)

                    client.current_stage = new_stage
                    client.last_activity_at = now
                    client.updated_at = now
        except IntegrityError as exc:
            logger.warning("stage_transition_conflict", entity_id=entity_id, new_stage=new_stage, error=str(exc.orig))
            raise ConflictError(f"Concurrent stage transition for '{entity_id}'") from exc
        except SQLAlchemyError as exc:
            logger.error("stage_transition_storage_error", entity_id=entity_id, new_stage=new_stage, error=str(exc))
            raise StorageError("Stage transition failed; no changes were applied") from exc

        logger.info(
            "stage_transitioned",
            entity_id=entity_id,
            previous_stage=previous_stage,
            new_stage=new_stage,
            changed_by=changed_by,
        )

        await self._record_timeline(entity_id, previous_stage, new_stage, changed_by, now)

        return TransitionOutcome(new_interval=interval, previous_stage=previous_stage)

    async def seed_initial_stage(
        self,
        session: AsyncSession,
        entity_id: str,
        stage_name: str,
        changed_by: str,
        now: datetime,
    ) -> StageInterval:
        """Open the first interval of a freshly created client.

        Runs inside the caller's transaction so the client and its seed
        interval commit together.
        """
        stage_name = validate_stage_name(stage_name, strict=self.strict_stages)
        changed_by = validate_actor(changed_by)
        return await self._open_interval(session, entity_id, stage_name, changed_by, now)

    async def _record_timeline(
        self,
        entity_id: str,
        previous_stage: str | None,
        new_stage: str,
        changed_by: str,
        occurred_at: datetime,
    ) -> None:
        """Best-effort companion write; failures are logged, never raised."""
        if self.timeline is None:
            return
        try:
            await self.timeline.record_stage_change(entity_id, previous_stage, new_stage, changed_by, occurred_at)
        except Exception as exc:
            logger.warning(
                "timeline_write_failed",
                entity_id=entity_id,
                new_stage=new_stage,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def _lock_client(self, session: AsyncSession, entity_id: str) -> Client:
        # Row lock serializes transitions per client on PostgreSQL
        result = await session.execute(select(Client).where(Client.id == entity_id).with_for_update())
        client = result.scalar_one_or_none()
        if client is None:
            raise NotFoundError("Client", entity_id)
        return client

    async def _find_open_interval(
        self, session: AsyncSession, entity_id: str, lock: bool = False
    ) -> StageInterval | None:
        stmt = (
            select(StageInterval)
            .where(StageInterval.client_id == entity_id, StageInterval.ended_at.is_(None))
            .order_by(StageInterval.started_at.desc())
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _close_interval(self, session: AsyncSession, interval: StageInterval, now: datetime) -> None:
        """Conditionally close ``interval``; 0 rows matched means another writer closed it."""
        result = await session.execute(
            update(StageInterval)
            .where(StageInterval.id == interval.id, StageInterval.ended_at.is_(None))
            .values(
                ended_at=now,
                duration_seconds=calculate_duration(interval.started_at, now),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Stage interval {interval.id} was closed by a concurrent transition")

    async def _open_interval(
        self,
        session: AsyncSession,
        entity_id: str,
        stage_name: str,
        changed_by: str,
        now: datetime,
    ) -> StageInterval:
        interval = StageInterval(
            client_id=entity_id,
            stage_name=stage_name,
            started_at=now,
            ended_at=None,
            duration_seconds=None,
            changed_by=changed_by,
            created_at=now,
            updated_at=now,
        )
        session.add(interval)
        await session.flush()
        return interval

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_history(self, entity_id: str) -> list[StageInterval]:
        """All intervals of a client, most recent first. Empty for unknown clients."""
        entity_id = validate_entity_id(entity_id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(StageInterval)
                    .where(StageInterval.client_id == entity_id)
                    .order_by(StageInterval.started_at.desc(), _OPEN_FIRST, StageInterval.created_at.desc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read stage history") from exc

    async def get_current_stage(self, entity_id: str) -> StageInterval | None:
        """The open interval, or None when the client has no history."""
        entity_id = validate_entity_id(entity_id)
        try:
            async with self.session_factory() as session:
                return await self._find_open_interval(session, entity_id)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read current stage") from exc

    async def get_display_duration(self, entity_id: str, stage_name: str) -> str | None:
        """Display text for the most recent interval of ``stage_name``.

        Live "En cours · ..." text when that interval is the open one,
        the stored duration otherwise. None when the client never was in
        that stage.
        """
        entity_id = validate_entity_id(entity_id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(StageInterval)
                    .where(StageInterval.client_id == entity_id, StageInterval.stage_name == stage_name)
                    .order_by(StageInterval.started_at.desc(), _OPEN_FIRST)
                    .limit(1)
                )
                interval = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read stage history") from exc

        if interval is None:
            return None

        return get_stage_display_duration(
            interval.is_open,
            interval.started_at,
            interval.ended_at,
            interval.duration_seconds,
            now=self.clock(),
        )

    async def get_stage_durations(self, entity_id: str) -> dict[str, int]:
        """Total seconds spent in each stage, in order of first entry.

        Re-entered stages are summed; the open interval counts up to now.
        """
        history = await self.get_history(entity_id)
        now = self.clock()

        totals: dict[str, int] = {}
        for interval in reversed(history):
            if interval.is_open:
                seconds = max(0, calculate_duration(interval.started_at, now))
            elif interval.duration_seconds is not None:
                seconds = interval.duration_seconds
            else:
                seconds = calculate_duration(interval.started_at, interval.ended_at)
            totals[interval.stage_name] = totals.get(interval.stage_name, 0) + seconds
        return totals
