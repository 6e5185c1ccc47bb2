"""ClientService: creates client records together with their seed stage."""

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pipeline_ledger.core.config import get_settings
from pipeline_ledger.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from pipeline_ledger.db.models.client import Client
from pipeline_ledger.domain.durations import as_utc
from pipeline_ledger.domain.stages import validate_actor, validate_entity_id
from pipeline_ledger.schemas.client import ClientCreate
from pipeline_ledger.services.stage_ledger import StageLedgerService
from pipeline_ledger.services.timeline_service import TimelineService

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_client_id() -> str:
    return f"client-{uuid.uuid4().hex[:24]}"


class ClientService:
    """Client creation and lookup.

    A client never exists without an open stage interval: the row and its
    seed interval are inserted in the same transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: StageLedgerService,
        timeline: TimelineService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.timeline = timeline
        self.clock = clock or _utcnow

    async def create_client(self, data: ClientCreate, created_by: str) -> Client:
        """Insert a client and open its first stage interval.

        Args:
            data: Client fields; ``initial_stage`` defaults to settings.initial_stage
            created_by: Actor recorded as ``changed_by`` of the seed interval

        Raises:
            ValidationError: bad id, empty name or creator
            ConflictError: a client with this id already exists
            StorageError: database failure
        """
        client_id = validate_entity_id(data.id) if data.id else generate_client_id()
        created_by = validate_actor(created_by)
        name = data.name.strip()
        if not name:
            raise ValidationError("name is required")
        initial_stage = data.initial_stage or get_settings().initial_stage
        now = as_utc(self.clock())

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    client = Client(
                        id=client_id,
                        name=name,
                        phone=data.phone,
                        city=data.city,
                        email=data.email,
                        project_type=data.project_type,
                        assigned_architect=data.assigned_architect,
                        budget=data.budget,
                        current_stage=initial_stage,
                        last_activity_at=now,
                        created_by=created_by,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(client)
                    await session.flush()
                    seed = await self.ledger.seed_initial_stage(session, client_id, initial_stage, created_by, now)
                    client.current_stage = seed.stage_name
        except IntegrityError as exc:
            raise ConflictError(f"Client '{client_id}' already exists") from exc
        except SQLAlchemyError as exc:
            logger.error("client_create_failed", client_id=client_id, error=str(exc))
            raise StorageError("Failed to create client") from exc

        logger.info("client_created", client_id=client_id, initial_stage=client.current_stage, created_by=created_by)

        if self.timeline is not None:
            try:
                await self.timeline.add_entry(client_id, "projet", "Client créé", created_by, occurred_at=now)
            except Exception as exc:
                logger.warning("timeline_write_failed", entity_id=client_id, error=str(exc))

        return client

    async def get_client(self, client_id: str) -> Client:
        """Raises NotFoundError when the client does not exist."""
        client_id = validate_entity_id(client_id)
        try:
            async with self.session_factory() as session:
                client = await session.scalar(select(Client).where(Client.id == client_id))
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read client") from exc
        if client is None:
            raise NotFoundError("Client", client_id)
        return client
