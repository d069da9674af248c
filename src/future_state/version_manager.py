import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.core.exceptions import (
    CloneFailedError, LockedError, NotFoundError, PublishedError, SoleVersionError, ValidationError,
)
from src.future_state.graph_store import Graph, GraphStore, collect_updates
from src.future_state.models import FutureStateVersion, FutureStateStatus
from src.future_state.schemas import (
    CreateVersionRequest, CreateInitialVersionRequest, UpdateVersionRequest,
)
from src.sessions.models import WasteWalkSession

logger = logging.getLogger(__name__)


class VersionManager:
    """Branchable, lockable versions of a session's future-state graph."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.graph = GraphStore(db)

    async def get_version(self, version_id: UUID) -> FutureStateVersion:
        version = await self.db.get(FutureStateVersion, version_id)
        if not version:
            raise NotFoundError("Future state version", version_id)
        return version

    async def get_version_graph(self, version_id: UUID) -> Tuple[FutureStateVersion, Graph]:
        version = await self.get_version(version_id)
        graph = await self.graph.get_graph(version_id)
        return version, graph

    async def list_versions(self, session_id: UUID) -> List[FutureStateVersion]:
        result = await self.db.execute(
            select(FutureStateVersion)
            .where(FutureStateVersion.session_id == session_id)
            .order_by(FutureStateVersion.version.desc())
        )
        return list(result.scalars().all())

    async def get_latest_version(self, session_id: UUID) -> Optional[FutureStateVersion]:
        result = await self.db.execute(
            select(FutureStateVersion)
            .where(FutureStateVersion.session_id == session_id)
            .order_by(FutureStateVersion.version.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def _next_version_number(self, session_id: UUID) -> int:
        latest = await self.get_latest_version(session_id)
        return latest.version + 1 if latest else 1

    async def create_initial_version(
        self, request: CreateInitialVersionRequest, user_id: Optional[UUID] = None
    ) -> FutureStateVersion:
        session = await self.db.get(WasteWalkSession, request.session_id)
        if not session:
            raise NotFoundError("Session", request.session_id)

        retries = settings.VERSION_ALLOCATION_RETRIES
        for attempt in range(1, retries + 1):
            version = FutureStateVersion(
                process_id=session.process_id,
                session_id=request.session_id,
                parent_version_id=None,
                name=request.name,
                description=request.description,
                version=await self._next_version_number(request.session_id),
                status=FutureStateStatus.DRAFT,
                is_locked=False,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(version)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    f"Version number collision for session {request.session_id} "
                    f"(attempt {attempt}/{retries})"
                )
                session = await self.db.get(WasteWalkSession, request.session_id)
                continue

            await self.db.refresh(version)
            logger.info(f"Created initial future state v{version.version} for session {request.session_id}")
            return version

        raise CloneFailedError(
            f"Could not allocate a version number for session {request.session_id} after {retries} attempts"
        )

    async def create_version(
        self, request: CreateVersionRequest, user_id: Optional[UUID] = None
    ) -> FutureStateVersion:
        """Branch ``source_version_id`` into a new draft version.

        The version row and the cloned graph are written in one transaction.
        A version-number collision rolls the transaction back and retries
        with a fresh number; any other failure rolls back and surfaces as
        ``CloneFailedError``.
        """
        source = await self.get_version(request.source_version_id)
        if source.session_id != request.session_id:
            raise ValidationError(
                f"Source version {request.source_version_id} does not belong to session {request.session_id}"
            )

        retries = settings.VERSION_ALLOCATION_RETRIES
        for attempt in range(1, retries + 1):
            # Re-read on every attempt; rollback expires everything loaded before it
            source = await self.get_version(request.source_version_id)
            source_graph = await self.graph.get_graph(source.id)

            try:
                version = FutureStateVersion(
                    process_id=source.process_id,
                    session_id=request.session_id,
                    parent_version_id=source.id,
                    name=request.name,
                    description=request.description,
                    version=await self._next_version_number(request.session_id),
                    status=FutureStateStatus.DRAFT,
                    is_locked=False,
                    created_by=user_id,
                    updated_by=user_id,
                )
                self.db.add(version)
                await self.db.flush()

                node_id_map = await self.graph.clone_graph(source_graph, version.id, user_id)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    f"Version number collision for session {request.session_id} "
                    f"(attempt {attempt}/{retries})"
                )
                continue
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"Clone of future state {request.source_version_id} failed")
                raise CloneFailedError(f"Failed to clone version {request.source_version_id}: {e}") from e

            await self.db.refresh(version)
            logger.info(
                f"Created future state v{version.version} for session {request.session_id} "
                f"from {source.id}: {len(node_id_map)} nodes cloned"
            )
            return version

        raise CloneFailedError(
            f"Could not allocate a version number for session {request.session_id} after {retries} attempts"
        )

    async def update_version(
        self, version_id: UUID, request: UpdateVersionRequest, user_id: Optional[UUID] = None
    ) -> FutureStateVersion:
        version = await self.get_version(version_id)

        updates = collect_updates(request, FutureStateVersion)

        # A locked version accepts only a bare unlock
        if version.is_locked and updates != {"is_locked": False}:
            raise LockedError(version_id)

        for attr, value in updates.items():
            setattr(version, attr, value)
        version.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(version)
        return version

    async def delete_version(self, version_id: UUID) -> None:
        version = await self.get_version(version_id)

        if version.is_locked:
            raise LockedError(version_id)
        if version.status == FutureStateStatus.PUBLISHED:
            raise PublishedError(version_id)

        result = await self.db.execute(
            select(func.count(FutureStateVersion.id)).where(
                FutureStateVersion.session_id == version.session_id
            )
        )
        if (result.scalar() or 0) <= 1:
            raise SoleVersionError(version.session_id)

        session_id = version.session_id
        number = version.version

        await self.graph.delete_version_contents(version_id)
        await self.db.execute(
            update(FutureStateVersion)
            .where(FutureStateVersion.parent_version_id == version_id)
            .values(parent_version_id=None)
        )
        await self.db.delete(version)
        await self.db.commit()
        logger.info(f"Deleted future state v{number} ({version_id}) of session {session_id}")
