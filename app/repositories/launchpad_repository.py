import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import LaunchpadSession
from app.repositories.base_repository import BaseRepository


class LaunchpadSessionRepository(BaseRepository[LaunchpadSession]):
    """Repository for Launchpad ingestion sessions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, LaunchpadSession)

    async def create_session(
        self,
        tenant_id: str,
        user_id: str,
        source_document_name: Optional[str],
        source_document_text: str,
        target_year: int,
        target_quarter: Optional[int] = None,
    ) -> LaunchpadSession:
        """Create a draft session for an uploaded document."""
        now = datetime.now(timezone.utc)
        return await self.create(
            tenant_id=tenant_id,
            user_id=user_id,
            source_document_name=source_document_name,
            source_document_text=source_document_text,
            target_year=target_year,
            target_quarter=target_quarter,
            status="draft",
            analysis_progress=0,
            created_at=now,
            updated_at=now,
        )

    async def list_for_user(self, tenant_id: str, user_id: str, limit: int = 100) -> List[LaunchpadSession]:
        """List a user's sessions in a tenant, newest first."""
        query = (
            select(LaunchpadSession)
            .where(LaunchpadSession.tenant_id == tenant_id, LaunchpadSession.user_id == user_id)
            .order_by(LaunchpadSession.created_at.desc(), LaunchpadSession.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def transition(
        self,
        session_id: uuid.UUID,
        from_statuses: Iterable[str],
        **values: Any,
    ) -> Optional[LaunchpadSession]:
        """Atomically update a session only while it is in one of ``from_statuses``.

        The status guard is part of the UPDATE's WHERE clause, so two callers
        racing on the same transition cannot both succeed.

        Returns:
            The updated session, or None when the session is missing or its
            status did not match
        """
        values.setdefault("updated_at", datetime.now(timezone.utc))
        stmt = (
            update(LaunchpadSession)
            .where(
                LaunchpadSession.id == session_id,
                LaunchpadSession.status.in_(list(from_statuses)),
            )
            .values(**values)
            .returning(LaunchpadSession)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
            updated = result.scalar_one_or_none()
            await self.session.commit()
            return updated
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error transitioning LaunchpadSession {session_id}: {str(e)}",
                exc_info=True
            )
            raise
