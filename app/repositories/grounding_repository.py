from typing import List

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import GroundingDocument
from app.repositories.base_repository import BaseRepository


class GroundingDocumentRepository(BaseRepository[GroundingDocument]):
    """Read access to tenant and global grounding material."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, GroundingDocument)

    async def list_active_for_tenant(self, tenant_id: str) -> List[GroundingDocument]:
        """Active documents for the tenant plus active global ones, highest priority first."""
        query = (
            select(GroundingDocument)
            .where(
                GroundingDocument.is_active.is_(True),
                or_(GroundingDocument.tenant_id == tenant_id, GroundingDocument.tenant_id.is_(None)),
            )
            .order_by(GroundingDocument.priority.desc(), GroundingDocument.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
