"""Tenant planning store: foundation, strategies, objectives, key results, big rocks."""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import BigRock, Foundation, KeyResult, Objective, Strategy
from app.repositories.base_repository import BaseRepository
from app.schemas.launchpad import ExistingEntities, ExistingEntityRef
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _refs(rows) -> List[ExistingEntityRef]:
    return [
        ExistingEntityRef(id=str(row.id), title=row.title, description=row.description)
        for row in rows
    ]


class PlanningRepository:
    """Reads and creates tenant planning entities for one database session.

    Each write runs in its own savepoint and commits on its own, so a failure
    on one item discards only that item.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.strategies = BaseRepository(session, Strategy)
        self.objectives = BaseRepository(session, Objective)
        self.key_results = BaseRepository(session, KeyResult)
        self.big_rocks = BaseRepository(session, BigRock)

    async def get_foundation(self, tenant_id: str) -> Optional[Foundation]:
        result = await self.session.execute(
            select(Foundation).where(Foundation.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def _titled_rows(self, model, tenant_id: str):
        result = await self.session.execute(
            select(model).where(model.tenant_id == tenant_id).order_by(model.title)
        )
        return result.scalars().all()

    async def load_existing_entities(self, tenant_id: str) -> ExistingEntities:
        """Read everything the tenant already has that a plan could duplicate."""
        foundation = await self.get_foundation(tenant_id)
        strategies = await self._titled_rows(Strategy, tenant_id)
        objectives = await self._titled_rows(Objective, tenant_id)
        big_rocks = await self._titled_rows(BigRock, tenant_id)

        return ExistingEntities(
            mission=foundation.mission if foundation else None,
            vision=foundation.vision if foundation else None,
            values=list(foundation.values or []) if foundation else [],
            annual_goals=list(foundation.annual_goals or []) if foundation else [],
            strategies=_refs(strategies),
            objectives=_refs(objectives),
            big_rocks=_refs(big_rocks),
        )

    async def upsert_foundation(self, tenant_id: str, **fields: Any) -> Foundation:
        """Insert the tenant's foundation or update only the given fields.

        Args:
            tenant_id: Owning tenant
            **fields: Any of mission, vision, values, annual_goals
        """
        now = datetime.now(timezone.utc)
        stmt = insert(Foundation).values(id=uuid.uuid4(), tenant_id=tenant_id, updated_at=now, **fields)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Foundation.tenant_id],
            set_={**fields, "updated_at": now},
        ).returning(Foundation)

        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt.execution_options(populate_existing=True))
                foundation = result.scalar_one()
            await self.session.commit()
            return foundation
        except SQLAlchemyError as e:
            LOGGER.error(f"Error upserting foundation for tenant {tenant_id}: {e}", exc_info=True)
            raise

    async def create_strategy(self, tenant_id: str, **fields: Any) -> Strategy:
        return await self.strategies.create(tenant_id=tenant_id, **fields)

    async def create_objective(self, tenant_id: str, **fields: Any) -> Objective:
        return await self.objectives.create(tenant_id=tenant_id, **fields)

    async def create_key_result(self, tenant_id: str, objective_id: uuid.UUID, **fields: Any) -> KeyResult:
        return await self.key_results.create(tenant_id=tenant_id, objective_id=objective_id, **fields)

    async def create_big_rock(self, tenant_id: str, **fields: Any) -> BigRock:
        return await self.big_rocks.create(tenant_id=tenant_id, **fields)

