"""Unit tests for Launchpad session and planning repositories."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.launchpad_repository import LaunchpadSessionRepository
from app.repositories.planning_repository import PlanningRepository


@pytest.fixture
def mock_session():
    """Create a mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.add = Mock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.begin_nested = MagicMock(return_value=MagicMock())
    session.execute = AsyncMock()
    return session


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestLaunchpadSessionRepository:

    @pytest.mark.asyncio
    async def test_transition_guards_on_current_status(self, mock_session):
        updated = SimpleNamespace(id=uuid4(), status="analyzing")
        result = MagicMock()
        result.scalar_one_or_none.return_value = updated
        mock_session.execute.return_value = result

        repo = LaunchpadSessionRepository(mock_session)
        returned = await repo.transition(updated.id, ["draft"], status="analyzing", analysis_progress=10)

        assert returned is updated
        statement = mock_session.execute.call_args.args[0]
        sql = _sql(statement)
        assert sql.startswith("UPDATE launchpad_sessions SET")
        assert "launchpad_sessions.status IN" in sql
        assert "RETURNING" in sql
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transition_returns_none_on_status_mismatch(self, mock_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = result

        repo = LaunchpadSessionRepository(mock_session)

        assert await repo.transition(uuid4(), ["draft"], status="analyzing") is None

    @pytest.mark.asyncio
    async def test_create_session_starts_in_draft(self, mock_session):
        repo = LaunchpadSessionRepository(mock_session)
        session = await repo.create_session(
            tenant_id="tenant-1",
            user_id="user-1",
            source_document_name="plan.pdf",
            source_document_text="text",
            target_year=2025,
        )

        assert session.status == "draft"
        assert session.analysis_progress == 0
        mock_session.add.assert_called_once_with(session)


class TestPlanningRepository:

    @pytest.mark.asyncio
    async def test_upsert_foundation_updates_only_given_fields(self, mock_session):
        result = MagicMock()
        result.scalar_one.return_value = SimpleNamespace(tenant_id="tenant-1")
        mock_session.execute.return_value = result

        repo = PlanningRepository(mock_session)
        await repo.upsert_foundation("tenant-1", vision="New vision")

        sql = _sql(mock_session.execute.call_args.args[0])
        assert "INSERT INTO foundations" in sql
        assert "ON CONFLICT (tenant_id) DO UPDATE SET" in sql
        update_clause = sql.split("DO UPDATE SET", 1)[1].split("RETURNING", 1)[0]
        assert "vision" in update_clause
        assert "mission" not in update_clause

    @pytest.mark.asyncio
    async def test_failed_create_discards_only_its_savepoint(self, mock_session):
        mock_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        repo = PlanningRepository(mock_session)

        with pytest.raises(IntegrityError):
            await repo.create_strategy("tenant-1", title="Hub network", status="active")

        mock_session.begin_nested.assert_called_once()
        mock_session.rollback.assert_not_awaited()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_key_result_links_objective(self, mock_session):
        objective_id = uuid4()
        repo = PlanningRepository(mock_session)

        kr = await repo.create_key_result("tenant-1", objective_id, title="ARR", metric_type="numeric", target_value=100)

        assert kr.objective_id == objective_id
        assert kr.tenant_id == "tenant-1"
