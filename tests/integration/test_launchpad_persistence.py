"""Commit and session lifecycle against a real database session.

The in-memory fakes used by the unit tests never expire instances, so these
tests run the real repositories on SQLite to check that one failed write
does not stop the rest of a commit or strand a session mid-transition.
"""

from datetime import date
from unittest.mock import AsyncMock
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles

from app.core.database import Base
from app.core.exceptions import AnalysisError, CommitError
from app.database.models import BigRock, KeyResult, LaunchpadSession, Objective
from app.repositories.launchpad_repository import LaunchpadSessionRepository
from app.repositories.planning_repository import PlanningRepository
from app.schemas.launchpad import ApprovalFlags, ExistingEntities
from app.services.launchpad.commit_engine import CommitEngine
from app.services.launchpad.proposal_normalizer import normalize_proposal, to_plan
from app.services.launchpad.session_service import LaunchpadSessionService

TENANT = "tenant-1"

PLAN = {
    "objectives": [
        {
            "title": "Grow revenue",
            "keyResults": [{"title": "bad kr"}, {"title": "good kr"}],
            "bigRocks": [{"title": "Launch hub", "quarter": "Q3"}],
        },
        {
            "title": "Hire leaders",
            "keyResults": [{"title": "Two VPs hired"}],
        },
    ],
}

REJECT_BAD_KEY_RESULT = """
CREATE TRIGGER reject_bad_key_result BEFORE INSERT ON key_results
WHEN NEW.title = 'bad kr'
BEGIN SELECT RAISE(ABORT, 'key result rejected'); END
"""

REJECT_DETECTED_MODE = """
CREATE TRIGGER reject_detected_mode BEFORE UPDATE ON launchpad_sessions
WHEN NEW.detected_mode IS NOT NULL
BEGIN SELECT RAISE(ABORT, 'mode rejected'); END
"""


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'launchpad.db'}")

    # pysqlite defers BEGIN on its own; hand it to SQLAlchemy so SAVEPOINT works
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.exec_driver_sql(REJECT_BAD_KEY_RESULT)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


async def _seed_session(db: AsyncSession, status: str = "pending_review") -> UUID:
    sessions = LaunchpadSessionRepository(db)
    created = await sessions.create_session(
        tenant_id=TENANT,
        user_id="user-1",
        source_document_name="plan.txt",
        source_document_text="We will grow revenue and hire leaders. " * 5,
        target_year=2025,
        target_quarter=2,
    )
    if status == "pending_review":
        plan = normalize_proposal(PLAN)
        await sessions.transition(
            created.id, ["draft"], status="pending_review", analysis_progress=100,
            ai_proposal=plan, user_edits=plan,
        )
    return created.id


async def _load(session_maker, session_id: UUID) -> LaunchpadSession:
    async with session_maker() as fresh:
        return await fresh.get(LaunchpadSession, session_id)


class TestCommitOnDatabase:

    @pytest.mark.asyncio
    async def test_failed_key_result_does_not_stop_the_commit(self, session_maker):
        async with session_maker() as db:
            engine = CommitEngine(PlanningRepository(db), clock=lambda: date(2025, 5, 10))

            result = await engine.commit(
                to_plan(PLAN), ApprovalFlags(), ExistingEntities(), tenant_id=TENANT, target_year=2025,
            )

            assert result.objectives == 2
            assert result.key_results == 2
            assert result.big_rocks == 1
            assert [(f.kind, f.title) for f in result.failures] == [("keyResults", "bad kr")]

            objectives = {o.title: o.id for o in (await db.execute(select(Objective))).scalars()}
            key_results = (await db.execute(select(KeyResult))).scalars().all()
            big_rock = (await db.execute(select(BigRock))).scalar_one()

        assert {kr.title for kr in key_results} == {"good kr", "Two VPs hired"}
        assert big_rock.objective_id == objectives["Grow revenue"]
        assert big_rock.quarter == 3


class TestSessionLifecycleOnDatabase:

    @pytest.mark.asyncio
    async def test_partial_approval_is_recorded_and_stays_pending_review(self, session_maker, admin_user):
        async with session_maker() as db:
            session_id = await _seed_session(db)
            service = LaunchpadSessionService(db, proposer=AsyncMock(), clock=lambda: date(2025, 5, 10))

            with pytest.raises(CommitError) as exc_info:
                await service.approve(session_id, admin_user)

        assert exc_info.value.result.objectives == 2
        stored = await _load(session_maker, session_id)
        assert stored.status == "pending_review"
        assert "bad kr" in stored.error_message
        assert stored.commit_summary["key_results"] == 2
        assert stored.approved_at is None

    @pytest.mark.asyncio
    async def test_database_failure_during_analysis_moves_session_to_error(
        self, db_engine, session_maker, admin_user
    ):
        async with db_engine.begin() as conn:
            await conn.exec_driver_sql(REJECT_DETECTED_MODE)

        proposer = AsyncMock()
        async with session_maker() as db:
            session_id = await _seed_session(db, status="draft")
            service = LaunchpadSessionService(db, proposer=proposer, clock=lambda: date(2025, 5, 10))

            with pytest.raises(AnalysisError):
                await service.analyze(session_id, admin_user)

        proposer.propose.assert_not_awaited()
        stored = await _load(session_maker, session_id)
        assert stored.status == "error"
        assert stored.analysis_progress == 10
        assert "mode rejected" in stored.error_message
