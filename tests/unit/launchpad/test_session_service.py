import json
from uuid import uuid4

import pytest

from app.core.exceptions import (
    AnalysisError,
    APITimeoutError,
    CommitError,
    ConfigurationError,
    InvalidStateTransitionError,
    SessionAccessDeniedError,
    SessionNotFoundError,
    UnparseableResponseError,
    ValidationError,
)
from app.schemas.launchpad import ApprovalFlags, ApproveRequest
from app.services.launchpad import session_service as session_service_module
from app.services.launchpad.session_service import LaunchpadSessionService

NARRATIVE_PLAN = {
    "mission": "Make regional shipping predictable for small businesses.",
    "vision": "The first carrier every Midwest retailer trusts.",
    "values": [{"title": "Reliability"}, {"title": "Candor"}, {"name": "Ownership"}],
    "goals": [
        {"title": "Revenue", "description": "Grow recurring revenue by 25% this year."},
        {"title": "Cut late deliveries in half"},
    ],
    "strategies": [
        {"title": "Regional hub network", "linkedGoals": ["Grow recurring revenue by 25% this year"]},
        {"title": "Retail onboarding program"},
    ],
    "objectives": [
        {
            "title": "Grow recurring revenue",
            "level": "organization",
            "keyResults": [
                {"title": "Reach $2M ARR", "metricType": "currency", "targetValue": 2000000, "unit": "USD"},
                {"title": "Sign 40 new retail accounts", "targetValue": "40"},
            ],
            "bigRocks": [{"title": "Launch referral program", "priority": "high", "quarter": 2}],
        },
        {
            "title": "Improve delivery reliability",
            "keyResults": [
                {"title": "On-time delivery above 97%", "metricType": "percentage", "targetValue": 97},
                {"title": "Late deliveries under 50 per month"},
            ],
            "bigRocks": [{"title": "Route optimization rollout", "quarter": "Q3"}],
        },
        {
            "name": "Open two distribution hubs",
            "keyResults": [{"title": "Columbus hub live"}, {"title": "Indianapolis hub live"}],
            "bigRocks": [{"description": "Sign Columbus lease"}],
        },
    ],
}


async def _draft(service, user, text):
    return await service.create_session(user, document_name="plan.txt", text=text)


async def _pending(service, user, text, mock_llm_client, plan=None):
    mock_llm_client.generate_content.return_value = json.dumps(plan or NARRATIVE_PLAN)
    session = await _draft(service, user, text)
    return await service.analyze(session.id, user)


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_creates_draft_with_defaults(self, launchpad_service, admin_user, narrative_text):
        session = await _draft(launchpad_service, admin_user, narrative_text)

        assert session.status == "draft"
        assert session.tenant_id == "tenant-1"
        assert session.user_id == "user-1"
        assert session.target_year == 2025
        assert session.target_quarter is None
        assert session.source_document_text == narrative_text

    @pytest.mark.asyncio
    async def test_short_text_is_rejected(self, launchpad_service, admin_user):
        with pytest.raises(ValidationError, match="sufficient text"):
            await _draft(launchpad_service, admin_user, "   too short   ")

    @pytest.mark.asyncio
    async def test_invalid_quarter_is_rejected(self, launchpad_service, admin_user, narrative_text):
        with pytest.raises(ValidationError, match="target_quarter"):
            await launchpad_service.create_session(admin_user, "plan.txt", narrative_text, target_quarter=5)

    @pytest.mark.asyncio
    async def test_stored_text_is_truncated(self, launchpad_service, admin_user, monkeypatch):
        monkeypatch.setattr(session_service_module.settings.launchpad, "max_stored_text_length", 150)
        session = await _draft(launchpad_service, admin_user, "x" * 400)

        assert len(session.source_document_text) == 150

    @pytest.mark.asyncio
    async def test_role_without_launchpad_access_is_denied(self, launchpad_service, plain_user, narrative_text):
        with pytest.raises(SessionAccessDeniedError):
            await _draft(launchpad_service, plain_user, narrative_text)

    @pytest.mark.asyncio
    async def test_cross_tenant_user_creates_in_active_tenant(
        self, launchpad_service, consultant_user, narrative_text
    ):
        session = await _draft(launchpad_service, consultant_user, narrative_text)
        assert session.tenant_id == "tenant-1"


class TestAccess:

    @pytest.mark.asyncio
    async def test_missing_session(self, launchpad_service, admin_user):
        with pytest.raises(SessionNotFoundError):
            await launchpad_service.get_session(uuid4(), admin_user)

    @pytest.mark.asyncio
    async def test_other_tenant_is_denied(self, launchpad_service, admin_user, other_tenant_admin, narrative_text):
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(SessionAccessDeniedError):
            await launchpad_service.get_session(session.id, other_tenant_admin)

    @pytest.mark.asyncio
    async def test_list_returns_own_sessions_newest_first(self, launchpad_service, admin_user, narrative_text):
        first = await _draft(launchpad_service, admin_user, narrative_text)
        second = await _draft(launchpad_service, admin_user, narrative_text)
        second.created_at = first.created_at.replace(year=first.created_at.year + 1)

        sessions = await launchpad_service.list_sessions(admin_user)

        assert [s.id for s in sessions] == [second.id, first.id]


class TestAnalyze:

    @pytest.mark.asyncio
    async def test_narrative_document_reaches_pending_review(
        self, launchpad_service, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)

        assert session.status == "pending_review"
        assert session.analysis_progress == 100
        assert session.detected_mode == "narrative"
        assert session.error_message is None
        assert [o["title"] for o in session.ai_proposal["objectives"]][-1] == "Open two distribution hubs"
        assert session.user_edits == session.ai_proposal
        assert session.user_edits is not session.ai_proposal
        assert session.existing_data["strategies"] == []

    @pytest.mark.asyncio
    async def test_structured_document_uses_extraction(
        self, launchpad_service, admin_user, structured_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, structured_text, mock_llm_client)
        assert session.detected_mode == "structured"

    @pytest.mark.asyncio
    async def test_analyze_twice_is_rejected(self, launchpad_service, admin_user, narrative_text, mock_llm_client):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await launchpad_service.analyze(session.id, admin_user)

        assert exc_info.value.current_status == "pending_review"
        assert mock_llm_client.generate_content.await_count == 1

    @pytest.mark.asyncio
    async def test_model_failure_moves_session_to_error(
        self, launchpad_service, session_repo, admin_user, narrative_text, mock_llm_client
    ):
        mock_llm_client.generate_content.side_effect = APITimeoutError("Model call timed out after 180s")
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(AnalysisError, match="timed out"):
            await launchpad_service.analyze(session.id, admin_user)

        stored = session_repo.rows[session.id]
        assert stored.status == "error"
        assert "timed out" in stored.error_message
        assert stored.analysis_progress == 20

    @pytest.mark.asyncio
    async def test_unparseable_response_moves_session_to_error(
        self, launchpad_service, session_repo, admin_user, narrative_text, mock_llm_client
    ):
        mock_llm_client.generate_content.return_value = "Sorry, I cannot help with that."
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(UnparseableResponseError):
            await launchpad_service.analyze(session.id, admin_user)

        stored = session_repo.rows[session.id]
        assert stored.status == "error"
        assert stored.error_message == "Failed to parse AI response"

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(
        self, launchpad_service, planning_store, session_repo, admin_user, narrative_text, monkeypatch
    ):
        async def broken(tenant_id):
            raise KeyError("foundations")

        monkeypatch.setattr(planning_store, "load_existing_entities", broken)
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(AnalysisError):
            await launchpad_service.analyze(session.id, admin_user)
        assert session_repo.rows[session.id].status == "error"

    @pytest.mark.asyncio
    async def test_error_session_cannot_be_reanalyzed(
        self, launchpad_service, admin_user, narrative_text, mock_llm_client
    ):
        mock_llm_client.generate_content.return_value = "not json"
        session = await _draft(launchpad_service, admin_user, narrative_text)
        with pytest.raises(UnparseableResponseError):
            await launchpad_service.analyze(session.id, admin_user)

        with pytest.raises(InvalidStateTransitionError):
            await launchpad_service.analyze(session.id, admin_user)

    @pytest.mark.asyncio
    async def test_missing_model_configuration_leaves_draft(
        self, session_repo, planning_store, grounding_repo, admin_user, narrative_text, monkeypatch
    ):
        def not_configured():
            raise ConfigurationError("openrouter_api_key required when provider='openrouter'.")

        monkeypatch.setattr(session_service_module, "create_llm_client_from_settings", not_configured)
        service = LaunchpadSessionService(
            None, sessions=session_repo, planning=planning_store, grounding=grounding_repo
        )
        session = await _draft(service, admin_user, narrative_text)

        with pytest.raises(ConfigurationError):
            await service.analyze(session.id, admin_user)
        assert session_repo.rows[session.id].status == "draft"


class TestUpdateProposal:

    @pytest.mark.asyncio
    async def test_edits_are_normalized_and_proposal_untouched(
        self, launchpad_service, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        original = json.loads(json.dumps(session.ai_proposal))

        updated = await launchpad_service.update_proposal(
            session.id,
            admin_user,
            user_edits={"objectives": [{"name": "Only objective"}]},
            approval_flags=ApprovalFlags(approve_values=False),
        )

        assert updated.user_edits["objectives"][0]["title"] == "Only objective"
        assert updated.approve_values is False
        assert updated.ai_proposal == original

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, launchpad_service, admin_user, narrative_text, mock_llm_client):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)

        with pytest.raises(ValidationError, match="Nothing to update"):
            await launchpad_service.update_proposal(session.id, admin_user)

    @pytest.mark.asyncio
    async def test_draft_cannot_be_edited(self, launchpad_service, admin_user, narrative_text):
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(InvalidStateTransitionError):
            await launchpad_service.update_proposal(session.id, admin_user, user_edits={"mission": "M"})


class TestApprove:

    @pytest.mark.asyncio
    async def test_end_to_end_narrative_document(
        self, launchpad_service, planning_store, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        proposal = session.ai_proposal
        assert 3 <= len(proposal["objectives"]) <= 6
        assert all(len(o["keyResults"]) >= 2 and len(o["bigRocks"]) >= 1 for o in proposal["objectives"])

        approved, result = await launchpad_service.approve(session.id, admin_user)

        assert approved.status == "approved"
        assert approved.approved_by == "user-1"
        assert approved.approved_at is not None
        assert approved.commit_summary["objectives"] == 3
        assert planning_store.foundation_upserts == 1
        assert result.foundation is True
        assert (result.values, result.goals, result.strategies) == (3, 2, 2)
        assert (result.objectives, result.key_results, result.big_rocks) == (3, 6, 3)
        assert result.duplicates_skipped == 0
        assert result.skipped == []
        # Goal titles shorter than three words are rebuilt from the description
        goal_titles = [g["title"] for g in planning_store.foundations["tenant-1"]["annual_goals"]]
        assert "Revenue" not in goal_titles

    @pytest.mark.asyncio
    async def test_request_flags_and_quarter_override(
        self, launchpad_service, planning_store, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)

        _, result = await launchpad_service.approve(
            session.id, admin_user, ApproveRequest(approve_strategies=False, big_rock_quarter=4)
        )

        assert result.strategies == 0
        assert "strategies" in result.skipped
        # Explicit quarters on items win; the last big rock had none
        assert [b.quarter for b in planning_store.big_rocks] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_stored_flags_apply_when_request_is_silent(
        self, launchpad_service, planning_store, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        await launchpad_service.update_proposal(
            session.id, admin_user, approval_flags=ApprovalFlags(approve_big_rocks=False)
        )

        _, result = await launchpad_service.approve(session.id, admin_user)

        assert result.big_rocks == 0
        assert "bigRocks" in result.skipped
        assert planning_store.big_rocks == []

    @pytest.mark.asyncio
    async def test_approving_twice_is_rejected(
        self, launchpad_service, planning_store, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        await launchpad_service.approve(session.id, admin_user)
        objectives_before = len(planning_store.objectives)

        with pytest.raises(InvalidStateTransitionError):
            await launchpad_service.approve(session.id, admin_user)
        assert len(planning_store.objectives) == objectives_before

    @pytest.mark.asyncio
    async def test_second_session_with_same_plan_creates_only_new_items(
        self, launchpad_service, planning_store, admin_user, narrative_text, mock_llm_client
    ):
        first = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        await launchpad_service.approve(first.id, admin_user)

        second = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        _, result = await launchpad_service.approve(second.id, admin_user)

        assert (result.strategies, result.objectives, result.goals) == (0, 0, 0)
        assert result.duplicates_skipped == 2 + 3 + 2
        assert len(planning_store.objectives) == 3

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_session_reviewable(
        self, launchpad_service, planning_store, session_repo, admin_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        planning_store.fail_titles = {"Improve delivery reliability"}

        with pytest.raises(CommitError) as exc_info:
            await launchpad_service.approve(session.id, admin_user)

        stored = session_repo.rows[session.id]
        assert stored.status == "pending_review"
        assert "Improve delivery reliability" in stored.error_message
        assert stored.commit_summary["objectives"] == 2
        assert exc_info.value.result.objectives == 2

        # Retrying after the store recovers creates only what is missing
        planning_store.fail_titles = set()
        approved, result = await launchpad_service.approve(session.id, admin_user)
        assert approved.status == "approved"
        assert approved.error_message is None
        assert result.objectives == 1
        assert len(planning_store.objectives) == 3

    @pytest.mark.asyncio
    async def test_draft_cannot_be_approved(self, launchpad_service, admin_user, narrative_text):
        session = await _draft(launchpad_service, admin_user, narrative_text)

        with pytest.raises(InvalidStateTransitionError):
            await launchpad_service.approve(session.id, admin_user)


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_draft(self, launchpad_service, session_repo, admin_user, narrative_text):
        session = await _draft(launchpad_service, admin_user, narrative_text)
        await launchpad_service.delete(session.id, admin_user)
        assert session.id not in session_repo.rows

    @pytest.mark.asyncio
    async def test_approved_session_needs_admin(
        self, launchpad_service, session_repo, admin_user, consultant_user, narrative_text, mock_llm_client
    ):
        session = await _pending(launchpad_service, admin_user, narrative_text, mock_llm_client)
        await launchpad_service.approve(session.id, admin_user)

        with pytest.raises(SessionAccessDeniedError):
            await launchpad_service.delete(session.id, consultant_user)

        await launchpad_service.delete(session.id, admin_user)
        assert session.id not in session_repo.rows
