"""Lifecycle of a Launchpad session.

    draft -> analyzing -> pending_review -> approved
      \\          \\
       +----------+--> error

Every status change goes through ``LaunchpadSessionRepository.transition``,
whose WHERE clause checks the current status, so a second analyze racing the
first is rejected instead of running twice. A failed approval leaves the
session in pending_review with the error recorded, so the user can fix the
edited plan and approve again.
"""

import copy
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AnalysisError,
    AppError,
    CommitError,
    InvalidStateTransitionError,
    SessionAccessDeniedError,
    SessionNotFoundError,
    ValidationError,
)
from app.core.unified_llm import create_llm_client_from_settings
from app.core.permissions import (
    can_access_session,
    can_delete_approved,
    require_launchpad_role,
    require_tenant,
)
from app.database.models import LaunchpadSession
from app.repositories.grounding_repository import GroundingDocumentRepository
from app.repositories.launchpad_repository import LaunchpadSessionRepository
from app.repositories.planning_repository import PlanningRepository
from app.schemas.auth import CurrentUser
from app.schemas.launchpad import ApprovalFlags, ApproveRequest, CommitResult
from app.services.launchpad.commit_engine import CommitEngine
from app.services.launchpad.mode_detector import detect_mode
from app.services.launchpad.plan_proposer import PlanProposer
from app.services.launchpad.proposal_normalizer import normalize_proposal, to_plan
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

DRAFT = "draft"
ANALYZING = "analyzing"
PENDING_REVIEW = "pending_review"
APPROVED = "approved"
ERROR = "error"

PROGRESS_STARTED = 10
PROGRESS_CONTEXT_READY = 20
PROGRESS_MODEL_RESPONDED = 80
PROGRESS_DONE = 100


class LaunchpadSessionService:
    """Creates, analyzes, edits, approves and deletes Launchpad sessions.

    Args:
        db_session: Async database session shared by the repositories
        proposer: Plan proposer; built from the configured LLM provider on
            first analysis when omitted
        clock: Returns today's date; default target year and big rock quarter
    """

    def __init__(
        self,
        db_session: Optional[AsyncSession],
        proposer: Optional[PlanProposer] = None,
        sessions: Optional[LaunchpadSessionRepository] = None,
        planning: Optional[PlanningRepository] = None,
        grounding: Optional[GroundingDocumentRepository] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._proposer = proposer
        self.sessions = sessions or LaunchpadSessionRepository(db_session)
        self.planning = planning or PlanningRepository(db_session)
        self.grounding = grounding or GroundingDocumentRepository(db_session)
        self.clock = clock
        self.logger = LOGGER

    @property
    def proposer(self) -> PlanProposer:
        """Plan proposer, created on first use.

        Raises:
            ConfigurationError: The LLM provider is not configured
        """
        if self._proposer is None:
            self._proposer = PlanProposer(create_llm_client_from_settings())
        return self._proposer

    # ------------------------------------------------------------------
    # Lookup and access
    # ------------------------------------------------------------------

    async def get_session(self, session_id: UUID, user: CurrentUser) -> LaunchpadSession:
        """Fetch a session the caller may act on.

        Raises:
            SessionNotFoundError: No such session
            SessionAccessDeniedError: Wrong role, or another tenant's session
        """
        require_launchpad_role(user)
        session = await self.sessions.get_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if not can_access_session(session, user):
            self.logger.warning(
                f"User {user.id} denied access to session {session_id}",
                extra={"session_id": str(session_id), "tenant_id": session.tenant_id}
            )
            raise SessionAccessDeniedError("Access denied")
        return session

    async def list_sessions(self, user: CurrentUser) -> List[LaunchpadSession]:
        """The caller's sessions in their effective tenant, newest first."""
        require_launchpad_role(user)
        tenant_id = require_tenant(user)
        return await self.sessions.list_for_user(tenant_id, user.id)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        user: CurrentUser,
        document_name: Optional[str],
        text: str,
        target_year: Optional[int] = None,
        target_quarter: Optional[int] = None,
    ) -> LaunchpadSession:
        """Create a draft session from extracted document text.

        Raises:
            ValidationError: Missing tenant, text too short, or bad quarter
        """
        require_launchpad_role(user)
        tenant_id = require_tenant(user)

        if not text or len(text.strip()) < settings.launchpad.min_text_length:
            raise ValidationError(
                "Could not extract sufficient text from document. "
                "Please ensure the document contains readable text."
            )
        if target_quarter is not None and not 1 <= target_quarter <= 4:
            raise ValidationError("target_quarter must be between 1 and 4")

        session = await self.sessions.create_session(
            tenant_id=tenant_id,
            user_id=user.id,
            source_document_name=document_name,
            source_document_text=text[:settings.launchpad.max_stored_text_length],
            target_year=target_year or self.clock().year,
            target_quarter=target_quarter,
        )
        self.logger.info(
            f"Created Launchpad session {session.id}",
            extra={"session_id": str(session.id), "tenant_id": tenant_id, "text_chars": len(text)}
        )
        return session

    # ------------------------------------------------------------------
    # analyze
    # ------------------------------------------------------------------

    async def analyze(self, session_id: UUID, user: CurrentUser) -> LaunchpadSession:
        """Run detection, proposal and normalization, ending in pending_review.

        Raises:
            InvalidStateTransitionError: The session is not in draft
            ConfigurationError: No LLM provider is configured
            AnalysisError / UnparseableResponseError: The model step failed;
                the session has moved to error
        """
        session = await self.get_session(session_id, user)
        proposer = self.proposer

        claimed = await self.sessions.transition(
            session.id, [DRAFT],
            status=ANALYZING, analysis_progress=PROGRESS_STARTED, error_message=None,
        )
        if claimed is None:
            raise InvalidStateTransitionError(
                f"Session cannot be analyzed from status '{session.status}'",
                current_status=session.status,
            )
        self._log_transition(claimed, DRAFT, ANALYZING)

        try:
            return await self._run_analysis(claimed, proposer)
        except Exception as e:
            await self._fail_analysis(session_id, e)
            if isinstance(e, AppError):
                raise
            raise AnalysisError(str(e) or e.__class__.__name__, original_error=e) from e

    async def _run_analysis(self, session: LaunchpadSession, proposer: PlanProposer) -> LaunchpadSession:
        # Read up front; a failed write rolls the session back and expires the instance
        session_id, tenant_id = session.id, session.tenant_id
        text, target_year = session.source_document_text, session.target_year

        existing = await self.planning.load_existing_entities(tenant_id)
        grounding_documents = await self.grounding.list_active_for_tenant(tenant_id)

        mode = detect_mode(text)
        self.logger.info(
            f"Document mode for session {session_id}: {mode.value}",
            extra={"session_id": str(session_id), "mode": mode.value}
        )
        await self.sessions.update(
            session_id, analysis_progress=PROGRESS_CONTEXT_READY, detected_mode=mode.value
        )

        raw_plan = await proposer.propose(
            text,
            mode,
            target_year,
            existing=existing,
            grounding_documents=grounding_documents,
        )
        await self.sessions.update(session_id, analysis_progress=PROGRESS_MODEL_RESPONDED)

        plan = normalize_proposal(raw_plan)
        updated = await self.sessions.transition(
            session_id, [ANALYZING],
            status=PENDING_REVIEW,
            analysis_progress=PROGRESS_DONE,
            ai_proposal=plan,
            user_edits=copy.deepcopy(plan),
            existing_data=existing.to_snapshot(),
        )
        if updated is None:
            raise InvalidStateTransitionError("Session left the analyzing state during analysis")

        self._log_transition(updated, ANALYZING, PENDING_REVIEW)
        return updated

    async def _fail_analysis(self, session_id: UUID, error: Exception) -> None:
        message = str(error) or error.__class__.__name__
        self.logger.error(
            f"Analysis failed for session {session_id}: {message}",
            exc_info=True,
            extra={"session_id": str(session_id)}
        )
        try:
            # Progress stays at the last checkpoint reached
            await self.sessions.transition(
                session_id, [DRAFT, ANALYZING], status=ERROR, error_message=message
            )
        except SQLAlchemyError:
            self.logger.error(
                f"Could not record analysis failure on session {session_id}",
                exc_info=True
            )

    # ------------------------------------------------------------------
    # edit
    # ------------------------------------------------------------------

    async def update_proposal(
        self,
        session_id: UUID,
        user: CurrentUser,
        user_edits: Optional[Dict[str, Any]] = None,
        approval_flags: Optional[ApprovalFlags] = None,
    ) -> LaunchpadSession:
        """Replace the edited plan and/or the stored approval flags.

        The model's original proposal is never touched.

        Raises:
            ValidationError: Nothing to update, or the edited plan is not an object
            InvalidStateTransitionError: The session is not in pending_review
        """
        session = await self.get_session(session_id, user)

        values: Dict[str, Any] = {}
        if user_edits is not None:
            if not isinstance(user_edits, dict):
                raise ValidationError("user_edits must be a JSON object")
            values["user_edits"] = normalize_proposal(user_edits)
        if approval_flags is not None:
            values.update(approval_flags.model_dump())
        if not values:
            raise ValidationError("Nothing to update")

        updated = await self.sessions.transition(session.id, [PENDING_REVIEW], **values)
        if updated is None:
            raise InvalidStateTransitionError(
                f"Session cannot be edited in status '{session.status}'",
                current_status=session.status,
            )
        return updated

    # ------------------------------------------------------------------
    # approve
    # ------------------------------------------------------------------

    async def approve(
        self,
        session_id: UUID,
        user: CurrentUser,
        request: Optional[ApproveRequest] = None,
    ) -> Tuple[LaunchpadSession, CommitResult]:
        """Commit the edited plan and move the session to approved.

        Raises:
            InvalidStateTransitionError: The session is not in pending_review
            ValidationError: The session has no proposal
            CommitError: Some items failed; the session stays in pending_review
        """
        request = request or ApproveRequest()
        session = await self.get_session(session_id, user)

        if session.status != PENDING_REVIEW:
            raise InvalidStateTransitionError(
                f"Session cannot be approved from status '{session.status}'",
                current_status=session.status,
            )

        proposal = session.user_edits or session.ai_proposal
        if not proposal:
            raise ValidationError("No proposal to approve")

        flags = request.merged_flags(ApprovalFlags.from_session(session))
        # Read before committing; a failed write may expire the session instance
        tenant_id = session.tenant_id
        plan = to_plan(proposal)
        existing = await self.planning.load_existing_entities(tenant_id)

        result = await CommitEngine(self.planning, clock=self.clock).commit(
            plan,
            flags,
            existing,
            tenant_id=tenant_id,
            target_year=session.target_year,
            target_quarter=session.target_quarter,
            quarter_override=request.big_rock_quarter,
        )
        summary = result.model_dump(mode="json")

        if not result.succeeded:
            message = f"{len(result.failures)} item(s) could not be created: " + "; ".join(
                f"{failure.kind} '{failure.title}': {failure.error}" for failure in result.failures[:5]
            )
            await self.sessions.transition(
                session_id, [PENDING_REVIEW],
                error_message=message, commit_summary=summary, **flags.model_dump(),
            )
            self.logger.warning(
                f"Approval of session {session_id} incomplete",
                extra={"session_id": str(session_id), "failures": len(result.failures)}
            )
            raise CommitError(message, result=result)

        approved = await self.sessions.transition(
            session_id, [PENDING_REVIEW],
            status=APPROVED,
            approved_at=datetime.now(timezone.utc),
            approved_by=user.id,
            commit_summary=summary,
            error_message=None,
            **flags.model_dump(),
        )
        if approved is None:
            raise InvalidStateTransitionError(
                "Session was approved or deleted by another request"
            )

        self._log_transition(approved, PENDING_REVIEW, APPROVED)
        return approved, result

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------

    async def delete(self, session_id: UUID, user: CurrentUser) -> None:
        """Delete a session; approved sessions require an administrator role."""
        session = await self.get_session(session_id, user)

        if session.status == APPROVED and not can_delete_approved(user):
            raise SessionAccessDeniedError("Only administrators can delete an approved session")

        await self.sessions.delete(session.id)
        self.logger.info(
            f"Deleted Launchpad session {session.id}",
            extra={"session_id": str(session.id), "status": session.status}
        )

    def _log_transition(self, session: LaunchpadSession, from_status: str, to_status: str) -> None:
        self.logger.info(
            f"Session {session.id}: {from_status} -> {to_status}",
            extra={"session_id": str(session.id), "tenant_id": session.tenant_id}
        )
