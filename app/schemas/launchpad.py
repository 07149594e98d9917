"""Launchpad schemas: proposed plan, approval flags, commit summary, API models.

Proposed plans travel as camelCase JSON (the shape the generative model is
asked to emit and the shape stored on the session). The typed models below
accept that shape through camelCase aliases and are only built from output of
``normalize_proposal``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged in camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# =============================================================================
# Proposed plan
# =============================================================================

class ProposalItem(CamelModel):
    """Any titled plan item."""

    title: str
    description: Optional[str] = None


class ProposedValue(ProposalItem):
    pass


class ProposedGoal(ProposalItem):
    pass


class ProposedStrategy(ProposalItem):
    linked_goals: List[str] = Field(default_factory=list)


class ProposedKeyResult(ProposalItem):
    metric_type: Optional[str] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None


class ProposedBigRock(ProposalItem):
    priority: Optional[str] = None
    # Integer 1-4 when well formed; labels such as "Q2" are resolved at commit
    quarter: Optional[Union[int, str]] = None


class ProposedObjective(ProposalItem):
    level: Optional[str] = None
    team: Optional[str] = None
    key_results: List[ProposedKeyResult] = Field(default_factory=list)
    big_rocks: List[ProposedBigRock] = Field(default_factory=list)


class ProposedPlan(CamelModel):
    """Candidate or user-edited organizational plan."""

    mission: Optional[str] = None
    vision: Optional[str] = None
    values: List[ProposedValue] = Field(default_factory=list)
    goals: List[ProposedGoal] = Field(default_factory=list)
    strategies: List[ProposedStrategy] = Field(default_factory=list)
    objectives: List[ProposedObjective] = Field(default_factory=list)
    big_rocks: List[ProposedBigRock] = Field(default_factory=list)

    def has_big_rocks(self) -> bool:
        return bool(self.big_rocks) or any(obj.big_rocks for obj in self.objectives)


# =============================================================================
# Approval and commit
# =============================================================================

class ApprovalFlags(CamelModel):
    """Per-section approval switches; every section is approved by default."""

    approve_mission: bool = True
    approve_vision: bool = True
    approve_values: bool = True
    approve_goals: bool = True
    approve_strategies: bool = True
    approve_objectives: bool = True
    approve_big_rocks: bool = True

    @classmethod
    def from_session(cls, session: Any) -> "ApprovalFlags":
        return cls(**{
            name: getattr(session, name) if getattr(session, name, None) is not None else True
            for name in cls.model_fields
        })


class CommitFailure(BaseModel):
    """One item the commit engine could not create."""

    kind: str
    title: Optional[str] = None
    error: str


class CommitResult(BaseModel):
    """What a single approval created, skipped and failed to create."""

    foundation: bool = False
    values: int = 0
    goals: int = 0
    strategies: int = 0
    objectives: int = 0
    key_results: int = 0
    big_rocks: int = 0

    # Sections present in the plan that the user declined
    skipped: List[str] = Field(default_factory=list)
    duplicates_skipped: int = 0
    duplicates_by_kind: Dict[str, int] = Field(default_factory=dict)
    unapproved_skipped: Dict[str, int] = Field(default_factory=dict)
    untitled_skipped: int = 0
    # Key results and big rocks not created because their objective was not
    children_skipped: int = 0
    failures: List[CommitFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def record_duplicate(self, kind: str) -> None:
        self.duplicates_skipped += 1
        self.duplicates_by_kind[kind] = self.duplicates_by_kind.get(kind, 0) + 1

    def record_unapproved(self, kind: str, count: int) -> None:
        if count:
            self.unapproved_skipped[kind] = self.unapproved_skipped.get(kind, 0) + count

    def record_failure(self, kind: str, title: Optional[str], error: Exception) -> None:
        self.failures.append(CommitFailure(kind=kind, title=title, error=str(error)))


# =============================================================================
# Existing tenant entities
# =============================================================================

class ExistingEntityRef(BaseModel):
    id: Optional[str] = None
    title: str
    description: Optional[str] = None


class ExistingEntities(BaseModel):
    """Planning data the tenant already has, read once per analysis or commit."""

    mission: Optional[str] = None
    vision: Optional[str] = None
    values: List[Dict[str, Any]] = Field(default_factory=list)
    # Legacy rows store plain strings, newer rows store {title, year, description}
    annual_goals: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    strategies: List[ExistingEntityRef] = Field(default_factory=list)
    objectives: List[ExistingEntityRef] = Field(default_factory=list)
    big_rocks: List[ExistingEntityRef] = Field(default_factory=list)

    def annual_goal_titles(self) -> List[str]:
        titles = []
        for goal in self.annual_goals:
            if isinstance(goal, str):
                titles.append(goal)
            elif isinstance(goal, dict) and goal.get("title"):
                titles.append(str(goal["title"]))
        return titles

    def to_snapshot(self) -> Dict[str, Any]:
        """Review-time view of what already exists, stored on the session."""
        return {
            "mission": self.mission,
            "vision": self.vision,
            "values": self.values,
            "annualGoals": self.annual_goals,
            "strategies": [ref.model_dump() for ref in self.strategies],
            "objectives": [ref.model_dump() for ref in self.objectives],
        }


# =============================================================================
# API models
# =============================================================================

class LaunchpadSessionResponse(BaseModel):
    """Session as returned to API callers."""

    id: UUID
    tenant_id: str
    user_id: str
    source_document_name: Optional[str] = None
    target_year: int
    target_quarter: Optional[int] = None
    status: str
    analysis_progress: int = 0
    detected_mode: Optional[str] = None
    error_message: Optional[str] = None
    ai_proposal: Optional[Dict[str, Any]] = None
    user_edits: Optional[Dict[str, Any]] = None
    existing_data: Optional[Dict[str, Any]] = None
    approve_mission: bool = True
    approve_vision: bool = True
    approve_values: bool = True
    approve_goals: bool = True
    approve_strategies: bool = True
    approve_objectives: bool = True
    approve_big_rocks: bool = True
    commit_summary: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LaunchpadSessionListResponse(BaseModel):
    total: int
    sessions: List[LaunchpadSessionResponse]


class SessionUpdateRequest(BaseModel):
    """Replace the edited proposal and/or the stored approval flags."""

    user_edits: Optional[Dict[str, Any]] = Field(None, description="Edited proposal (camelCase plan JSON)")
    approval_flags: Optional[ApprovalFlags] = Field(None, description="Per-section approval flags")


class ApproveRequest(BaseModel):
    """Approval flags override the session's stored flags when given."""

    approve_mission: Optional[bool] = None
    approve_vision: Optional[bool] = None
    approve_values: Optional[bool] = None
    approve_goals: Optional[bool] = None
    approve_strategies: Optional[bool] = None
    approve_objectives: Optional[bool] = None
    approve_big_rocks: Optional[bool] = None
    big_rock_quarter: Optional[int] = Field(None, ge=1, le=4, description="Quarter override for every big rock")

    def merged_flags(self, stored: ApprovalFlags) -> ApprovalFlags:
        overrides = {
            name: value
            for name, value in self.model_dump(exclude={"big_rock_quarter"}).items()
            if value is not None
        }
        return stored.model_copy(update=overrides)


class ApproveResponse(BaseModel):
    session: LaunchpadSessionResponse
    created: CommitResult
