"""Launchpad ingestion pipeline.

    - detect_mode: structured OKR markup vs narrative prose
    - PlanProposer: mode-specific prompts and the model call
    - normalize_proposal: structural repair of the raw plan
    - CommitEngine: duplicate-suppressing write of an approved plan
    - LaunchpadSessionService: the session lifecycle tying the above together
"""

from app.services.launchpad.commit_engine import CommitEngine
from app.services.launchpad.mode_detector import DocumentMode, detect_mode
from app.services.launchpad.plan_proposer import PlanProposer
from app.services.launchpad.proposal_normalizer import normalize_proposal, to_plan
from app.services.launchpad.session_service import LaunchpadSessionService

__all__ = [
    "CommitEngine",
    "DocumentMode",
    "detect_mode",
    "PlanProposer",
    "normalize_proposal",
    "to_plan",
    "LaunchpadSessionService",
]
