"""Repository layer modules."""

from app.repositories.grounding_repository import GroundingDocumentRepository
from app.repositories.launchpad_repository import LaunchpadSessionRepository
from app.repositories.planning_repository import PlanningRepository

__all__ = [
    "GroundingDocumentRepository",
    "LaunchpadSessionRepository",
    "PlanningRepository",
]
