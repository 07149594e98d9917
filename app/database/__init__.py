"""Database module for SQLAlchemy models."""

from app.database.models import (
    BigRock,
    Foundation,
    GroundingDocument,
    KeyResult,
    LaunchpadSession,
    Objective,
    Strategy,
)

__all__ = [
    "BigRock",
    "Foundation",
    "GroundingDocument",
    "KeyResult",
    "LaunchpadSession",
    "Objective",
    "Strategy",
]
