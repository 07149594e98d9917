"""SQLAlchemy models for Launchpad sessions and the tenant planning store."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class LaunchpadSession(Base):
    """One document-to-plan ingestion session."""

    __tablename__ = "launchpad_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    source_document_name: Mapped[str | None] = mapped_column(String, nullable=True)
    source_document_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_year: Mapped[int] = mapped_column(Integer, nullable=False)
    target_quarter: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String, nullable=False, default="draft"
    )  # draft | analyzing | pending_review | approved | error
    analysis_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    detected_mode: Mapped[str | None] = mapped_column(
        String, nullable=True
    )  # structured | narrative
    # Last analysis or approval failure
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Raw model output and the user's working copy
    ai_proposal: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    user_edits: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    # Tenant entities that existed when analysis ran, for review-time display
    existing_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    approve_mission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_vision: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_values: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_goals: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_strategies: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_objectives: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approve_big_rocks: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    commit_summary: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    approved_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        {"comment": "Launchpad document ingestion sessions"},
    )


class Foundation(Base):
    """Tenant mission, vision, values and annual goals (one row per tenant)."""

    __tablename__ = "foundations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    mission: Mapped[str | None] = mapped_column(Text, nullable=True)
    vision: Mapped[str | None] = mapped_column(Text, nullable=True)
    values: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    # Either legacy plain strings or {title, year, description} objects
    annual_goals: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=datetime.utcnow
    )


class Strategy(Base):
    """Strategic initiative owned by a tenant."""

    __tablename__ = "strategies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    linked_goals: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "title", name="uq_strategies_tenant_title"),
    )


class Objective(Base):
    """Organization, department or team objective."""

    __tablename__ = "objectives"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[str] = mapped_column(String, nullable=False, default="organization")
    team: Mapped[str | None] = mapped_column(String, nullable=True)
    quarter: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="not_started")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    key_results: Mapped[list["KeyResult"]] = relationship(
        "KeyResult", back_populates="objective", cascade="all, delete-orphan"
    )


class KeyResult(Base):
    """Measurable target scoped to exactly one objective."""

    __tablename__ = "key_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    objective_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    metric_type: Mapped[str] = mapped_column(String, nullable=False, default="numeric")
    target_value: Mapped[float] = mapped_column(Float, nullable=False, default=100)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    initial_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    unit: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    objective: Mapped["Objective"] = relationship("Objective", back_populates="key_results")


class BigRock(Base):
    """Major initiative, optionally tied to an objective, always in a quarter."""

    __tablename__ = "big_rocks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    objective_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("objectives.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="not_started")
    quarter: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )


class GroundingDocument(Base):
    """Background material a tenant registers to improve model context."""

    __tablename__ = "grounding_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Null tenant means the document applies to every tenant
    tenant_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
