"""Relationship progression log."""

from datetime import datetime, timezone

from sqlalchemy import Integer, String, Text, Float, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProgressionEvent(Base):
    """Append-only history of trust changes, stage changes, milestones and trigger events."""

    __tablename__ = "progression_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, index=True)

    type: Mapped[str] = mapped_column(String)  # trust_gained / trust_lost / stage_reached / milestone_achieved / ...
    description: Mapped[str] = mapped_column(Text, default="")
    trust_delta: Mapped[float] = mapped_column(Float, default=0.0)
    milestone_id: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_progression_user_type", "user_id", "type"),
        # one achievement row per milestone; NULL milestone_id rows are unconstrained
        UniqueConstraint("user_id", "milestone_id", name="uq_progression_user_milestone"),
    )
