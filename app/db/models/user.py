"""User profile models."""

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import Integer, String, Float, Date, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Profile(Base):
    """Per-user engagement state: trust, usage counters and personality result."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)

    # Relationship depth. Only relationship.processor.apply_trust_delta writes this.
    trust_level: Mapped[float] = mapped_column(Float, default=0.0)
    message_count: Mapped[int] = mapped_column(Integer, default=0)

    # Mirrors of the shared daily counter
    messages_used_today: Mapped[int] = mapped_column(Integer, default=0)
    last_message_reset: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Personality quiz result (replaced on retake)
    archetype: Mapped[str | None] = mapped_column(String, nullable=True)
    attachment_style: Mapped[str | None] = mapped_column(String, nullable=True)
    dimension_scores: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    quiz_answers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
