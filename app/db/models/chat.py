"""Long-term memory models."""

from datetime import datetime, timezone

from sqlalchemy import Integer, String, Text, Float, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Memory(Base):
    """A conversational turn that scored high enough to be remembered."""

    __tablename__ = "memories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    content: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String, default="general")
    significance: Mapped[float] = mapped_column(Float, default=0.0)
    type: Mapped[str] = mapped_column(String, default="semantic")  # episodic / semantic
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list)
    reasons: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    # NULL means permanent
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_memories_expires_at", "expires_at"),
    )
