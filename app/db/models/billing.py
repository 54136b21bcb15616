"""Subscription models."""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Subscription(Base):
    """
    Current plan per user, kept in sync by the payment-processor webhooks.

    This row is the source of truth for feature gating and quotas; it is read
    fresh on every check and never cached.
    """

    __tablename__ = "subscriptions"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    plan: Mapped[str] = mapped_column(String, default="free")  # free / basic / premium / ultimate / lifetime
    status: Mapped[str] = mapped_column(String, default="active")  # active / trialing / past_due / canceled
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
