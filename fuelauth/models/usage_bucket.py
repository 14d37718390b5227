"""
CardUsageBucket model — accumulated spend for one card, period type and window.

A bucket is keyed by (card_id, period_type, window_start, window_end). The
unique constraint guarantees at most one row per window; usage_service
always reads the row under lock before creating or updating it, so the
constraint is never hit in normal operation.

Buckets are only written on approval. A declined purchase never creates a
bucket row, which keeps the table from filling up with zero-spend rows for
cards that are repeatedly declined.

ROLLING rules have no bucket: their window moves with every purchase, so
their spend is summed from approved fuel transactions instead.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuelauth.database import Base
from fuelauth.models.limit_rule import PeriodType


class CardUsageBucket(Base):
    __tablename__ = "card_usage_buckets"

    __table_args__ = (
        UniqueConstraint(
            "card_id",
            "period_type",
            "window_start",
            "window_end",
            name="uq_card_usage_buckets_window",
        ),
        CheckConstraint("spent_cents >= 0", name="ck_card_usage_buckets_non_negative_spend"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    period_type: Mapped[PeriodType] = mapped_column(
        Enum(PeriodType),
        nullable=False,
    )

    # [window_start, window_end)
    window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    window_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    spent_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
