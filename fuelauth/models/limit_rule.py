"""
CardLimitRule model — a spending limit on a card over a time window.

A card can carry several active rules at once (e.g., DAILY $200 and
MONTHLY $2,000). Every active rule is evaluated on every authorization.

Period type vs. window mode:
  - period_type names the limit ("DAILY", "WEEKLY", "MONTHLY", "CUSTOM")
    and determines the decline code (DAILY_LIMIT_EXCEEDED, ...) and the
    usage bucket the spend is accumulated in.
  - window_mode decides how the window is computed:
      CALENDAR — aligned to UTC day / ISO week / calendar month
      ANCHOR   — starts on anchor_day_of_month, lasts anchor_length_days
      ROLLING  — the last rolling_hours hours before the purchase

The mode-specific columns are nullable; fuelauth.windows applies defaults
(anchor day 1, 30 days, 24 hours) when they are unset.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Integer, SmallInteger, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuelauth.database import Base


class PeriodType(str, enum.Enum):
    """The named period a limit applies to."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class WindowMode(str, enum.Enum):
    """Strategy for computing a rule's active interval."""
    CALENDAR = "CALENDAR"
    ANCHOR = "ANCHOR"
    ROLLING = "ROLLING"


class CardLimitRule(Base):
    __tablename__ = "card_limit_rules"

    __table_args__ = (
        CheckConstraint("limit_cents >= 0", name="ck_card_limit_rules_non_negative_limit"),
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

    # Limit in minor units
    limit_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    window_mode: Mapped[WindowMode] = mapped_column(
        Enum(WindowMode),
        nullable=False,
        default=WindowMode.CALENDAR,
    )

    # ANCHOR mode parameters
    anchor_day_of_month: Mapped[int | None] = mapped_column(
        SmallInteger,
        nullable=True,
    )
    anchor_length_days: Mapped[int | None] = mapped_column(
        SmallInteger,
        nullable=True,
    )

    # ROLLING mode parameter
    rolling_hours: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
