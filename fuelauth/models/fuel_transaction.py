"""
FuelTransaction model — the permanent record of every authorization attempt.

Every attempt that resolves to a card and an organization produces exactly
one FuelTransaction, approved or rejected. Rejected attempts are kept for
the audit trail with the decline code in `decline_reason`.

Key fields:
  - amount_cents: Always positive, in minor units
  - status: "approved", "rejected", or "pending"
  - decline_reason: Decline code for rejected attempts (e.g., "CARD_BLOCKED")
  - meta: Free-form JSON (e.g., the window that blocked the purchase)

Identity is (id, occurred_at). Including the timestamp in the primary key
lets the table be partitioned by time (e.g., a TimescaleDB hypertable)
without changing the model.

Rows are immutable once written. Card and organization foreign keys use
ON DELETE RESTRICT: historical transactions must outlive card or
organization cleanup, so deleting either is refused while transactions
reference it.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, BigInteger, DateTime, ForeignKey, CheckConstraint, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from fuelauth.database import Base


class FuelTransaction(Base):
    __tablename__ = "fuel_transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_fuel_transactions_positive_amount"),
        Index("ix_fuel_transactions_card_occurred", "card_id", "occurred_at"),
        Index("ix_fuel_transactions_org_occurred", "organization_id", "occurred_at"),
        Index("ix_fuel_transactions_status_occurred", "status", "occurred_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        primary_key=True,
    )

    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id", ondelete="RESTRICT"),
        nullable=False,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=False,
    )

    station_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("stations.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Reference assigned by the station or acquirer (e.g., RRN)
    external_ref: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    # "approved", "rejected", or "pending"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    decline_reason: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    # `metadata` is reserved on declarative classes
    meta: Mapped[dict] = mapped_column(
        "meta",
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
