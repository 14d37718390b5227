"""
WebhookEvent model — one row per station delivery, used for idempotency.

Status lifecycle:
    received ──► processed   (terminal: the purchase was approved)
        │
        └──────► failed      (retryable: rejected, invalid, or crashed)

A redelivery of a `processed` event is answered with DUPLICATE. A
redelivery of a `failed` or `received` event is authorized again and
overwrites the outcome, so a purchase declined for insufficient funds can
be resubmitted after a top-up.

Uniqueness:
  (station_id, idempotency_key) is unique. SQL treats NULLs as distinct,
  so deliveries without a key are never deduplicated against each other.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuelauth.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    __table_args__ = (
        UniqueConstraint(
            "station_id",
            "idempotency_key",
            name="uq_webhook_events_station_idempotency_key",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # NULL when the station code could not be resolved
    station_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("stations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    idempotency_key: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Payload as received, with the card number reduced to its last four digits
    raw_payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # "received", "processed", or "failed"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="received",
    )

    # Outcome code of the last failed attempt (e.g., "INSUFFICIENT_FUNDS")
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # FuelTransaction produced by the last attempt, if any
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
    )
