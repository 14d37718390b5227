"""
Card model — a fuel card belonging to an organization.

Cards are looked up by a keyed hash of the card number (PAN), never by the
PAN itself. The raw PAN is not stored anywhere: stations send it, the
engine hashes it (see fuelauth.security) and discards it.

  - card_number_hash: HMAC-SHA256 of the PAN, unique within an organization
  - last4: Last four digits in plaintext for display ("ending in 4242")
  - status: "active" or "blocked"

Why hash and not encrypt?
  Authorization only needs to recognise a card it has seen before, never
  to recover the number, so a one-way keyed hash is sufficient and leaves
  nothing to decrypt after a database breach.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fuelauth.database import Base


class Card(Base):
    __tablename__ = "cards"

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "card_number_hash",
            name="uq_cards_org_card_number_hash",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Keyed hash of the PAN, prefixed with the algorithm ("hmac-sha256:...")
    card_number_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )

    last4: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
        index=True,
    )

    # "active" or "blocked"
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    # Rules and buckets live and die with the card
    limit_rules: Mapped[list["CardLimitRule"]] = relationship(
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    usage_buckets: Mapped[list["CardUsageBucket"]] = relationship(
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
