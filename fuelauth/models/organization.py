"""
Organization and OrgAccount models — the fleet customer and its prepaid balance.

Each Organization owns exactly one OrgAccount (unique organization_id,
cascade-deleted with the organization). Fuel purchases by any of the
organization's cards are debited from that single account, which makes the
account row the serialization point for all of the organization's
authorizations.

Balance management:
  `available_cents` is an integer count of minor units, updated only by
  ledger_service inside a unit of work that holds the row lock.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The application checks before debiting; the constraint
  is the final safety net.

Version counter:
  `version` is registered as SQLAlchemy's version_id_col. Every UPDATE is
  emitted as `... WHERE id = :id AND version = :read_version` and bumps the
  counter, so a mutation made from a stale read raises StaleDataError
  instead of silently overwriting a concurrent debit.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, BigInteger, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fuelauth.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # "active" or "suspended"
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    # ISO 4217 currency code for the organization's account
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["OrgAccount"] = relationship(
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OrgAccount(Base):
    __tablename__ = "org_accounts"

    __table_args__ = (
        CheckConstraint(
            "available_cents >= 0",
            name="ck_org_accounts_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # One account per organization
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    available_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    # --- Relationships ---
    organization: Mapped["Organization"] = relationship(
        back_populates="account",
    )
