"""
AccountLedgerEntry model — append-only audit of every balance change.

ledger_service writes one entry per debit (linked to the approved
FuelTransaction) and one per top-up credit, recording the balance the
account was left with. Replaying the entries in order reconstructs the
balance history; the latest entry's balance_after_cents always equals
the account's available_cents.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, BigInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuelauth.database import Base


class AccountLedgerEntry(Base):
    __tablename__ = "account_ledger_entries"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_account_ledger_entries_positive_amount"),
        CheckConstraint("balance_after_cents >= 0", name="ck_account_ledger_entries_non_negative_balance"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("org_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # The approved purchase behind a debit; NULL for top-ups
    fuel_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    # "debit" or "credit"
    entry_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    balance_after_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
