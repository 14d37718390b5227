"""
Ledger service — the only code that changes an organization's balance.

Every mutation of OrgAccount.available_cents goes through debit() or
credit(), inside the caller's unit of work, while holding the account row
lock. Each mutation appends an AccountLedgerEntry recording the amount and
the resulting balance.

Locking:
  lock_account() issues SELECT ... FOR UPDATE on the account row. The
  authorization flow calls it before evaluating any limit rule, so all
  purchases against one organization are serialized on that row, while
  purchases for different organizations proceed in parallel. debit()
  re-issues the same locking read; within one transaction that is a no-op
  on the lock and refreshes the balance from the database.

  On SQLite, FOR UPDATE is ignored; the BEGIN IMMEDIATE issued for every
  transaction (see fuelauth.database) serializes writers instead.
"""

import enum
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fuelauth.exceptions import AccountNotFoundError
from fuelauth.models.ledger_entry import AccountLedgerEntry
from fuelauth.models.organization import OrgAccount
from fuelauth.money import Money


class DebitResult(str, enum.Enum):
    OK = "ok"
    INSUFFICIENT_FUNDS = "insufficient_funds"


async def lock_account(db: AsyncSession, organization_id: uuid.UUID) -> OrgAccount:
    """
    Lock and return the organization's account row.

    Raises:
        AccountNotFoundError: If the organization has no account.
    """
    result = await db.execute(
        select(OrgAccount)
        .where(OrgAccount.organization_id == organization_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(organization_id)
    return account


async def get_balance(db: AsyncSession, organization_id: uuid.UUID) -> Money:
    """Read the available balance without locking."""
    result = await db.execute(
        select(OrgAccount.available_cents)
        .where(OrgAccount.organization_id == organization_id)
    )
    cents = result.scalar_one_or_none()
    if cents is None:
        raise AccountNotFoundError(organization_id)
    return Money(cents)


async def debit(
    db: AsyncSession,
    organization_id: uuid.UUID,
    amount: Money,
    fuel_transaction_id: uuid.UUID | None = None,
) -> DebitResult:
    """
    Debit the organization's account if the balance covers the amount.

    On INSUFFICIENT_FUNDS nothing is changed. On OK the balance is
    decremented and a ledger entry appended; both are flushed but not
    committed, so they roll back with the rest of the unit of work.

    Args:
        db: Database session.
        organization_id: Owner of the account to debit.
        amount: Positive amount to debit.
        fuel_transaction_id: The purchase being paid for (for the ledger entry).
    """
    account = await lock_account(db, organization_id)
    balance = Money(account.available_cents)

    remaining = balance - amount
    if remaining.is_negative():
        return DebitResult.INSUFFICIENT_FUNDS

    account.available_cents = remaining.cents
    db.add(
        AccountLedgerEntry(
            account_id=account.id,
            fuel_transaction_id=fuel_transaction_id,
            entry_type="debit",
            amount_cents=amount.cents,
            balance_after_cents=remaining.cents,
        )
    )
    await db.flush()
    return DebitResult.OK


async def credit(
    db: AsyncSession,
    organization_id: uuid.UUID,
    amount: Money,
) -> OrgAccount:
    """
    Top up an organization's account.

    Returns:
        The updated account.
    """
    account = await lock_account(db, organization_id)
    account.available_cents = (Money(account.available_cents) + amount).cents
    db.add(
        AccountLedgerEntry(
            account_id=account.id,
            entry_type="credit",
            amount_cents=amount.cents,
            balance_after_cents=account.available_cents,
        )
    )
    await db.flush()
    return account


async def get_ledger_entries(db: AsyncSession, account_id: uuid.UUID) -> list[AccountLedgerEntry]:
    """List an account's ledger entries, oldest first."""
    result = await db.execute(
        select(AccountLedgerEntry)
        .where(AccountLedgerEntry.account_id == account_id)
        .order_by(AccountLedgerEntry.created_at.asc(), AccountLedgerEntry.id.asc())
    )
    return list(result.scalars().all())
