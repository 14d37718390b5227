"""
Usage service — per-card spend accumulators for limit rules.

Buckets (CALENDAR and ANCHOR rules):
  get_or_create_for_update() reads the bucket for an exact window under a
  row lock. When no row exists it returns a zero-spend bucket that is NOT
  added to the session: if the purchase is declined, the bucket simply
  disappears with the unit of work and no row is written. increment() adds
  the approved amount and attaches a new bucket to the session.

Rolling spend (ROLLING rules):
  A rolling window moves with every purchase, so it has no bucket. The
  current spend is summed from approved fuel transactions inside the window.

Lock ordering:
  Callers must already hold the organization account lock (see
  ledger_service.lock_account) before touching buckets. All purchases for a
  card go through its organization's account, so the account lock alone
  serializes bucket creation; the bucket row lock additionally protects
  against any other code path updating the same bucket.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fuelauth.models.fuel_transaction import FuelTransaction
from fuelauth.models.limit_rule import PeriodType
from fuelauth.models.usage_bucket import CardUsageBucket
from fuelauth.money import Money
from fuelauth.windows import Window


async def get_or_create_for_update(
    db: AsyncSession,
    card_id: uuid.UUID,
    period_type: PeriodType,
    window: Window,
) -> CardUsageBucket:
    """
    Return the bucket for (card, period type, window), locked for update.

    The returned bucket is transient (not in the session) when no row
    exists yet; it is only persisted if increment() is called on it.
    """
    result = await db.execute(
        select(CardUsageBucket)
        .where(
            CardUsageBucket.card_id == card_id,
            CardUsageBucket.period_type == period_type,
            CardUsageBucket.window_start == window.start,
            CardUsageBucket.window_end == window.end,
        )
        .with_for_update()
    )
    bucket = result.scalar_one_or_none()

    if bucket is None:
        bucket = CardUsageBucket(
            card_id=card_id,
            period_type=period_type,
            window_start=window.start,
            window_end=window.end,
            spent_cents=0,
        )
    return bucket


def current_spend(bucket: CardUsageBucket) -> Money:
    return Money(bucket.spent_cents or 0)


async def increment(
    db: AsyncSession,
    bucket: CardUsageBucket,
    amount: Money,
) -> CardUsageBucket:
    """
    Add an approved amount to a bucket.

    The caller must already have checked that the new total stays within
    every applicable limit.
    """
    bucket.spent_cents = (current_spend(bucket) + amount).cents
    bucket.updated_at = datetime.now(timezone.utc)
    if bucket not in db:
        db.add(bucket)
    await db.flush()
    return bucket


async def rolling_spend(
    db: AsyncSession,
    card_id: uuid.UUID,
    window: Window,
) -> Money:
    """
    Sum approved spend for a card inside a rolling window.

    The window's end is the purchase instant itself; earlier approvals
    stamped with exactly the same instant are counted.
    """
    result = await db.execute(
        select(func.coalesce(func.sum(FuelTransaction.amount_cents), 0))
        .where(
            FuelTransaction.card_id == card_id,
            FuelTransaction.status == "approved",
            FuelTransaction.occurred_at >= window.start,
            FuelTransaction.occurred_at <= window.end,
        )
    )
    return Money(int(result.scalar_one()))


async def get_buckets(
    db: AsyncSession,
    card_id: uuid.UUID,
    period_type: PeriodType | None = None,
) -> list[CardUsageBucket]:
    """List a card's buckets, oldest window first."""
    query = (
        select(CardUsageBucket)
        .where(CardUsageBucket.card_id == card_id)
        .order_by(CardUsageBucket.window_start.asc())
    )
    if period_type is not None:
        query = query.where(CardUsageBucket.period_type == period_type)

    result = await db.execute(query)
    return list(result.scalars().all())
