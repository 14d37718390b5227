"""
Limit service — evaluates every active limit rule of a card.

For each active rule:
  1. Compute the rule's window for the purchase instant (fuelauth.windows)
  2. Read the current spend in that window, under lock
  3. Check current + amount <= limit

The first violated rule fails the evaluation and is reported with its
period type, so the decline code names the limit that blocked the purchase.
Nothing is incremented here: the caller increments the returned buckets
only after every other check (including the balance) has passed.

Rules are evaluated in a fixed order (period type, then id) so that bucket
locks are always acquired in the same order.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fuelauth.models.limit_rule import CardLimitRule, PeriodType, WindowMode
from fuelauth.models.usage_bucket import CardUsageBucket
from fuelauth.money import Money
from fuelauth.services import usage_service
from fuelauth.windows import Window, compute_window


@dataclass
class LimitPass:
    """Every rule allows the purchase. `buckets` must be incremented on approval."""
    buckets: list[CardUsageBucket] = field(default_factory=list)
    passed: bool = True


@dataclass
class LimitFail:
    """A rule blocks the purchase."""
    rule_id: uuid.UUID
    period_type: PeriodType
    limit: Money
    current_spend: Money
    window: Window
    passed: bool = False


async def get_active_rules(db: AsyncSession, card_id: uuid.UUID) -> list[CardLimitRule]:
    result = await db.execute(
        select(CardLimitRule)
        .where(CardLimitRule.card_id == card_id, CardLimitRule.active.is_(True))
        .order_by(CardLimitRule.period_type, CardLimitRule.id)
    )
    return list(result.scalars().all())


async def evaluate(
    db: AsyncSession,
    card_id: uuid.UUID,
    amount: Money,
    occurred_at: datetime,
) -> LimitPass | LimitFail:
    """
    Check a purchase against all of the card's active limit rules.

    Args:
        db: Database session (inside the authorization unit of work).
        card_id: The card making the purchase.
        amount: Purchase amount.
        occurred_at: When the purchase happened (determines the windows).

    Returns:
        LimitPass with the buckets to increment, or LimitFail for the first
        rule the purchase would exceed.

    Raises:
        InvalidLimitRuleError: If a rule's window cannot be computed.
    """
    rules = await get_active_rules(db, card_id)
    outcome = LimitPass()
    # Two rules of the same period type can share a window; they share its bucket too
    buckets_by_key: dict[tuple, CardUsageBucket] = {}

    for rule in rules:
        window = compute_window(rule, occurred_at)
        limit = Money(rule.limit_cents)

        if WindowMode(rule.window_mode) == WindowMode.ROLLING:
            spent = await usage_service.rolling_spend(db, card_id, window)
        else:
            # Past the end of a short anchored cycle the purchase still counts against it
            key = (PeriodType(rule.period_type), window.start, window.end)
            bucket = buckets_by_key.get(key)
            if bucket is None:
                bucket = await usage_service.get_or_create_for_update(
                    db, card_id, rule.period_type, window,
                )
                buckets_by_key[key] = bucket
                outcome.buckets.append(bucket)
            spent = usage_service.current_spend(bucket)

        if spent + amount > limit:
            return LimitFail(
                rule_id=rule.id,
                period_type=PeriodType(rule.period_type),
                limit=limit,
                current_spend=spent,
                window=window,
            )

    return outcome
