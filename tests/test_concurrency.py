"""
Tests for concurrent authorizations.

These tests verify that simultaneous deliveries cannot overspend:
  - N purchases racing on one account approve exactly the subset the
    balance covers, and the balance never goes negative
  - N purchases racing against one daily limit never exceed the limit
  - N deliveries of the same idempotency key debit exactly once
  - Purchases on different organizations are all approved

Every delivery runs in its own sessions against a file-backed database,
so the account lock is genuinely contended.
"""

import asyncio

from fuelauth.models.limit_rule import PeriodType
from fuelauth.results import Approved, Duplicate, Rejected, DeclineCode


class TestConcurrentAuthorizations:

    async def test_balance_covers_exactly_a_subset(self, fleet, purchase):
        org = await fleet.organization(balance_cents=55_000)
        card = await fleet.card(org)
        await fleet.station()

        results = await asyncio.gather(
            *(purchase("10000", key=f"race-{i}") for i in range(10))
        )

        approved = [r for r in results if isinstance(r, Approved)]
        rejected = [r for r in results if isinstance(r, Rejected)]
        assert len(approved) == 5
        assert len(rejected) == 5
        assert {r.code for r in rejected} == {DeclineCode.INSUFFICIENT_FUNDS}
        assert await fleet.balance(org) == 5_000
        assert len(await fleet.transactions(card, status="approved")) == 5

    async def test_daily_limit_holds_under_contention(self, funded_card, fleet, purchase):
        _, card = funded_card
        await fleet.rule(card, PeriodType.DAILY, limit_cents=30_000)

        results = await asyncio.gather(*(purchase("10000") for _ in range(8)))

        assert sum(isinstance(r, Approved) for r in results) == 3
        [bucket] = await fleet.buckets(card)
        assert bucket.spent_cents == 30_000

    async def test_same_key_debits_once(self, funded_card, fleet, purchase):
        org, card = funded_card

        results = await asyncio.gather(*(purchase("2500", key="retry-storm") for _ in range(5)))

        assert sum(isinstance(r, Approved) for r in results) == 1
        assert sum(isinstance(r, Duplicate) for r in results) == 4
        assert await fleet.balance(org) == 5_000_000 - 2_500
        assert len(await fleet.transactions(card)) == 1
        assert len(await fleet.events()) == 1

    async def test_independent_organizations(self, fleet, purchase):
        await fleet.station()
        for i in range(4):
            org = await fleet.organization(balance_cents=10_000)
            await fleet.card(org, card_number=f"400000000000000{i}")

        results = await asyncio.gather(
            *(purchase("10000", card_number=f"400000000000000{i}") for i in range(4))
        )

        assert all(isinstance(r, Approved) for r in results)
