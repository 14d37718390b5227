#!/usr/bin/env python3
"""
Demo seed script — populates the database with a small fleet for demos.

!! NOT FOR PRODUCTION !!
This script creates a demo organization with a known card number. It is
intended ONLY for local demos.

Seeded data:
    Organization  Acme Co (USD), balance $50,000.00
    Card          4242 4242 4242 4242, DAILY limit $2,000.00
    Station       STN-001

Usage:
    # Create tables (if needed) and seed:
    python demo/seed.py

    # Delete the SQLite database file:
    python demo/seed.py --reset

    # After seeding, replay sample webhooks against a running API:
    python demo/seed.py --send --base-url http://localhost:8000
"""

import argparse
import asyncio
import os
import uuid
from datetime import datetime, timezone

import httpx
from sqlalchemy import select

from fuelauth.config import settings
from fuelauth.database import AsyncSessionLocal, Base, engine, ensure_sqlite_directory
from fuelauth.models import Card, CardLimitRule, Organization, OrgAccount, PeriodType, Station, WindowMode
from fuelauth.security import hash_card_number, last4

BASE_URL = "http://localhost:8000"

DEMO_CARD_NUMBER = "4242424242424242"
DEMO_STATION_CODE = "STN-001"


def log(msg: str) -> None:
    print(f"  + {msg}")


def cents_to_dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

async def seed() -> None:
    """Create the demo organization, card, rule and station (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        async with db.begin():
            existing = await db.execute(select(Station).where(Station.code == DEMO_STATION_CODE))
            if existing.scalar_one_or_none() is not None:
                print("\n  Demo data already present; use --reset to start over.\n")
                return

            print("\nSeeding demo fleet...")
            org = Organization(name="Acme Co", currency="USD")
            org.account = OrgAccount(available_cents=5_000_000)
            db.add(org)
            await db.flush()
            log(f"Organization {org.name}: {cents_to_dollars(org.account.available_cents)}")

            card = Card(
                organization_id=org.id,
                card_number_hash=hash_card_number(DEMO_CARD_NUMBER),
                last4=last4(DEMO_CARD_NUMBER),
            )
            db.add(card)
            await db.flush()
            log(f"Card ending {card.last4}")

            db.add(
                CardLimitRule(
                    card_id=card.id,
                    period_type=PeriodType.DAILY,
                    limit_cents=200_000,
                    window_mode=WindowMode.CALENDAR,
                )
            )
            log(f"DAILY limit {cents_to_dollars(200_000)}")

            db.add(Station(code=DEMO_STATION_CODE, name="Fuel Station #1"))
            log(f"Station {DEMO_STATION_CODE}")


# ---------------------------------------------------------------------------
# Sample webhooks
# ---------------------------------------------------------------------------

async def send_samples(base_url: str) -> None:
    """
    Replay a short story against the running API:
    an approval, its duplicate, and a purchase over the daily limit.
    """
    now = datetime.now(timezone.utc).isoformat()
    key = f"demo-{uuid.uuid4()}"

    def event(amount_cents: int) -> dict:
        return {
            "stationCode": DEMO_STATION_CODE,
            "cardNumber": DEMO_CARD_NUMBER,
            "amountCents": str(amount_cents),
            "currency": "USD",
            "occurredAt": now,
        }

    samples = [
        ("$1,000.00 purchase", event(100_000), key),
        ("same delivery again", event(100_000), key),
        ("$1,500.00 purchase", event(150_000), None),
    ]

    print(f"\nSending sample webhooks to {base_url}...")
    async with httpx.AsyncClient(base_url=base_url, timeout=10) as client:
        for label, body, idempotency_key in samples:
            headers = {"X-Idempotency-Key": idempotency_key} if idempotency_key else {}
            response = await client.post("/webhooks/transactions", json=body, headers=headers)
            result = response.json()
            log(f"{label}: {response.status_code} {result['status']} {result.get('code') or ''}")


def reset_database() -> None:
    """Delete the SQLite database file."""
    prefix = "sqlite+aiosqlite:///"
    if not settings.DATABASE_URL.startswith(prefix):
        print("\n  --reset only supports SQLite databases\n")
        return

    db_path = os.path.normpath(settings.DATABASE_URL[len(prefix):])
    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates a sample organization, card, limit rule and station.",
    )
    parser.add_argument(
        "--base-url", default=BASE_URL,
        help=f"Base URL of the running API for --send (default: {BASE_URL})",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the SQLite database file and exit",
    )
    parser.add_argument(
        "--send", action="store_true",
        help="After seeding, post sample webhooks to the running API",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    ensure_sqlite_directory(settings.DATABASE_URL)
    try:
        await seed()
    finally:
        await engine.dispose()
    if args.send:
        await send_samples(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
