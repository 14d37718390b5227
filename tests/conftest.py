"""
Test fixtures for the fuel card authorization test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh file-backed SQLite database per test
  - fleet: Builds organizations, accounts, cards, rules and stations, and
           reads back balances, buckets and transactions
  - make_event: Builds an IncomingTransaction with sensible defaults
  - purchase: Runs one delivery through the webhook service
  - client: Async HTTP test client with the test database injected

Key design decisions:
  - The database is a real file in tmp_path, not in-memory SQLite. Every
    session gets its own connection, and BEGIN IMMEDIATE serializes them
    exactly as it does in a running service, so concurrency tests exercise
    real lock waits.
  - Every fleet helper runs in its own short transaction and commits.
    Holding a session open across a call to the service would hold the
    SQLite write lock and stall the service until the lock timeout.
  - The station cache is disabled; its behaviour is covered separately
    with a fake Redis client.
"""

import os

os.environ.setdefault("CARD_HASH_KEY", "test-card-hash-key")
os.environ.pop("REDIS_URL", None)
os.environ["ALLOW_LAST4_FALLBACK"] = "false"
os.environ["AUTO_CREATE_STATIONS"] = "false"

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from fuelauth.database import Base, configure_locking, get_session_factory
from fuelauth.main import app
from fuelauth.models import (
    Card,
    CardLimitRule,
    CardUsageBucket,
    FuelTransaction,
    Organization,
    OrgAccount,
    Station,
    WebhookEvent,
    WindowMode,
)
from fuelauth.schemas.webhook import IncomingTransaction
from fuelauth.security import hash_card_number, last4
from fuelauth.services import webhook_service
from fuelauth.services.station_service import StationCache


CARD_NUMBER = "4111111111111111"
STATION_CODE = "STN-001"
PURCHASE_TIME = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh file-backed engine with all tables for each test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fuelauth.db'}",
        poolclass=NullPool,
    )
    configure_locking(engine, lock_timeout_seconds=30)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def no_cache():
    """A station cache with no Redis behind it."""
    return StationCache(None, ttl_seconds=60)


class Fleet:
    """Builds and inspects test data, one committed transaction per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, *objects):
        async with self.session_factory() as db:
            async with db.begin():
                db.add_all(objects)
        return objects[0]

    async def organization(self, balance_cents=0, currency="USD", status="active"):
        org = Organization(name="Acme Haulage", currency=currency, status=status)
        org.account = OrgAccount(available_cents=balance_cents)
        return await self._add(org)

    async def card(self, org, card_number=CARD_NUMBER, status="active"):
        return await self._add(
            Card(
                organization_id=org.id,
                card_number_hash=hash_card_number(card_number),
                last4=last4(card_number),
                status=status,
            )
        )

    async def rule(self, card, period_type, limit_cents, window_mode=WindowMode.CALENDAR, **params):
        return await self._add(
            CardLimitRule(
                card_id=card.id,
                period_type=period_type,
                limit_cents=limit_cents,
                window_mode=window_mode,
                **params,
            )
        )

    async def station(self, code=STATION_CODE):
        return await self._add(Station(code=code, name=f"Station {code}"))

    async def _all(self, query):
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(query)
                return list(result.scalars().all())

    async def balance(self, org):
        rows = await self._all(
            select(OrgAccount.available_cents).where(OrgAccount.organization_id == org.id)
        )
        return rows[0]

    async def account(self, org):
        rows = await self._all(select(OrgAccount).where(OrgAccount.organization_id == org.id))
        return rows[0]

    async def transactions(self, card=None, status=None):
        query = select(FuelTransaction).order_by(FuelTransaction.created_at)
        if card is not None:
            query = query.where(FuelTransaction.card_id == card.id)
        if status is not None:
            query = query.where(FuelTransaction.status == status)
        return await self._all(query)

    async def buckets(self, card):
        return await self._all(
            select(CardUsageBucket)
            .where(CardUsageBucket.card_id == card.id)
            .order_by(CardUsageBucket.window_start)
        )

    async def events(self):
        return await self._all(select(WebhookEvent).order_by(WebhookEvent.received_at))

    async def stations(self):
        return await self._all(select(Station))


@pytest.fixture
def fleet(session_factory):
    return Fleet(session_factory)


@pytest.fixture
def make_event():
    """Build an IncomingTransaction; keyword arguments override the defaults."""

    def _make(**overrides):
        fields = {
            "station_code": STATION_CODE,
            "card_number": CARD_NUMBER,
            "amount_cents": "10000",
            "currency": "USD",
            "occurred_at": PURCHASE_TIME,
            "external_ref": None,
        }
        fields.update(overrides)
        return IncomingTransaction(**fields)

    return _make


@pytest.fixture
def purchase(session_factory, no_cache, make_event):
    """Deliver one purchase through the webhook service and return its outcome."""

    async def _purchase(amount_cents="10000", key=None, auto_create_stations=False, **overrides):
        return await webhook_service.process_incoming(
            make_event(amount_cents=amount_cents, **overrides),
            idempotency_key=key,
            session_factory=session_factory,
            cache=no_cache,
            auto_create_stations=auto_create_stations,
        )

    return _purchase


@pytest_asyncio.fixture
async def funded_card(fleet):
    """
    An active card on an organization holding $50,000.00, with a station.

    Returns (organization, card).
    """
    org = await fleet.organization(balance_cents=5_000_000)
    card = await fleet.card(org)
    await fleet.station()
    return org, card


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    Overrides the session factory dependency so the webhook endpoint opens
    its units of work against the per-test database.
    """

    async def override_get_session_factory():
        return session_factory

    app.dependency_overrides[get_session_factory] = override_get_session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


