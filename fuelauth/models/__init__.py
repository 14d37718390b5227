"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from fuelauth.models directly
"""

from fuelauth.models.organization import Organization, OrgAccount  # noqa: F401
from fuelauth.models.card import Card  # noqa: F401
from fuelauth.models.limit_rule import CardLimitRule, PeriodType, WindowMode  # noqa: F401
from fuelauth.models.usage_bucket import CardUsageBucket  # noqa: F401
from fuelauth.models.station import Station  # noqa: F401
from fuelauth.models.fuel_transaction import FuelTransaction  # noqa: F401
from fuelauth.models.webhook_event import WebhookEvent  # noqa: F401
from fuelauth.models.ledger_entry import AccountLedgerEntry  # noqa: F401
