"""
Authorization outcomes.

Every webhook delivery ends in exactly one of four outcomes:

    Approved(transaction_id)   — the purchase was debited
    Rejected(code, message)    — a business rule declined it (recorded)
    BadRequest(code, message)  — it could not be authorized as sent
    Duplicate()                — an earlier delivery was already approved

The union is closed: callers dispatch on the concrete type (or the `kind`
tag) and the HTTP adapter maps each variant to a response.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import ClassVar

from fuelauth.models.limit_rule import PeriodType


class DeclineCode(str, enum.Enum):
    """Machine-readable codes carried by Rejected and BadRequest."""

    # Validation (BadRequest)
    CARD_NOT_FOUND = "CARD_NOT_FOUND"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    STATION_INVALID = "STATION_INVALID"

    # Business (Rejected)
    CARD_BLOCKED = "CARD_BLOCKED"
    ORGANIZATION_SUSPENDED = "ORGANIZATION_SUSPENDED"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    WEEKLY_LIMIT_EXCEEDED = "WEEKLY_LIMIT_EXCEEDED"
    MONTHLY_LIMIT_EXCEEDED = "MONTHLY_LIMIT_EXCEEDED"
    CUSTOM_LIMIT_EXCEEDED = "CUSTOM_LIMIT_EXCEEDED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    # Infrastructure (BadRequest, retryable)
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @classmethod
    def limit_exceeded(cls, period_type: PeriodType) -> "DeclineCode":
        return cls(f"{PeriodType(period_type).value}_LIMIT_EXCEEDED")


@dataclass(frozen=True)
class Approved:
    kind: ClassVar[str] = "APPROVED"
    transaction_id: uuid.UUID


@dataclass(frozen=True)
class Rejected:
    kind: ClassVar[str] = "REJECTED"
    code: DeclineCode
    message: str
    transaction_id: uuid.UUID | None = None


@dataclass(frozen=True)
class BadRequest:
    kind: ClassVar[str] = "BAD_REQUEST"
    code: DeclineCode
    message: str


@dataclass(frozen=True)
class Duplicate:
    kind: ClassVar[str] = "DUPLICATE"


AuthorizationResult = Approved | Rejected | BadRequest | Duplicate
