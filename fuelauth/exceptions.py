"""
Custom exception classes for the authorization engine.

Why custom exceptions?
  Deep inside the engine (card lookup, limit evaluation, amount parsing) it
  is simplest to stop processing by raising. These exceptions carry the
  machine-readable decline code along with a human-readable message, and
  the authorization boundary converts them into typed results
  (see fuelauth.results). They never leave transaction_service.authorize().

Exception hierarchy:
    FuelAuthError (base)
    ├── BadRequestError           — input cannot be authorized as sent
    │   ├── InvalidAmountError    — amount is not a positive integer string
    │   └── AccountNotFoundError  — organization has no account row
    ├── TransactionRejectedError  — business rule declined the purchase
    └── InvalidLimitRuleError     — a limit rule is misconfigured
"""

import uuid


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class FuelAuthError(Exception):
    """Base exception for all engine errors."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, detail: str = "An error occurred", code: str | None = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Validation exceptions
# ---------------------------------------------------------------------------

class BadRequestError(FuelAuthError):
    """Raised when an event cannot be authorized until the caller fixes it."""


class InvalidAmountError(BadRequestError):
    """Raised when an amount is not a positive integer of minor units."""

    code = "INVALID_AMOUNT"

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Invalid amount: {raw!r} is not a positive integer of minor units")


class AccountNotFoundError(BadRequestError):
    """Raised when an organization has no account row."""

    code = "ORGANIZATION_NOT_FOUND"

    def __init__(self, organization_id: uuid.UUID):
        self.organization_id = organization_id
        super().__init__(f"Organization {organization_id} has no account")


# ---------------------------------------------------------------------------
# Business exceptions
# ---------------------------------------------------------------------------

class TransactionRejectedError(FuelAuthError):
    """
    Raised when a business rule declines the purchase.

    Unlike BadRequestError, a rejection is recorded as a `rejected`
    FuelTransaction before the unit of work commits.

    Attributes:
        meta: Details stored on the rejected transaction (e.g., the limit
              rule and window that blocked it).
    """

    def __init__(self, detail: str, code: str, meta: dict | None = None):
        self.meta = meta or {}
        super().__init__(detail, code=code)


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class InvalidLimitRuleError(FuelAuthError):
    """
    Raised when a limit rule's window parameters cannot produce a window.

    Not converted into a decline: a misconfigured rule fails the whole
    authorization as an internal error, so it blocks purchases rather
    than silently stopping to limit them.
    """
