"""
Transaction service — authorizes a fuel purchase in one unit of work.

THIS IS THE CORE OF THE ENGINE. authorize() runs inside a transaction
opened by the caller (webhook_service) and either:

  - APPROVES: increments every usage bucket, debits the organization's
    account, and inserts an `approved` FuelTransaction, or
  - REJECTS: changes no balance and no bucket, and inserts exactly one
    `rejected` FuelTransaction carrying the decline code, or
  - answers BAD_REQUEST: the event could not be tied to a card and an
    organization (or its amount/currency is wrong); nothing is written.

Order of checks:
  1. Parse the amount; resolve the card by PAN hash
  2. Load the organization; verify the currency
  3. Lock the organization account (before any limit check)
  4. Card blocked / organization suspended
  5. Limit rules (all of them, first failure wins)
  6. Balance
  7. Apply: buckets, debit, approved transaction

Lock ordering:
  The account row is always locked before any usage bucket. Every code
  path touching both takes them in that order, so two purchases can never
  hold one lock each while waiting for the other.

Anything unexpected (lost connection, lock timeout, misconfigured rule)
propagates to the caller, which rolls the unit of work back.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fuelauth.config import settings
from fuelauth.exceptions import BadRequestError, TransactionRejectedError
from fuelauth.models.card import Card
from fuelauth.models.fuel_transaction import FuelTransaction
from fuelauth.models.organization import Organization
from fuelauth.money import Money
from fuelauth.results import Approved, BadRequest, DeclineCode, Rejected
from fuelauth.schemas.webhook import IncomingTransaction
from fuelauth.security import hash_card_number, last4
from fuelauth.services import ledger_service, limit_service, usage_service
from fuelauth.services.ledger_service import DebitResult
from fuelauth.services.limit_service import LimitFail
from fuelauth.windows import as_utc


logger = logging.getLogger(__name__)


async def resolve_card(
    db: AsyncSession,
    card_number: str,
    allow_last4_fallback: bool | None = None,
) -> Card:
    """
    Find the card for a raw PAN.

    The PAN hash is authoritative. The last-4 fallback is a demo shortcut:
    it is only tried when the hash matches nothing, only when enabled, and
    only accepted when exactly one card has those last four digits.

    Raises:
        BadRequestError(CARD_NOT_FOUND): If no single card matches.
    """
    if allow_last4_fallback is None:
        allow_last4_fallback = settings.ALLOW_LAST4_FALLBACK

    result = await db.execute(
        select(Card).where(Card.card_number_hash == hash_card_number(card_number))
    )
    cards = list(result.scalars().all())

    if not cards and allow_last4_fallback:
        result = await db.execute(select(Card).where(Card.last4 == last4(card_number)))
        cards = list(result.scalars().all())
        if len(cards) == 1:
            logger.warning("Card %s resolved by last-4 fallback", cards[0].id)

    if len(cards) != 1:
        raise BadRequestError("Card not found", code=DeclineCode.CARD_NOT_FOUND.value)
    return cards[0]


async def _get_organization(db: AsyncSession, organization_id: uuid.UUID) -> Organization:
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise BadRequestError(
            f"Organization {organization_id} not found",
            code=DeclineCode.ORGANIZATION_NOT_FOUND.value,
        )
    return organization


def _check_standing(card: Card, organization: Organization) -> None:
    if card.status == "blocked":
        raise TransactionRejectedError("Card is blocked", code=DeclineCode.CARD_BLOCKED.value)
    if organization.status == "suspended":
        raise TransactionRejectedError(
            "Organization is suspended",
            code=DeclineCode.ORGANIZATION_SUSPENDED.value,
        )


def _limit_rejection(fail: LimitFail) -> TransactionRejectedError:
    period = fail.period_type.value
    return TransactionRejectedError(
        f"{period.capitalize()} limit of {fail.limit} exceeded "
        f"({fail.current_spend} already spent)",
        code=DeclineCode.limit_exceeded(fail.period_type).value,
        meta={
            "rule_id": str(fail.rule_id),
            "period_type": period,
            "limit_cents": fail.limit.cents,
            "spent_cents": fail.current_spend.cents,
            "window_start": fail.window.start.isoformat(),
            "window_end": fail.window.end.isoformat(),
        },
    )


async def _record_transaction(
    db: AsyncSession,
    *,
    transaction_id: uuid.UUID,
    card: Card,
    organization: Organization,
    station_id: uuid.UUID | None,
    incoming: IncomingTransaction,
    amount: Money,
    occurred_at: datetime,
    status: str,
    decline_reason: str | None = None,
    meta: dict | None = None,
) -> FuelTransaction:
    txn = FuelTransaction(
        id=transaction_id,
        occurred_at=occurred_at,
        card_id=card.id,
        organization_id=organization.id,
        station_id=station_id,
        external_ref=incoming.external_ref,
        amount_cents=amount.cents,
        currency=incoming.currency,
        status=status,
        decline_reason=decline_reason,
        meta=meta or {},
    )
    db.add(txn)
    await db.flush()
    return txn


async def authorize(
    db: AsyncSession,
    incoming: IncomingTransaction,
    station_id: uuid.UUID | None = None,
) -> Approved | Rejected | BadRequest:
    """
    Authorize one fuel purchase.

    Must be called inside an open transaction; the caller commits on return
    and rolls back if this raises.

    Args:
        db: Database session with an open transaction.
        incoming: The purchase as reported by the station.
        station_id: Resolved station, recorded on the transaction.

    Returns:
        Approved, Rejected or BadRequest. Validation and business outcomes
        are always returned, never raised.
    """
    # --- Steps 1-3: identify card and organization, take the account lock ---
    try:
        amount = Money.parse(incoming.amount_cents)
        card = await resolve_card(db, incoming.card_number)
        organization = await _get_organization(db, card.organization_id)
        if organization.currency.upper() != incoming.currency:
            raise BadRequestError(
                f"Currency {incoming.currency} does not match account currency "
                f"{organization.currency}",
                code=DeclineCode.CURRENCY_MISMATCH.value,
            )
        await ledger_service.lock_account(db, organization.id)
    except BadRequestError as exc:
        logger.info("Bad request from station %s: %s", station_id, exc.code)
        return BadRequest(DeclineCode(exc.code), exc.detail)

    occurred_at = as_utc(incoming.occurred_at)
    transaction_id = uuid.uuid4()

    # --- Steps 4-6: business checks, nothing mutated until all pass ---
    try:
        _check_standing(card, organization)

        limits = await limit_service.evaluate(db, card.id, amount, occurred_at)
        if isinstance(limits, LimitFail):
            raise _limit_rejection(limits)

        debited = await ledger_service.debit(db, organization.id, amount, transaction_id)
        if debited == DebitResult.INSUFFICIENT_FUNDS:
            raise TransactionRejectedError(
                "Insufficient funds",
                code=DeclineCode.INSUFFICIENT_FUNDS.value,
            )
    except TransactionRejectedError as exc:
        await _record_transaction(
            db,
            transaction_id=transaction_id,
            card=card,
            organization=organization,
            station_id=station_id,
            incoming=incoming,
            amount=amount,
            occurred_at=occurred_at,
            status="rejected",
            decline_reason=exc.code,
            meta=exc.meta,
        )
        logger.info(
            "Rejected %s for card %s (org %s): %s",
            amount, card.id, organization.id, exc.code,
        )
        return Rejected(DeclineCode(exc.code), exc.detail, transaction_id)

    # --- Step 7: apply ---
    for bucket in limits.buckets:
        await usage_service.increment(db, bucket, amount)

    await _record_transaction(
        db,
        transaction_id=transaction_id,
        card=card,
        organization=organization,
        station_id=station_id,
        incoming=incoming,
        amount=amount,
        occurred_at=occurred_at,
        status="approved",
    )
    logger.info(
        "Approved %s for card %s (org %s) as %s",
        amount, card.id, organization.id, transaction_id,
    )
    return Approved(transaction_id)


async def get_transactions(
    db: AsyncSession,
    card_id: uuid.UUID | None = None,
    organization_id: uuid.UUID | None = None,
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[FuelTransaction]:
    """
    List fuel transactions, newest first, with optional filters.

    Args:
        db: Database session.
        card_id: Only this card's transactions.
        organization_id: Only this organization's transactions.
        status_filter: "approved", "rejected" or "pending".
        limit: Max number of results (default 50).
        offset: Number of results to skip (for pagination).
    """
    query = (
        select(FuelTransaction)
        .order_by(FuelTransaction.occurred_at.desc(), FuelTransaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if card_id is not None:
        query = query.where(FuelTransaction.card_id == card_id)
    if organization_id is not None:
        query = query.where(FuelTransaction.organization_id == organization_id)
    if status_filter:
        query = query.where(FuelTransaction.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())
