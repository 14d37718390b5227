"""
Webhook service — idempotent intake of station purchase events.

process_incoming() is the entry point for one delivery. It runs up to
three short units of work, each in its own session:

  1. Claim: resolve the station, then find or create the WebhookEvent for
     (station, idempotency key) and commit it as `received`. A delivery
     whose event is already `processed` stops here with DUPLICATE.
  2. Authorize: re-read the event under lock (a concurrent delivery of the
     same key may have finished in the meantime), run
     transaction_service.authorize(), and record the outcome on the event
     in the same transaction as the debit. An approval and its `processed`
     mark commit together or not at all.
  3. Only after an unexpected failure in (2): that unit of work has been
     rolled back, so the event is marked `failed` in a fresh one.

Idempotency rules:
  - processed  → DUPLICATE, nothing re-executed, no new transaction
  - failed     → retried; the new outcome overwrites the old one
  - received   → retried (a previous attempt crashed before finishing)
  - no key     → never deduplicated; every delivery is a new event

Error handling:
  Nothing but a typed result leaves this module. Unexpected exceptions are
  logged with their traceback and reported as BAD_REQUEST(INTERNAL_ERROR)
  or BAD_REQUEST(LOCK_TIMEOUT), with a generic message that exposes no
  internal detail. The event stays retryable in both cases.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fuelauth.config import settings
from fuelauth.database import AsyncSessionLocal
from fuelauth.models.webhook_event import WebhookEvent
from fuelauth.results import (
    Approved,
    AuthorizationResult,
    BadRequest,
    DeclineCode,
    Duplicate,
    Rejected,
)
from fuelauth.schemas.webhook import IncomingTransaction
from fuelauth.services import station_service, transaction_service
from fuelauth.services.station_service import StationCache


logger = logging.getLogger(__name__)

# SQLSTATE for "lock_not_available" (PostgreSQL lock_timeout)
_PG_LOCK_NOT_AVAILABLE = "55P03"

_FAILURE_MESSAGES = {
    DeclineCode.LOCK_TIMEOUT: "The account is busy; retry the delivery",
    DeclineCode.INTERNAL_ERROR: "The transaction could not be processed; retry the delivery",
}


def _is_lock_timeout(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "lock timeout" in message


def _failure(exc: BaseException) -> BadRequest:
    code = DeclineCode.LOCK_TIMEOUT if _is_lock_timeout(exc) else DeclineCode.INTERNAL_ERROR
    return BadRequest(code, _FAILURE_MESSAGES[code])


async def _find_event(
    db: AsyncSession,
    station_id: uuid.UUID,
    idempotency_key: str,
) -> WebhookEvent | None:
    result = await db.execute(
        select(WebhookEvent).where(
            WebhookEvent.station_id == station_id,
            WebhookEvent.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def _claim_event(
    session_factory: async_sessionmaker[AsyncSession],
    payload: IncomingTransaction,
    idempotency_key: str | None,
    cache: StationCache | None,
    auto_create_stations: bool,
) -> uuid.UUID | Duplicate | BadRequest:
    """Unit of work 1: returns the event id to authorize, or a final outcome."""
    async with session_factory() as db:
        async with db.begin():
            station = await station_service.resolve_station(
                db, payload.station_code, cache=cache, auto_create=auto_create_stations,
            )

            if station is None:
                db.add(
                    WebhookEvent(
                        station_id=None,
                        idempotency_key=idempotency_key,
                        raw_payload=payload.scrubbed_payload(),
                        status="failed",
                        error_message=DeclineCode.STATION_INVALID.value,
                    )
                )
                logger.info("Unknown station code %s", payload.station_code)
                return BadRequest(
                    DeclineCode.STATION_INVALID,
                    f"Unknown station {payload.station_code}",
                )

            if idempotency_key is not None:
                event = await _find_event(db, station.id, idempotency_key)
                if event is None:
                    try:
                        async with db.begin_nested():
                            event = WebhookEvent(
                                station_id=station.id,
                                idempotency_key=idempotency_key,
                                raw_payload=payload.scrubbed_payload(),
                                status="received",
                            )
                            db.add(event)
                    except IntegrityError:
                        # Another delivery of the same key claimed it first
                        event = await _find_event(db, station.id, idempotency_key)
            else:
                event = WebhookEvent(
                    station_id=station.id,
                    idempotency_key=None,
                    raw_payload=payload.scrubbed_payload(),
                    status="received",
                )
                db.add(event)

            if event.status == "processed":
                logger.info(
                    "Duplicate delivery of key %s from station %s",
                    idempotency_key, station.code,
                )
                return Duplicate()

            await db.flush()
            return event.id


def _record_outcome(event: WebhookEvent, result: Approved | Rejected | BadRequest) -> None:
    if isinstance(result, Approved):
        event.status = "processed"
        event.processed_at = datetime.now(timezone.utc)
        event.error_message = None
        event.transaction_id = result.transaction_id
    else:
        event.status = "failed"
        event.error_message = result.code.value
        event.transaction_id = getattr(result, "transaction_id", None)


async def _authorize_event(
    session_factory: async_sessionmaker[AsyncSession],
    event_id: uuid.UUID,
    payload: IncomingTransaction,
) -> AuthorizationResult:
    """Unit of work 2: authorize and record the outcome atomically."""
    async with session_factory() as db:
        async with db.begin():
            event = await db.get(
                WebhookEvent, event_id, with_for_update=True, populate_existing=True,
            )
            if event.status == "processed":
                logger.info("Event %s was processed by a concurrent delivery", event_id)
                return Duplicate()

            result = await transaction_service.authorize(db, payload, event.station_id)
            _record_outcome(event, result)
            return result


async def _mark_failed(
    session_factory: async_sessionmaker[AsyncSession],
    event_id: uuid.UUID,
    code: DeclineCode,
) -> None:
    """Unit of work 3: leave the event retryable after a rolled-back attempt."""
    try:
        async with session_factory() as db:
            async with db.begin():
                event = await db.get(WebhookEvent, event_id, with_for_update=True)
                if event is not None and event.status != "processed":
                    event.status = "failed"
                    event.error_message = code.value
    except Exception:
        # The event stays "received", which a retry with the same key also reclaims
        logger.exception("Could not mark webhook event %s as failed", event_id)


async def process_incoming(
    payload: IncomingTransaction,
    idempotency_key: str | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache: StationCache | None = None,
    auto_create_stations: bool | None = None,
) -> AuthorizationResult:
    """
    Process one station delivery exactly once per (station, idempotency key).

    Args:
        payload: The purchase as reported by the station.
        idempotency_key: Caller-supplied deduplication key (optional).
        session_factory: Session factory (defaults to the application's).
        cache: Station lookup cache (defaults to the module-level cache).
        auto_create_stations: Register unknown station codes
                              (defaults to settings.AUTO_CREATE_STATIONS).

    Returns:
        Approved, Rejected, BadRequest or Duplicate.
    """
    session_factory = session_factory or AsyncSessionLocal
    idempotency_key = idempotency_key or None
    if auto_create_stations is None:
        auto_create_stations = settings.AUTO_CREATE_STATIONS

    try:
        claim = await _claim_event(
            session_factory, payload, idempotency_key, cache, auto_create_stations,
        )
    except Exception as exc:
        logger.exception("Could not record webhook from station %s", payload.station_code)
        return _failure(exc)

    if isinstance(claim, (Duplicate, BadRequest)):
        return claim

    try:
        return await _authorize_event(session_factory, claim, payload)
    except Exception as exc:
        result = _failure(exc)
        logger.exception("Authorization of event %s failed: %s", claim, result.code.value)
        await _mark_failed(session_factory, claim, result.code)
        return result
