"""
Webhooks router — station purchase notifications.

Endpoints:
  POST /webhooks/transactions — Authorize one fuel purchase

The idempotency key travels out of band in the X-Idempotency-Key header so
that the same purchase body can be retried verbatim.

Status codes:
  200 — APPROVED, or DUPLICATE of an already approved delivery
  422 — REJECTED by a business rule (recorded, retry after fixing the cause)
  400 — BAD_REQUEST: the event cannot be authorized as sent
  503 — LOCK_TIMEOUT or INTERNAL_ERROR: nothing was applied, safe to retry
"""

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fuelauth.database import get_session_factory
from fuelauth.results import (
    Approved,
    AuthorizationResult,
    BadRequest,
    DeclineCode,
    Duplicate,
    Rejected,
)
from fuelauth.schemas.webhook import IncomingTransaction, WebhookResponse
from fuelauth.services import webhook_service

router = APIRouter()

_RETRYABLE = {DeclineCode.LOCK_TIMEOUT, DeclineCode.INTERNAL_ERROR}


def to_response(result: AuthorizationResult) -> JSONResponse:
    """Map an authorization outcome to its HTTP status and body."""
    if isinstance(result, Approved):
        status_code = 200
        body = WebhookResponse(status=result.kind, transaction_id=result.transaction_id)
    elif isinstance(result, Duplicate):
        status_code = 200
        body = WebhookResponse(status=result.kind)
    elif isinstance(result, Rejected):
        status_code = 422  # Unprocessable Entity: valid event, declined by business rules
        body = WebhookResponse(
            status=result.kind,
            transaction_id=result.transaction_id,
            code=result.code.value,
            message=result.message,
        )
    elif isinstance(result, BadRequest):
        status_code = 503 if result.code in _RETRYABLE else 400
        body = WebhookResponse(status=result.kind, code=result.code.value, message=result.message)
    else:
        raise TypeError(f"Unknown authorization result {result!r}")

    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/transactions",
    response_model=WebhookResponse,
    summary="Authorize a fuel purchase reported by a station",
    responses={
        400: {"model": WebhookResponse},
        422: {"model": WebhookResponse},
        503: {"model": WebhookResponse},
    },
)
async def receive_transaction(
    event: IncomingTransaction,
    idempotency_key: str | None = Header(None, alias="X-Idempotency-Key"),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Authorize a fuel purchase.

    Deliveries carrying the same **X-Idempotency-Key** from the same station
    are processed at most once: after an approval, repeats answer DUPLICATE
    without debiting again. Declined deliveries may be retried with the
    same key.

    Amounts are in **integer minor units** as a digit string
    (e.g., `"10000"` for 100.00).
    """
    result = await webhook_service.process_incoming(
        event,
        idempotency_key=idempotency_key,
        session_factory=session_factory,
    )
    return to_response(result)
