"""
Pydantic schemas for the station webhook.

Stations post camelCase JSON (`stationCode`, `amountCents`, ...); the
snake_case field names are accepted as well so that internal callers and
tests can build events naturally.

`amount_cents` stays a string here. Stations send it as a decimal digit
string, and parsing it into Money is the engine's job so that a malformed
amount is answered with BAD_REQUEST(INVALID_AMOUNT) and recorded on the
webhook event, rather than being bounced before the idempotency check.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fuelauth.security import mask_card_number


class IncomingTransaction(BaseModel):
    """Fuel purchase as reported by a station."""

    model_config = ConfigDict(populate_by_name=True)

    station_code: str = Field(alias="stationCode", min_length=1, max_length=64)
    card_number: str = Field(
        alias="cardNumber",
        min_length=8,
        max_length=32,
        description="Raw PAN; hashed before lookup and never stored",
    )
    amount_cents: str | int = Field(
        alias="amountCents",
        description="Amount in minor units as a digit string (e.g., \"10000\")",
    )
    currency: str = Field(min_length=3, max_length=3)
    occurred_at: datetime = Field(alias="occurredAt")
    external_ref: str | None = Field(None, alias="externalRef", max_length=255)

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, value: str) -> str:
        return value.upper()

    def scrubbed_payload(self) -> dict:
        """The payload as stored on the webhook event: card number masked."""
        data = self.model_dump(mode="json", by_alias=True)
        data["cardNumber"] = mask_card_number(self.card_number)
        return data


class WebhookResponse(BaseModel):
    """Response body returned to the station."""
    status: str
    transaction_id: uuid.UUID | None = None
    code: str | None = None
    message: str | None = None
