"""
Card number handling: keyed hashing and masking.

Stations send the full card number (PAN) with every purchase. The engine
never stores it. Before any lookup the PAN is reduced to:

  1. A keyed hash — HMAC-SHA256 with CARD_HASH_KEY. Cards are indexed by
     this value. A plain SHA-256 of a 16-digit PAN can be brute-forced
     offline in minutes; keying the hash means a stolen database alone is
     not enough to recover card numbers.
  2. The last four digits — for display and, in demo setups only, for the
     last-4 fallback lookup.

Enterprise note:
  In production the HMAC key belongs in a secrets manager or HSM. Rotating
  it requires rehashing every card, so it is versioned by the "hmac-sha256:"
  prefix stored with each hash.
"""

import re

from cryptography.hazmat.primitives import hashes, hmac

from fuelauth.config import settings


_NON_DIGITS = re.compile(r"\D")
HASH_PREFIX = "hmac-sha256:"


def normalize_card_number(card_number: str) -> str:
    """Strip spaces, dashes and any other non-digit characters."""
    return _NON_DIGITS.sub("", card_number)


def hash_card_number(card_number: str, key: str | None = None) -> str:
    """
    Hash a card number for lookup and storage.

    Args:
        card_number: The PAN as received (formatting characters are ignored).
        key: HMAC key; defaults to settings.CARD_HASH_KEY.

    Returns:
        "hmac-sha256:<hex digest>"
    """
    mac = hmac.HMAC((key or settings.CARD_HASH_KEY).encode(), hashes.SHA256())
    mac.update(normalize_card_number(card_number).encode())
    return HASH_PREFIX + mac.finalize().hex()


def last4(card_number: str) -> str:
    """Return the last four digits of a card number."""
    return normalize_card_number(card_number)[-4:]


def mask_card_number(card_number: str) -> str:
    """Mask everything but the last four digits ("************4242")."""
    digits = normalize_card_number(card_number)
    return "*" * max(len(digits) - 4, 0) + digits[-4:]
