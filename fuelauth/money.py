"""
Money — a fixed-point amount in integer minor units.

Why integer minor units?
  Floating-point numbers introduce rounding errors in financial
  calculations (0.1 + 0.2 != 0.3 in IEEE 754). Every amount in the engine
  is an integer count of the currency's smallest unit:
    - $10.99 is 1099 — no ambiguity
    - All arithmetic is exact
    - Display formatting divides by 100 at the edges, never in the engine

Money deliberately carries no currency. Currency is checked once, at the
organization boundary, and every amount inside a single authorization is
in the organization's currency.
"""

from dataclasses import dataclass

from fuelauth.exceptions import InvalidAmountError


# Largest amount a BIGINT column holds
MAX_CENTS = 2**63 - 1


@dataclass(frozen=True, order=True)
class Money:
    cents: int

    def __post_init__(self):
        # bool is an int subclass; reject it along with floats/Decimals
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money requires integer minor units, got {type(self.cents).__name__}")

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def parse(cls, raw: str | int) -> "Money":
        """
        Parse a positive amount of minor units from the wire format.

        Stations send `amountCents` as a decimal digit string ("10000").
        Signs, whitespace, decimal points and exponents are all rejected.

        Raises:
            InvalidAmountError: If the value is not a positive integer that
                fits in a BIGINT column.
        """
        if isinstance(raw, bool):
            raise InvalidAmountError(raw)
        if isinstance(raw, int):
            value = raw
        elif isinstance(raw, str) and raw.isascii() and raw.isdigit():
            value = int(raw)
        else:
            raise InvalidAmountError(raw)

        if not 0 < value <= MAX_CENTS:
            raise InvalidAmountError(raw)
        return cls(value)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents - other.cents)

    def is_negative(self) -> bool:
        return self.cents < 0

    def __str__(self) -> str:
        sign = "-" if self.cents < 0 else ""
        whole, minor = divmod(abs(self.cents), 100)
        return f"{sign}{whole:,}.{minor:02d}"
