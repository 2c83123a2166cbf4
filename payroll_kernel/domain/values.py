"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides Currency and Money, the only types through which salary,
    contribution, tax, and allowance amounts flow.  These replace raw
    Decimal wherever a currency amount appears in engine or run logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by configuration, engines, and runs.  No outward dependencies
    except payroll_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Amounts are Decimal, never float.  Float inputs are rejected outright
      because their binary representation is already inexact.
    - Currency codes are validated against the ISO 4217 registry.
    - Rounding is always explicit: Money never rounds itself, callers pick
      the increment and the mode.

Failure modes:
    - ValueError on construction with invalid amounts or currencies.
    - TypeError when a float is supplied.
    - ValueError when arithmetic mixes different currencies.

Audit relevance:
    A payslip total is only defensible if every intermediate amount kept its
    currency and every rounding step is reproducible.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering

from payroll_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True, slots=True)
class Currency:
    """ISO 4217 code, uppercased on construction; unknown codes raise ValueError."""

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_unit(self) -> Decimal:
        """Smallest payable amount (1 XOF, 0.01 EUR)."""
        info = CurrencyRegistry.get_info(self.code)
        assert info is not None
        return info.minor_unit

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _scalar(value: object) -> Decimal | None:
    """Coerce a multiplier or divisor to Decimal; None for floats and non-numbers."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    return None


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    A Decimal amount in one currency.

    Sums, differences and comparisons require the same currency on both
    sides; a payroll is computed in the currency of its configuration and
    never converts.  Arithmetic keeps full precision: only ``round()`` and
    ``round_to()`` round, so every rounding step on a payslip is explicit.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise TypeError("Money amount must not be a float")
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if not self.amount.is_finite():
            raise ValueError(f"Money amount must be finite, got {self.amount}")

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(
                f"currency must be Currency or str, got {type(self.currency)}"
            )

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """``Money.of("180000", "XOF")``.  Floats raise TypeError."""
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.amount < Decimal("0")

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's ISO 4217 decimal places."""
        return self.round_to(self.currency.minor_unit, rounding)

    def round_to(self, increment: Decimal, rounding: str = ROUND_HALF_UP) -> Money:
        """
        Round to a multiple of ``increment`` (e.g. 10 FCFA, 1 XOF, 0.01 EUR).

        Preconditions:
            - increment > 0

        Postconditions:
            - Returned amount is an exact multiple of increment.
            - Original Money is unchanged (immutable).

        Raises:
            ValueError: If increment is not strictly positive.
        """
        if increment <= 0:
            raise ValueError(f"Rounding increment must be positive, got {increment}")
        units = (self.amount / increment).quantize(Decimal("1"), rounding=rounding)
        rounded = units * increment
        # Keep the representation at currency precision for stable serialization
        places = self.currency.decimal_places
        quantum = Decimal(1).scaleb(-places)
        return Money(amount=rounded.quantize(quantum), currency=self.currency)

    def _check_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        factor = _scalar(factor)
        if factor is None:
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        divisor = _scalar(divisor)
        if divisor is None:
            return NotImplemented
        return Money(amount=self.amount / divisor, currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


def sum_money(amounts: list[Money] | tuple[Money, ...], currency: Currency) -> Money:
    """Sum Money values, returning zero in ``currency`` for an empty sequence."""
    total = Money.zero(currency)
    for amount in amounts:
        total = total + amount
    return total
