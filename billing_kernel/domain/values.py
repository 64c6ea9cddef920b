"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the value types every calculator works in: Currency, Money and
    Percent, plus the single rounding primitive ``round2``. These replace
    binary floats wherever an amount, price or rate appears.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies except
    billing_kernel.domain.currency and billing_kernel.exceptions.

Invariants enforced:
    - Amounts are Decimal, never float. A float at a constructor boundary
      is a TypeError, because it has already lost precision.
    - Rounding is ROUND_HALF_UP to the currency's decimal places (2 for
      INR), and only at output boundaries. Intermediate arithmetic keeps
      full precision.
    - Percent values are within [0, 100].

Failure modes:
    - TypeError when a float (or bool) is passed where an amount is expected
    - ValidationError on unparsable or non-finite numeric text
    - InvalidCurrencyError on unknown currency codes
    - RateOutOfRangeError for percentages outside [0, 100]
    - ValueError when Money arithmetic mixes currencies
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.exceptions import (
    InvalidCurrencyError,
    RateOutOfRangeError,
    ValidationError,
)

DEFAULT_CURRENCY = "INR"

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")

NumberLike = Decimal | int | str


def to_decimal(value: NumberLike, field_name: str = "value") -> Decimal:
    """
    Convert an amount-like value to a finite Decimal.

    Raises:
        TypeError: for floats and bools.
        ValidationError: for unparsable or non-finite text.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"{field_name} must be Decimal, int or str, got {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValidationError(f"{field_name} is not a valid number: {value!r}") from e
    else:
        raise TypeError(
            f"{field_name} must be Decimal, int or str, got {type(value).__name__}"
        )
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number, got {value!r}")
    return result


def round2(value: NumberLike) -> Decimal:
    """
    Round to 2 decimal places, half-up.

    This is the display/persistence boundary. ``round2("2.675")`` is
    ``Decimal("2.68")``; banker's rounding would give 2.67.

    Raises:
        ValidationError: if the value has too many digits to hold to the cent.
    """
    amount = to_decimal(value)
    try:
        return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValidationError(f"Amount is too large to round to the cent: {amount}") from e


def format_amount(value: NumberLike) -> str:
    """Render an amount the way the screens print it (two fixed decimals)."""
    return f"{round2(value):f}"


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Guarantees:
        - code is uppercase, stripped, and known to CurrencyRegistry.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(self.code)
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def quantum(self) -> Decimal:
        return CurrencyRegistry.get_quantum(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency. Single-currency documents
        use the default (INR); mixing currencies in arithmetic is an error.

    Guarantees:
        - Immutable and hashable.
        - amount is always a finite Decimal.
        - No auto-rounding: callers call ``.round()`` at the boundary.
    """

    amount: Decimal
    currency: Currency = field(default_factory=lambda: Currency(DEFAULT_CURRENCY))

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: NumberLike, currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        """Factory method. Floats are rejected."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=to_decimal(amount, "amount"), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency = DEFAULT_CURRENCY) -> Money:
        return cls.of(Decimal("0"), currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Return a new Money rounded to the currency's decimal places."""
        try:
            rounded = self.amount.quantize(self.currency.quantum, rounding=rounding)
        except InvalidOperation as e:
            raise ValidationError(
                f"Amount is too large to round to {self.currency}: {self.amount}"
            ) from e
        return Money(amount=rounded, currency=self.currency)

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

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class Percent:
    """
    Percentage in [0, 100], e.g. a discount or a GST component rate.

    ``label`` names the field in error messages; it does not take part in
    equality.
    """

    value: Decimal
    label: str = field(default="percent", compare=False, repr=False)

    def __post_init__(self) -> None:
        value = to_decimal(self.value, self.label)
        if value < 0 or value > _HUNDRED:
            raise RateOutOfRangeError(self.label, value)
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, value: NumberLike | Percent, label: str = "percent") -> Percent:
        if isinstance(value, Percent):
            return cls(value.value, label)
        return cls(to_decimal(value, label), label)

    @classmethod
    def zero(cls, label: str = "percent") -> Percent:
        return cls(Decimal("0"), label)

    @property
    def fraction(self) -> Decimal:
        return self.value / _HUNDRED

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    def of_amount(self, amount: Decimal) -> Decimal:
        """``amount * value / 100`` at full precision."""
        return amount * self.value / _HUNDRED

    def __str__(self) -> str:
        return f"{self.value}%"
