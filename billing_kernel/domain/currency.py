"""Currency -- ISO 4217 registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01') for INR."""
        return Decimal(1).scaleb(-self.decimal_places)


# (code, minor-unit digits, name)
_ISO_4217: tuple[tuple[str, int, str], ...] = (
    ("INR", 2, "Indian Rupee"),
    ("USD", 2, "US Dollar"),
    ("EUR", 2, "Euro"),
    ("GBP", 2, "Pound Sterling"),
    ("AED", 2, "UAE Dirham"),
    ("SGD", 2, "Singapore Dollar"),
    ("LKR", 2, "Sri Lankan Rupee"),
    ("NPR", 2, "Nepalese Rupee"),
    ("BDT", 2, "Bangladeshi Taka"),
    ("JPY", 0, "Japanese Yen"),
    ("KWD", 3, "Kuwaiti Dinar"),
    ("OMR", 3, "Omani Rial"),
    ("BHD", 3, "Bahraini Dinar"),
)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies the billing screens can be configured with."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        code: CurrencyInfo(code, places, name) for code, places, name in _ISO_4217
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Decimal places for a currency. Unknown codes default to 2."""
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def get_quantum(cls, code: str) -> Decimal:
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
