"""Currency -- ISO 4217 codes payroll can be computed in, with their precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """One ISO 4217 currency and the number of decimals a payslip carries."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest payable amount: 1 XOF, 0.01 EUR, 0.001 TND."""
        return Decimal(1).scaleb(-self.decimal_places)


# (code, decimal places, name)
_PAYROLL_CURRENCIES = (
    # CFA franc zones and other zero-decimal currencies
    ("XOF", 0, "West African CFA Franc"),
    ("XAF", 0, "Central African CFA Franc"),
    ("GNF", 0, "Guinean Franc"),
    ("KMF", 0, "Comorian Franc"),
    ("DJF", 0, "Djiboutian Franc"),
    ("BIF", 0, "Burundian Franc"),
    ("RWF", 0, "Rwandan Franc"),
    ("UGX", 0, "Ugandan Shilling"),
    ("JPY", 0, "Japanese Yen"),
    ("CDF", 2, "Congolese Franc"),
    ("GHS", 2, "Ghana Cedi"),
    ("KES", 2, "Kenyan Shilling"),
    ("MAD", 2, "Moroccan Dirham"),
    ("MGA", 2, "Malagasy Ariary"),
    ("NGN", 2, "Nigerian Naira"),
    ("ZAR", 2, "South African Rand"),
    ("USD", 2, "US Dollar"),
    ("EUR", 2, "Euro"),
    ("GBP", 2, "Pound Sterling"),
    ("CHF", 2, "Swiss Franc"),
    ("CAD", 2, "Canadian Dollar"),
    ("TND", 3, "Tunisian Dinar"),
)


class CurrencyRegistry:
    """Lookup over the currencies a country configuration may declare."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        code: CurrencyInfo(code, places, name)
        for code, places, name in _PAYROLL_CURRENCIES
    }

    @staticmethod
    def _normalize(code: object) -> str | None:
        if not code or not isinstance(code, str):
            return None
        return code.upper().strip()

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        normalized = cls._normalize(code)
        if normalized is None:
            return None
        return cls._CURRENCIES.get(normalized)

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return cls.get_info(code) is not None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        if info is None:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")
        return info.decimal_places

    @classmethod
    def validate(cls, code: str) -> str:
        """Return the normalized code, or raise ValueError."""
        normalized = cls._normalize(code)
        if normalized is None:
            raise ValueError(f"Invalid currency code: {code!r}")
        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")
        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")
        return normalized
