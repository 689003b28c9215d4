"""Static exchange-rate table used to normalize extracted salaries."""

import math

BASE_CURRENCY = "LKR"

# Unknown codes are converted at this currency's rate
DEFAULT_SOURCE_CURRENCY = "USD"

# Approximate market rates, units of BASE_CURRENCY per unit of the given currency
EXCHANGE_RATES: dict[str, float] = {
    "USD": 305.50,
    "EUR": 331.20,
    "GBP": 387.40,
    "SGD": 226.80,
    "AUD": 202.10,
    "CAD": 224.50,
    "INR": 3.65,
    "AED": 83.15,
    "QAR": 83.90,
    "SAR": 81.45,
    "JPY": 1.95,
    "LKR": 1.00,
}


def normalize_code(currency: str) -> str:
    return (currency or "").strip().upper()


def rate_for(currency: str) -> float:
    """Rate for a currency code; case and surrounding whitespace are ignored."""
    return EXCHANGE_RATES.get(normalize_code(currency), EXCHANGE_RATES[DEFAULT_SOURCE_CURRENCY])


def is_known_currency(currency: str) -> bool:
    return normalize_code(currency) in EXCHANGE_RATES


def convert_to_base(amount: float, currency: str = DEFAULT_SOURCE_CURRENCY) -> int:
    """Convert an amount to BASE_CURRENCY, rounded half up to a whole unit.

    Raises ValueError when the amount or the converted value is not finite.
    """
    value = float(amount) * rate_for(currency)
    if not math.isfinite(value):
        raise ValueError(f"cannot convert {amount!r} {currency}")
    return int(math.floor(value + 0.5))


def currency_codes() -> list[str]:
    return list(EXCHANGE_RATES)


def format_currency(amount: float, currency: str = BASE_CURRENCY) -> str:
    return f"{normalize_code(currency) or BASE_CURRENCY} {amount:,.0f}"
