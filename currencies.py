"""Supported currency codes."""

USD = "USD"
EUR = "EUR"
CAD = "CAD"

SUPPORTED_CURRENCIES = frozenset({USD, EUR, CAD})


def is_supported_currency(currency: str) -> bool:
    """Return True if the currency code is supported."""
    return currency in SUPPORTED_CURRENCIES
