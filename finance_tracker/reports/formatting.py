"""Formatting utilities for currency amounts and category display."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from finance_tracker.models.transaction import (
    Category,
    Currency,
    DEFAULT_CURRENCY,
    TransactionType,
)


CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.USD: "$",
    Currency.CUP: "₱",
    Currency.EUR: "€",
    Currency.GBP: "£",
    Currency.CAD: "C$",
    Currency.AUD: "A$",
    Currency.JPY: "¥",
    Currency.CHF: "CHF ",
}

CURRENCY_NAMES: dict[Currency, str] = {
    Currency.USD: "US Dollar",
    Currency.CUP: "Cuban Peso",
    Currency.EUR: "Euro",
    Currency.GBP: "British Pound",
    Currency.CAD: "Canadian Dollar",
    Currency.AUD: "Australian Dollar",
    Currency.JPY: "Japanese Yen",
    Currency.CHF: "Swiss Franc",
}

# Currencies displayed without minor units
ZERO_DECIMAL_CURRENCIES = frozenset({Currency.JPY})

CATEGORY_ICONS: dict[Category, str] = {
    Category.GROCERIES: "🛒",
    Category.DINING_OUT: "🍽️",
    Category.TRANSPORTATION: "🚗",
    Category.UTILITIES: "💡",
    Category.RENT_MORTGAGE: "🏠",
    Category.ENTERTAINMENT: "🎬",
    Category.SHOPPING: "👕",
    Category.TRAVEL: "✈️",
    Category.HEALTHCARE: "🩺",
    Category.EDUCATION: "📚",
    Category.INCOME: "💵",
    Category.OTHER: "❓",
}


def _as_currency(currency: Union[Currency, str, None]) -> Currency:
    if not currency:
        return DEFAULT_CURRENCY
    return Currency(currency)


def decimal_places(currency: Union[Currency, str, None]) -> int:
    """Number of decimals shown for a currency (0 for yen-like currencies)."""
    return 0 if _as_currency(currency) in ZERO_DECIMAL_CURRENCIES else 2


def format_currency(
    amount: Union[Decimal, float, int],
    currency: Union[Currency, str, None] = DEFAULT_CURRENCY,
) -> str:
    """Format an amount with its currency symbol and thousands separators.

    The sign of `amount` is dropped; direction is shown by
    :func:`format_transaction_amount`.

    Example:
        >>> format_currency(Decimal("45.5"), Currency.USD)
        '$45.50'
        >>> format_currency(Decimal("45.00"), Currency.JPY)
        '¥45'
    """
    code = _as_currency(currency)
    places = decimal_places(code)
    quantum = Decimal(1).scaleb(-places)
    value = abs(Decimal(str(amount))).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{CURRENCY_SYMBOLS[code]}{value:,.{places}f}"


def format_transaction_amount(
    amount: Union[Decimal, float, int],
    currency: Union[Currency, str, None],
    transaction_type: Union[TransactionType, str],
) -> str:
    """Format with a +/- prefix taken from the transaction type.

    Example:
        >>> format_transaction_amount(Decimal("12"), Currency.EUR, TransactionType.EXPENSE)
        '-€12.00'
    """
    sign = "+" if TransactionType(transaction_type) == TransactionType.INCOME else "-"
    return f"{sign}{format_currency(amount, currency)}"


def format_currency_label(currency: Union[Currency, str]) -> str:
    """Label used in currency pickers, e.g. 'EUR (€) - Euro'."""
    code = _as_currency(currency)
    return f"{code.value} ({CURRENCY_SYMBOLS[code].strip()}) - {CURRENCY_NAMES[code]}"


def category_label(category: Union[Category, str]) -> str:
    """Category name prefixed with its icon."""
    cat = Category(category)
    return f"{CATEGORY_ICONS[cat]} {cat.value}"


def format_percent(value: float) -> str:
    """Signed one-decimal percentage, e.g. '+12.5%'."""
    return f"{value:+.1f}%"
