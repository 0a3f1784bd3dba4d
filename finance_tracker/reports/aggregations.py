"""
Aggregation Functions for Dashboards, Calendars and Reports

DESIGN DECISION: Every function here is pure.
They take an in-memory list of transactions and return derived data,
with no side effects, so they are safe to recompute on every render.

Transactions without a currency are counted as USD throughout.
"""

from collections import Counter
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from pydantic import BaseModel, Field

from finance_tracker.models.group import GroupMember
from finance_tracker.models.transaction import (
    Category,
    Currency,
    DEFAULT_CURRENCY,
    Transaction,
    TransactionType,
    ensure_aware,
    utc_now,
)


ZERO = Decimal("0")
UNKNOWN_MEMBER = "Unknown"
ALL_CURRENCIES = "all"


# =============================================================================
# RESULT MODELS
# =============================================================================

class CurrencyTotals(BaseModel):
    """Income and expense sums for one currency."""

    income: Decimal = ZERO
    expenses: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class BreakdownCell(BaseModel):
    """Income, expenses and transaction count for one breakdown cell."""

    income: Decimal = ZERO
    expenses: Decimal = ZERO
    count: int = 0

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses

    @property
    def total(self) -> Decimal:
        return self.income + self.expenses

    def add(self, transaction: Transaction) -> None:
        if transaction.type == TransactionType.INCOME:
            self.income += transaction.amount
        else:
            self.expenses += transaction.amount
        self.count += 1


class GrowthStats(BaseModel):
    """Change of the last window against the window before it, in percent."""

    current_income: Decimal = ZERO
    previous_income: Decimal = ZERO
    current_expenses: Decimal = ZERO
    previous_expenses: Decimal = ZERO
    income_growth: float = 0.0
    expense_growth: float = 0.0


class CategorySummary(BaseModel):
    category: Category
    total_amount: Decimal
    total_count: int
    currencies: dict[Currency, BreakdownCell] = Field(default_factory=dict)


class MemberStats(BaseModel):
    member: GroupMember
    total_amount: Decimal
    transaction_count: int

    @property
    def average_transaction(self) -> Decimal:
        if self.transaction_count == 0:
            return ZERO
        return self.total_amount / self.transaction_count


class ReportPeriod(str, Enum):
    CURRENT_MONTH = "current-month"
    LAST_MONTH = "last-month"
    CURRENT_YEAR = "current-year"
    LAST_YEAR = "last-year"
    CUSTOM = "custom"


# =============================================================================
# HELPERS
# =============================================================================

def _currency_of(transaction: Transaction) -> Currency:
    return transaction.currency or DEFAULT_CURRENCY


def _start_of(value: Union[date, datetime], tz: Optional[tzinfo] = None) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(datetime.combine(value, time.min, tzinfo=tz))


def _end_of(value: Union[date, datetime], tz: Optional[tzinfo] = None) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(datetime.combine(value, time.max, tzinfo=tz))


def _local_day(transaction: Transaction, tz: Optional[tzinfo]) -> date:
    instant = transaction.date.astimezone(tz) if tz else transaction.date
    return instant.date()


def _sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def _percent_change(current: Decimal, previous: Decimal) -> float:
    if previous <= 0:
        return 0.0
    return float((current - previous) / previous * 100)


# =============================================================================
# FILTERS
# =============================================================================

def filter_by_period(
    transactions: Iterable[Transaction],
    start: Union[date, datetime],
    end: Union[date, datetime],
    tz: Optional[tzinfo] = None,
) -> list[Transaction]:
    """Transactions dated within [start, end], both ends inclusive.

    Plain dates cover the whole day in `tz` (UTC when omitted).
    """
    lower, upper = _start_of(start, tz), _end_of(end, tz)
    return [t for t in transactions if lower <= t.date <= upper]


def filter_by_currency(
    transactions: Iterable[Transaction],
    currency: Union[Currency, str],
) -> list[Transaction]:
    """Transactions in one currency; `'all'` keeps everything."""
    if currency == ALL_CURRENCIES:
        return list(transactions)
    wanted = Currency(currency)
    return [t for t in transactions if _currency_of(t) == wanted]


def filter_by_type(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType,
) -> list[Transaction]:
    return [t for t in transactions if t.type == transaction_type]


# =============================================================================
# TOTALS AND BREAKDOWNS
# =============================================================================

def totals_by_currency(
    transactions: Iterable[Transaction],
) -> dict[Currency, CurrencyTotals]:
    """Income and expense sums per currency; net = income - expenses."""
    totals: dict[Currency, CurrencyTotals] = {}
    for t in transactions:
        bucket = totals.setdefault(_currency_of(t), CurrencyTotals())
        if t.type == TransactionType.INCOME:
            bucket.income += t.amount
        else:
            bucket.expenses += t.amount
    return totals


def category_breakdown(
    transactions: Iterable[Transaction],
) -> dict[Category, dict[Currency, BreakdownCell]]:
    """Two-level grouping: category, then currency."""
    breakdown: dict[Category, dict[Currency, BreakdownCell]] = {}
    for t in transactions:
        per_currency = breakdown.setdefault(t.category, {})
        per_currency.setdefault(_currency_of(t), BreakdownCell()).add(t)
    return breakdown


def resolve_member_name(
    transaction: Transaction,
    members: Sequence[GroupMember],
) -> str:
    """Current member display name, then the stored creator name, then 'Unknown'."""
    for member in members:
        if member.user_id == transaction.created_by and member.display_name:
            return member.display_name
    return transaction.created_by_name or UNKNOWN_MEMBER


def member_breakdown(
    transactions: Iterable[Transaction],
    members: Sequence[GroupMember],
) -> dict[str, dict[Currency, BreakdownCell]]:
    """Two-level grouping: resolved member display name, then currency."""
    breakdown: dict[str, dict[Currency, BreakdownCell]] = {}
    for t in transactions:
        per_currency = breakdown.setdefault(resolve_member_name(t, members), {})
        per_currency.setdefault(_currency_of(t), BreakdownCell()).add(t)
    return breakdown


def main_currency(transactions: Iterable[Transaction]) -> Currency:
    """Currency with the most transactions.

    Equal counts are broken alphabetically by currency code; an empty
    list yields USD.
    """
    counts = Counter(_currency_of(t) for t in transactions)
    if not counts:
        return DEFAULT_CURRENCY
    return min(counts, key=lambda c: (-counts[c], c.value))


def used_currencies(transactions: Iterable[Transaction]) -> list[Currency]:
    """Distinct currencies in first-seen order."""
    seen: dict[Currency, None] = {}
    for t in transactions:
        seen.setdefault(_currency_of(t), None)
    return list(seen)


# =============================================================================
# DASHBOARD
# =============================================================================

def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 5,
) -> list[Transaction]:
    """Newest first, at most `limit` entries."""
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]


def expenses_by_category(
    transactions: Iterable[Transaction],
    currency: Currency,
) -> list[tuple[Category, Decimal]]:
    """Expense totals per category in one currency, largest first."""
    totals: dict[Category, Decimal] = {}
    for t in transactions:
        if t.type == TransactionType.EXPENSE and _currency_of(t) == currency:
            totals[t.category] = totals.get(t.category, ZERO) + t.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def period_growth(
    transactions: Sequence[Transaction],
    currency: Currency,
    now: Optional[datetime] = None,
    window_days: int = 30,
) -> GrowthStats:
    """Compare the last `window_days` against the window before it."""
    now = ensure_aware(now or utc_now())
    window = timedelta(days=window_days)
    current_start, previous_start = now - window, now - 2 * window

    in_currency = [t for t in transactions if _currency_of(t) == currency]
    current = [t for t in in_currency if t.date >= current_start]
    previous = [t for t in in_currency if previous_start <= t.date < current_start]

    stats = GrowthStats(
        current_income=_sum_amounts(filter_by_type(current, TransactionType.INCOME)),
        previous_income=_sum_amounts(filter_by_type(previous, TransactionType.INCOME)),
        current_expenses=_sum_amounts(filter_by_type(current, TransactionType.EXPENSE)),
        previous_expenses=_sum_amounts(filter_by_type(previous, TransactionType.EXPENSE)),
    )
    stats.income_growth = _percent_change(stats.current_income, stats.previous_income)
    stats.expense_growth = _percent_change(stats.current_expenses, stats.previous_expenses)
    return stats


def top_categories(
    transactions: Iterable[Transaction],
    limit: int = 5,
) -> list[CategorySummary]:
    """Categories ordered by summed amount across currencies."""
    summaries = []
    for category, currencies in category_breakdown(transactions).items():
        summaries.append(CategorySummary(
            category=category,
            total_amount=sum((cell.total for cell in currencies.values()), ZERO),
            total_count=sum(cell.count for cell in currencies.values()),
            currencies=currencies,
        ))
    summaries.sort(key=lambda s: s.total_amount, reverse=True)
    return summaries[:limit]


def member_stats(
    transactions: Sequence[Transaction],
    members: Sequence[GroupMember],
) -> list[MemberStats]:
    """Per-member contribution, largest total first."""
    stats = []
    for member in members:
        own = [t for t in transactions if t.created_by == member.user_id]
        stats.append(MemberStats(
            member=member,
            total_amount=_sum_amounts(own),
            transaction_count=len(own),
        ))
    stats.sort(key=lambda s: s.total_amount, reverse=True)
    return stats


# =============================================================================
# CALENDAR
# =============================================================================

def daily_totals(
    transactions: Iterable[Transaction],
    tz: Optional[tzinfo] = None,
) -> dict[date, BreakdownCell]:
    """Income, expenses and count per calendar day."""
    days: dict[date, BreakdownCell] = {}
    for t in transactions:
        days.setdefault(_local_day(t, tz), BreakdownCell()).add(t)
    return days


def transactions_on(
    transactions: Iterable[Transaction],
    day: date,
    tz: Optional[tzinfo] = None,
) -> list[Transaction]:
    return [t for t in transactions if _local_day(t, tz) == day]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    first = date(year, month, 1)
    next_first = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)


# =============================================================================
# REPORTS
# =============================================================================

def report_period_range(
    period: ReportPeriod,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> tuple[date, date]:
    """Date range covered by a named report period.

    Without `today`, the current day is taken in `tz` (UTC when omitted).
    """
    if today is None:
        now = utc_now()
        today = (now.astimezone(tz) if tz else now).date()

    if period == ReportPeriod.CURRENT_MONTH:
        return month_bounds(today.year, today.month)
    if period == ReportPeriod.LAST_MONTH:
        if today.month == 1:
            return month_bounds(today.year - 1, 12)
        return month_bounds(today.year, today.month - 1)
    if period == ReportPeriod.CURRENT_YEAR:
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if period == ReportPeriod.LAST_YEAR:
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)
    raise ValueError("Custom periods need explicit dates")
