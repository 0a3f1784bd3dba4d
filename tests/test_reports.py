"""Tests for formatting, aggregations and CSV export."""

import csv
import io
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from conftest import make_transaction
from finance_tracker.models import Category, Currency, GroupMember, TransactionType
from finance_tracker.reports import (
    ALL_CURRENCIES,
    ReportPeriod,
    category_breakdown,
    category_label,
    csv_export,
    daily_totals,
    expenses_by_category,
    export_filename,
    filter_by_currency,
    filter_by_period,
    format_currency,
    format_currency_label,
    format_percent,
    format_transaction_amount,
    main_currency,
    member_breakdown,
    member_stats,
    month_bounds,
    period_growth,
    recent_transactions,
    report_period_range,
    top_categories,
    totals_by_currency,
    transactions_on,
    used_currencies,
)


def at(day: int, month: int = 6, hour: int = 12) -> datetime:
    return datetime(2024, month, day, hour, 0, tzinfo=timezone.utc)


class TestFormatting:
    """Tests for currency and category display."""

    def test_format_currency(self):
        assert format_currency(Decimal("1234.5"), Currency.EUR) == "€1,234.50"
        assert format_currency(Decimal("45"), Currency.USD) == "$45.00"
        assert format_currency(Decimal("45.5"), Currency.USD) == "$45.50"
        assert format_currency(Decimal("45.00"), Currency.JPY) == "¥45"

    def test_format_currency_drops_sign(self):
        assert format_currency(Decimal("-12.345"), Currency.GBP) == "£12.35"

    def test_zero_decimal_currency(self):
        assert format_currency(Decimal("1500.4"), Currency.JPY) == "¥1,500"

    def test_missing_currency_is_usd(self):
        assert format_currency(Decimal("1"), None) == "$1.00"

    def test_transaction_amount_sign(self):
        assert format_transaction_amount(Decimal("12"), Currency.EUR, TransactionType.EXPENSE) == "-€12.00"
        assert format_transaction_amount(Decimal("12"), Currency.EUR, TransactionType.INCOME) == "+€12.00"

    def test_labels(self):
        assert format_currency_label(Currency.EUR) == "EUR (€) - Euro"
        assert category_label(Category.GROCERIES) == "🛒 Groceries"
        assert format_percent(12.345) == "+12.3%"
        assert format_percent(-5.0) == "-5.0%"


class TestTotalsAndBreakdowns:
    """Tests for per-currency aggregation."""

    def test_totals_by_currency(self):
        transactions = [
            make_transaction("100", TransactionType.INCOME, Category.INCOME),
            make_transaction("30"),
            make_transaction("20", currency=Currency.EUR),
        ]
        totals = totals_by_currency(transactions)
        assert totals[Currency.USD].income == Decimal("100")
        assert totals[Currency.USD].expenses == Decimal("30")
        assert totals[Currency.USD].net == Decimal("70")
        assert totals[Currency.EUR].net == Decimal("-20")

    def test_category_breakdown_is_two_level(self):
        transactions = [
            make_transaction("10"),
            make_transaction("5"),
            make_transaction("7", currency=Currency.EUR),
            make_transaction("50", TransactionType.INCOME, Category.INCOME),
        ]
        breakdown = category_breakdown(transactions)
        groceries_usd = breakdown[Category.GROCERIES][Currency.USD]
        assert groceries_usd.expenses == Decimal("15")
        assert groceries_usd.count == 2
        assert breakdown[Category.GROCERIES][Currency.EUR].count == 1
        assert breakdown[Category.INCOME][Currency.USD].income == Decimal("50")

    def test_member_breakdown_resolves_names(self):
        members = [GroupMember(user_id="alice", email="a@x.com", display_name="Alice Cooper")]
        transactions = [
            make_transaction("10", created_by="alice", created_by_name="Alice"),
            make_transaction("5", created_by="bob", created_by_name="Bob"),
            make_transaction("3", created_by="ghost", created_by_name=None),
        ]
        breakdown = member_breakdown(transactions, members)
        assert set(breakdown) == {"Alice Cooper", "Bob", "Unknown"}
        assert breakdown["Bob"][Currency.USD].expenses == Decimal("5")

    def test_main_currency_counts_transactions(self):
        transactions = [
            make_transaction("1", currency=Currency.EUR),
            make_transaction("1", currency=Currency.EUR),
            make_transaction("1000", currency=Currency.USD),
        ]
        assert main_currency(transactions) == Currency.EUR

    def test_main_currency_tie_breaks_alphabetically(self):
        transactions = [
            make_transaction("1", currency=Currency.USD),
            make_transaction("1", currency=Currency.EUR),
        ]
        assert main_currency(transactions) == Currency.EUR

    def test_main_currency_empty_is_usd(self):
        assert main_currency([]) == Currency.USD

    def test_used_currencies_first_seen_order(self):
        transactions = [
            make_transaction("1", currency=Currency.GBP),
            make_transaction("1", currency=Currency.USD),
            make_transaction("1", currency=Currency.GBP),
        ]
        assert used_currencies(transactions) == [Currency.GBP, Currency.USD]


class TestFilters:

    def test_filter_by_period_inclusive_dates(self):
        transactions = [
            make_transaction("1", date=at(1, hour=0)),
            make_transaction("2", date=at(30, hour=23)),
            make_transaction("3", date=at(1, month=7)),
        ]
        selected = filter_by_period(transactions, date(2024, 6, 1), date(2024, 6, 30))
        assert [t.amount for t in selected] == [Decimal("1"), Decimal("2")]

    def test_filter_by_currency(self):
        transactions = [
            make_transaction("1", currency=Currency.EUR),
            make_transaction("2", currency=Currency.USD),
        ]
        assert len(filter_by_currency(transactions, ALL_CURRENCIES)) == 2
        assert [t.amount for t in filter_by_currency(transactions, "EUR")] == [Decimal("1")]


class TestDashboard:

    def test_recent_transactions(self):
        transactions = [make_transaction(str(day), date=at(day)) for day in range(1, 10)]
        recent = recent_transactions(transactions, limit=3)
        assert [t.date.day for t in recent] == [9, 8, 7]

    def test_expenses_by_category_largest_first(self):
        transactions = [
            make_transaction("5", category=Category.SHOPPING),
            make_transaction("20", category=Category.TRAVEL),
            make_transaction("9", category=Category.TRAVEL, currency=Currency.EUR),
            make_transaction("100", TransactionType.INCOME, Category.INCOME),
        ]
        assert expenses_by_category(transactions, Currency.USD) == [
            (Category.TRAVEL, Decimal("20")),
            (Category.SHOPPING, Decimal("5")),
        ]

    def test_period_growth(self):
        now = at(30)
        transactions = [
            make_transaction("150", date=now - timedelta(days=5)),
            make_transaction("100", date=now - timedelta(days=40)),
            make_transaction("80", TransactionType.INCOME, Category.INCOME, date=now - timedelta(days=3)),
        ]
        growth = period_growth(transactions, Currency.USD, now=now)
        assert growth.current_expenses == Decimal("150")
        assert growth.previous_expenses == Decimal("100")
        assert growth.expense_growth == pytest.approx(50.0)
        # No previous income: growth reported as zero
        assert growth.income_growth == 0.0

    def test_top_categories(self):
        transactions = [
            make_transaction("5", category=Category.SHOPPING),
            make_transaction("20", category=Category.TRAVEL),
            make_transaction("30", category=Category.TRAVEL, currency=Currency.EUR),
        ]
        top = top_categories(transactions, limit=1)
        assert len(top) == 1
        assert top[0].category == Category.TRAVEL
        assert top[0].total_count == 2
        assert set(top[0].currencies) == {Currency.USD, Currency.EUR}

    def test_member_stats(self):
        members = [
            GroupMember(user_id="alice", email="a@x.com", display_name="Alice"),
            GroupMember(user_id="bob", email="b@x.com", display_name="Bob"),
        ]
        transactions = [
            make_transaction("10", created_by="alice"),
            make_transaction("30", created_by="alice"),
        ]
        stats = member_stats(transactions, members)
        assert stats[0].member.user_id == "alice"
        assert stats[0].average_transaction == Decimal("20")
        assert stats[1].transaction_count == 0
        assert stats[1].average_transaction == Decimal("0")


class TestCalendar:

    def test_month_bounds(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2024, 12) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_daily_totals_use_local_day(self):
        # 23:30 UTC on the 14th is already the 15th in Madrid
        late = datetime(2024, 6, 14, 23, 30, tzinfo=timezone.utc)
        transactions = [make_transaction("10", date=late)]
        madrid = ZoneInfo("Europe/Madrid")

        assert list(daily_totals(transactions)) == [date(2024, 6, 14)]
        assert list(daily_totals(transactions, madrid)) == [date(2024, 6, 15)]
        assert transactions_on(transactions, date(2024, 6, 15), madrid) == transactions


class TestReportPeriods:

    def test_named_periods(self):
        today = date(2024, 1, 20)
        assert report_period_range(ReportPeriod.CURRENT_MONTH, today) == (date(2024, 1, 1), date(2024, 1, 31))
        assert report_period_range(ReportPeriod.LAST_MONTH, today) == (date(2023, 12, 1), date(2023, 12, 31))
        assert report_period_range(ReportPeriod.CURRENT_YEAR, today) == (date(2024, 1, 1), date(2024, 12, 31))
        assert report_period_range(ReportPeriod.LAST_YEAR, today) == (date(2023, 1, 1), date(2023, 12, 31))

    def test_month_report_in_local_time(self):
        """Transactions entered at local midnight stay in their local month."""
        madrid = ZoneInfo("Europe/Madrid")
        june_first = make_transaction("1", date=datetime(2024, 6, 1, tzinfo=madrid))
        july_first = make_transaction("2", date=datetime(2024, 7, 1, tzinfo=madrid))

        start, end = report_period_range(ReportPeriod.CURRENT_MONTH, date(2024, 6, 15))
        selected = filter_by_period([june_first, july_first], start, end, madrid)

        assert selected == [june_first]

    def test_today_taken_in_timezone(self, monkeypatch):
        # 23:30 UTC on June 30 is already July in Madrid
        monkeypatch.setattr(
            "finance_tracker.reports.aggregations.utc_now",
            lambda: datetime(2024, 6, 30, 23, 30, tzinfo=timezone.utc),
        )
        madrid = ZoneInfo("Europe/Madrid")
        assert report_period_range(ReportPeriod.CURRENT_MONTH) == (date(2024, 6, 1), date(2024, 6, 30))
        assert report_period_range(ReportPeriod.CURRENT_MONTH, tz=madrid) == (date(2024, 7, 1), date(2024, 7, 31))

    def test_custom_period_needs_dates(self):
        with pytest.raises(ValueError):
            report_period_range(ReportPeriod.CUSTOM)


class TestCsvExport:
    """Tests for CSV export."""

    def test_personal_export(self):
        csv = csv_export([make_transaction("45.50", description="Weekly groceries")])
        lines = csv.split("\n")
        assert lines[0] == "Date,Description,Category,Type,Amount,Currency"
        assert lines[1] == '2024-06-15,"Weekly groceries",Groceries,expense,45.50,USD'

    def test_group_export_adds_creator(self):
        transactions = [
            make_transaction("5", created_by_name="Bob"),
            make_transaction("5", created_by_name=None),
        ]
        lines = csv_export(transactions, group_export=True).split("\n")
        assert lines[0].endswith(",Added By")
        assert lines[1].endswith(',"Bob"')
        assert lines[2].endswith(',"Unknown"')

    def test_group_rows_keep_seven_fields(self):
        transactions = [make_transaction("10", description="Dinner", created_by_name="Doe, Jane")]
        rows = list(csv.reader(io.StringIO(csv_export(transactions, group_export=True))))
        assert len(rows[1]) == 7
        assert rows[1][-1] == "Doe, Jane"

    def test_quotes_are_doubled(self):
        csv = csv_export([make_transaction("1", description='The "good" pizza, large')])
        assert '"The ""good"" pizza, large"' in csv

    def test_no_trailing_newline(self):
        assert not csv_export([make_transaction("1")]).endswith("\n")

    def test_export_filename(self):
        name = export_filename("Family Trip", date(2024, 6, 1), date(2024, 6, 30))
        assert name == "family-trip-report-2024-06-01-to-2024-06-30.csv"
