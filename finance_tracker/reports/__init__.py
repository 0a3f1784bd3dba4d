"""Reporting package: formatting, aggregations and CSV export."""

from finance_tracker.reports.aggregations import (
    ALL_CURRENCIES,
    BreakdownCell,
    CategorySummary,
    CurrencyTotals,
    GrowthStats,
    MemberStats,
    ReportPeriod,
    category_breakdown,
    daily_totals,
    expenses_by_category,
    filter_by_currency,
    filter_by_period,
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
from finance_tracker.reports.export import (
    GROUP_HEADERS,
    PERSONAL_HEADERS,
    csv_export,
    export_filename,
)
from finance_tracker.reports.formatting import (
    CATEGORY_ICONS,
    CURRENCY_NAMES,
    CURRENCY_SYMBOLS,
    category_label,
    format_currency,
    format_currency_label,
    format_percent,
    format_transaction_amount,
)

__all__ = [
    "ALL_CURRENCIES",
    "BreakdownCell",
    "CategorySummary",
    "CurrencyTotals",
    "GrowthStats",
    "MemberStats",
    "ReportPeriod",
    "category_breakdown",
    "daily_totals",
    "expenses_by_category",
    "filter_by_currency",
    "filter_by_period",
    "main_currency",
    "member_breakdown",
    "member_stats",
    "month_bounds",
    "period_growth",
    "recent_transactions",
    "report_period_range",
    "top_categories",
    "totals_by_currency",
    "transactions_on",
    "used_currencies",
    "GROUP_HEADERS",
    "PERSONAL_HEADERS",
    "csv_export",
    "export_filename",
    "CATEGORY_ICONS",
    "CURRENCY_NAMES",
    "CURRENCY_SYMBOLS",
    "category_label",
    "format_currency",
    "format_currency_label",
    "format_percent",
    "format_transaction_amount",
]
