"""
CSV Export

One header row, then one row per transaction. The description is always
double-quoted; the group variant appends the creator's name, also quoted.
"""

import re
from datetime import date
from typing import Iterable

from finance_tracker.models.transaction import DEFAULT_CURRENCY, Transaction
from finance_tracker.reports.aggregations import UNKNOWN_MEMBER


PERSONAL_HEADERS = ["Date", "Description", "Category", "Type", "Amount", "Currency"]
GROUP_HEADERS = PERSONAL_HEADERS + ["Added By"]


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _row(transaction: Transaction, include_added_by: bool) -> str:
    fields = [
        transaction.date.strftime("%Y-%m-%d"),
        _quote(transaction.description),
        transaction.category.value,
        transaction.type.value,
        str(transaction.amount),
        (transaction.currency or DEFAULT_CURRENCY).value,
    ]
    if include_added_by:
        fields.append(_quote(transaction.created_by_name or UNKNOWN_MEMBER))
    return ",".join(fields)


def csv_export(
    transactions: Iterable[Transaction],
    group_export: bool = False,
) -> str:
    """Render transactions as CSV text (lines joined by '\\n', no trailing newline)."""
    headers = GROUP_HEADERS if group_export else PERSONAL_HEADERS
    lines = [",".join(headers)]
    lines.extend(_row(t, group_export) for t in transactions)
    return "\n".join(lines)


def export_filename(name: str, start: date, end: date) -> str:
    """e.g. 'family-trip-report-2024-06-01-to-2024-06-30.csv'."""
    slug = re.sub(r"\s+", "-", name.strip()).lower() or "transactions"
    return f"{slug}-report-{start:%Y-%m-%d}-to-{end:%Y-%m-%d}.csv"
