"""
Shared Finance Tracker - Source Package

A personal and group finance tracker: record income and expenses,
share them inside groups, and derive dashboards, calendars and reports.

DESIGN PRINCIPLES:
1. Validate at the form boundary, before any write
2. Multi-document changes are all-or-nothing
3. Authorization is checked where the data is changed, not in the UI
4. Every significant action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Shared Finance Tracker Team"
