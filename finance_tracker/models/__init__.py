"""
Data Models Package

This package contains all Pydantic models used in the Shared Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.transaction import (
    Category,
    Currency,
    DEFAULT_CURRENCY,
    ItemInput,
    OwnerScope,
    ScopeKind,
    Transaction,
    TransactionFields,
    TransactionInput,
    TransactionItem,
    TransactionType,
    items_total,
    utc_now,
)
from finance_tracker.models.group import (
    Group,
    GroupInvitation,
    GroupMember,
    InvitationStatus,
    MemberRole,
    generate_invite_token,
)
from finance_tracker.models.user import (
    AuthUser,
    NotificationSettings,
    UserProfile,
    UserSettings,
)
from finance_tracker.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Category",
    "Currency",
    "DEFAULT_CURRENCY",
    "ItemInput",
    "OwnerScope",
    "ScopeKind",
    "Transaction",
    "TransactionFields",
    "TransactionInput",
    "TransactionItem",
    "TransactionType",
    "items_total",
    "utc_now",
    # Group models
    "Group",
    "GroupInvitation",
    "GroupMember",
    "InvitationStatus",
    "MemberRole",
    "generate_invite_token",
    # User models
    "AuthUser",
    "NotificationSettings",
    "UserProfile",
    "UserSettings",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
