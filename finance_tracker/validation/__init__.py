"""Form validation package."""

from finance_tracker.validation.validator import (
    GroupValidationError,
    TransactionValidationError,
    TransactionValidator,
    validate_group_name,
    validate_invite_email,
)

__all__ = [
    "GroupValidationError",
    "TransactionValidationError",
    "TransactionValidator",
    "validate_group_name",
    "validate_invite_email",
]
