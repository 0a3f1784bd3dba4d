"""
Two-Stage Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Length and positivity checks
- Item rows complete
- This catches incomplete or malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- Category / type consistency
- Typed amount vs item breakdown
- Dates far in the future
- These never block, they are shown as warnings

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
The only derived value is the amount of an itemized transaction,
which is always recomputed from its items.
"""

import re
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.config import get_settings
from finance_tracker.models.transaction import (
    Category,
    TransactionFields,
    TransactionInput,
    TransactionItem,
    TransactionType,
    ensure_aware,
    items_total,
    utc_now,
)
from finance_tracker.models.validation import ValidationIssue, ValidationResult


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_GROUP_NAME_LENGTH = 100
MAX_ITEM_DESCRIPTION_LENGTH = 200
MAX_ITEM_UNIT_LENGTH = 20


class TransactionValidationError(Exception):
    """Transaction input failed validation; nothing was written."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__("; ".join(messages) or "Invalid transaction")


class GroupValidationError(Exception):
    """Group name or invitation email rejected before any write."""
    pass


class TransactionValidator:
    """
    Validates transaction form input through a two-stage pipeline.

    Stage 1: Schema validation (blocking errors)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        data: TransactionInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if data.date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Please select a date",
                severity="error",
            ))

        description = data.description.strip()
        min_length = self._settings.min_description_length
        max_length = self._settings.max_description_length
        if len(description) < min_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_short",
                message=f"Description must be at least {min_length} characters",
                severity="error",
                suggested_fix="Describe what the money was for",
            ))
        elif len(description) > max_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description must be at most {max_length} characters",
                severity="error",
            ))

        if data.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Please select a category",
                severity="error",
                suggested_fix="Use the suggest button to pick one from the description",
            ))

        if data.has_item_details:
            issues.extend(self._validate_items(data))
        elif data.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif data.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be positive",
                severity="error",
                suggested_fix="Pick income or expense as the type instead of a sign",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_items(self, data: TransactionInput) -> list[ValidationIssue]:
        """Every item row needs a description and positive numbers."""
        issues = []

        if not data.items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="Add at least one item or turn off item details",
                severity="error",
            ))
            return issues

        for index, item in enumerate(data.items):
            field = f"items.{index}"
            description = item.description.strip()
            if not description:
                issues.append(ValidationIssue(
                    field=f"{field}.description",
                    issue_type="missing",
                    message=f"Item {index + 1}: description is required",
                    severity="error",
                ))
            elif len(description) > MAX_ITEM_DESCRIPTION_LENGTH:
                issues.append(ValidationIssue(
                    field=f"{field}.description",
                    issue_type="too_long",
                    message=(
                        f"Item {index + 1}: description must be at most "
                        f"{MAX_ITEM_DESCRIPTION_LENGTH} characters"
                    ),
                    severity="error",
                ))
            if item.unit and len(item.unit.strip()) > MAX_ITEM_UNIT_LENGTH:
                issues.append(ValidationIssue(
                    field=f"{field}.unit",
                    issue_type="too_long",
                    message=f"Item {index + 1}: unit must be at most {MAX_ITEM_UNIT_LENGTH} characters",
                    severity="error",
                    suggested_fix="Use a short label such as kg, pack or piece",
                ))
            if item.quantity is None or item.quantity <= 0:
                issues.append(ValidationIssue(
                    field=f"{field}.quantity",
                    issue_type="invalid_value",
                    message=f"Item {index + 1}: quantity must be positive",
                    severity="error",
                ))
            if item.unit_price is None or item.unit_price <= 0:
                issues.append(ValidationIssue(
                    field=f"{field}.unit_price",
                    issue_type="invalid_value",
                    message=f"Item {index + 1}: unit price must be positive",
                    severity="error",
                ))

        if not issues:
            # Rows can be positive yet still round to zero cents
            if items_total(self._build_items(data)) <= 0:
                issues.append(ValidationIssue(
                    field="items",
                    issue_type="invalid_value",
                    message="Item total must be at least 0.01",
                    severity="error",
                ))

        return issues

    def _validate_semantic(
        self,
        data: TransactionInput,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Only runs on input that passed stage 1, so items are complete.
        """
        issues = []

        if data.category == Category.INCOME and data.type == TransactionType.EXPENSE:
            issues.append(ValidationIssue(
                field="category",
                issue_type="inconsistent",
                message="Category is Income but the type is expense",
                severity="warning",
                suggested_fix="Switch the type to income",
            ))

        if data.has_item_details and data.amount is not None:
            computed = items_total(self._build_items(data))
            if data.amount != computed:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="mismatch",
                    message=f"Amount will be set to the item total ({computed})",
                    severity="warning",
                ))

        if data.date is not None:
            if ensure_aware(data.date) > utc_now() + timedelta(days=1):
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))

        return issues

    def validate(self, data: TransactionInput) -> ValidationResult:
        """
        Run full two-stage validation.

        Args:
            data: The submitted form input

        Returns:
            ValidationResult with all issues found
        """
        schema_valid, all_issues = self._validate_schema(data)

        # Only run stage 2 if stage 1 passes
        if schema_valid:
            all_issues.extend(self._validate_semantic(data))

        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            is_valid=schema_valid,
            issues=all_issues,
            warnings=warnings,
        )

    @staticmethod
    def _build_items(data: TransactionInput) -> list[TransactionItem]:
        return [
            TransactionItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                unit=item.unit or None,
            )
            for item in data.items
        ]

    def build_fields(
        self,
        data: TransactionInput,
        created_by: str,
        created_by_name: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> TransactionFields:
        """
        Validate and convert form input into a storable field set.

        For itemized input the amount is recomputed from the items.

        Raises:
            TransactionValidationError: If any error-level issue was found
        """
        result = self.validate(data)
        if not result.is_valid:
            raise TransactionValidationError(result)

        try:
            items = self._build_items(data) if data.has_item_details else []
            amount = items_total(items) if data.has_item_details else data.amount

            return TransactionFields(
                date=data.date,
                description=data.description.strip(),
                amount=amount,
                currency=data.currency,
                type=data.type,
                category=data.category,
                items=items,
                has_item_details=data.has_item_details,
                created_by=created_by,
                created_by_name=created_by_name,
                group_id=group_id,
            )
        except PydanticValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "transaction",
                    issue_type="invalid_value",
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            raise TransactionValidationError(
                ValidationResult(is_valid=False, issues=issues)
            ) from e

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if not result.is_valid:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)


def validate_group_name(name: str) -> str:
    """
    Return the trimmed group name.

    Raises:
        GroupValidationError: If the name is empty or too long
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise GroupValidationError("Group name is required")
    if len(trimmed) > MAX_GROUP_NAME_LENGTH:
        raise GroupValidationError(
            f"Group name must be at most {MAX_GROUP_NAME_LENGTH} characters"
        )
    return trimmed


def validate_invite_email(email: str) -> str:
    """
    Return the trimmed email. Case is kept: matching on accept is exact.

    Raises:
        GroupValidationError: If the address is not plausibly an email
    """
    trimmed = (email or "").strip()
    if not EMAIL_PATTERN.match(trimmed):
        raise GroupValidationError(f"Not a valid email address: {trimmed!r}")
    return trimmed
