"""
Main Orchestrator for the Shared Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (form input -> validate -> authorize -> store -> audit)
2. Account (profile and settings of the signed-in user)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before validation passes
- A private list is only reachable by its owner
- A group list is only reachable by current group members
- Every write is audited

This is the "glue" that ensures the system works correctly
even when the presentation layer forgets a check.
"""

from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.agents import CategorySuggestionAgent
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.groups import GroupWorkflow, PermissionDeniedError
from finance_tracker.models.transaction import (
    Category,
    OwnerScope,
    Transaction,
    TransactionInput,
    utc_now,
)
from finance_tracker.models.user import AuthUser, UserProfile, UserSettings
from finance_tracker.models.validation import ValidationResult
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
    GoogleSheetsProfileStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryProfileStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    ProfileStorageInterface,
    StorageError,
    TransactionStorageInterface,
)
from finance_tracker.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates transaction CRUD for personal and group lists.

    Flow for a write:
    1. Authorize → the user may address this owner scope
    2. Validate → two-stage validation, nothing stored on errors
    3. Store → one repository call
    4. Audit → who changed which list

    Storage failures are logged and re-raised, never retried.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        group_workflow: GroupWorkflow,
        validator: Optional[TransactionValidator] = None,
        suggestion_agent: Optional[CategorySuggestionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = transaction_storage
        self._groups = group_workflow
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()
        # Created on first use: needs a Gemini API key
        self._suggestion_agent = suggestion_agent

    async def authorize(self, scope: OwnerScope, user: AuthUser) -> None:
        """
        Raises:
            PermissionDeniedError: If `user` may not address `scope`
            NotFoundError: If the scope's group doesn't exist
        """
        if scope.is_group:
            await self._groups.require_member(scope.owner_id, user)
        elif scope.owner_id != user.uid:
            await self._audit_logger.log_permission_denied(
                action="access transactions",
                entity_type="user",
                entity_id=scope.owner_id,
                actor_id=user.uid,
                reason="private list of another user",
            )
            raise PermissionDeniedError("Not allowed to access another user's transactions")

    async def list_transactions(
        self,
        scope: OwnerScope,
        user: AuthUser,
    ) -> list[Transaction]:
        """All transactions of the scope, newest first."""
        await self.authorize(scope, user)
        transactions = await self._storage.list_transactions(scope)
        return sorted(transactions, key=lambda t: t.date, reverse=True)

    def validate(self, data: TransactionInput) -> tuple[ValidationResult, str]:
        """
        Validate form input without writing.

        Returns:
            (validation_result, user_message)
        """
        result = self._validator.validate(data)
        return result, self._validator.get_user_friendly_summary(result)

    async def _build_fields(
        self,
        scope: OwnerScope,
        data: TransactionInput,
        created_by: str,
        created_by_name: Optional[str],
        actor: AuthUser,
        correlation_id: UUID,
    ):
        try:
            return self._validator.build_fields(
                data,
                created_by=created_by,
                created_by_name=created_by_name,
                group_id=scope.owner_id if scope.is_group else None,
            )
        except TransactionValidationError as e:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in e.result.issues
            ]
            await self._audit_logger.log_validation_failed(
                issues=issues,
                actor_id=actor.uid,
                correlation_id=correlation_id,
            )
            raise

    async def _storage_failed(
        self,
        operation: str,
        error: StorageError,
        scope: OwnerScope,
        correlation_id: UUID,
    ) -> None:
        logger.error(
            "transaction_storage_failed",
            operation=operation,
            scope=scope.collection_path,
            error=str(error),
        )
        await self._audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation, "scope": scope.collection_path},
            correlation_id=correlation_id,
        )

    async def add_transaction(
        self,
        scope: OwnerScope,
        user: AuthUser,
        data: TransactionInput,
    ) -> Transaction:
        """
        Validate and store a new transaction authored by `user`.

        Raises:
            PermissionDeniedError: If the user may not write to the scope
            TransactionValidationError: If the input has errors
            StorageError: If the backend write fails
        """
        correlation_id = create_correlation_id()
        await self.authorize(scope, user)

        fields = await self._build_fields(
            scope, data, user.uid, user.effective_display_name, user, correlation_id
        )

        try:
            transaction_id = await self._storage.create_transaction(scope, fields)
        except StorageError as e:
            await self._storage_failed("create", e, scope, correlation_id)
            raise

        await self._audit_logger.log_transaction_created(
            transaction_id=transaction_id,
            scope_path=scope.collection_path,
            amount=str(fields.amount),
            actor_id=user.uid,
            correlation_id=correlation_id,
        )
        return Transaction(id=transaction_id, **fields.model_dump())

    async def update_transaction(
        self,
        scope: OwnerScope,
        user: AuthUser,
        transaction_id: str,
        data: TransactionInput,
    ) -> Transaction:
        """
        Replace every field of an existing transaction.

        Authorship stays with the original creator.

        Raises:
            NotFoundError: If the transaction doesn't exist in the scope
        """
        correlation_id = create_correlation_id()
        await self.authorize(scope, user)

        existing = await self._storage.get_transaction(scope, transaction_id)
        if existing is None:
            raise NotFoundError(
                f"Transaction not found: {scope.collection_path}/{transaction_id}"
            )

        fields = await self._build_fields(
            scope, data, existing.created_by, existing.created_by_name,
            user, correlation_id,
        )

        try:
            await self._storage.replace_transaction(scope, transaction_id, fields)
        except StorageError as e:
            await self._storage_failed("replace", e, scope, correlation_id)
            raise

        await self._audit_logger.log_transaction_updated(
            transaction_id=transaction_id,
            scope_path=scope.collection_path,
            actor_id=user.uid,
            correlation_id=correlation_id,
        )
        return Transaction(id=transaction_id, **fields.model_dump())

    async def delete_transaction(
        self,
        scope: OwnerScope,
        user: AuthUser,
        transaction_id: str,
    ) -> None:
        correlation_id = create_correlation_id()
        await self.authorize(scope, user)

        try:
            await self._storage.delete_transaction(scope, transaction_id)
        except StorageError as e:
            await self._storage_failed("delete", e, scope, correlation_id)
            raise

        await self._audit_logger.log_transaction_deleted(
            transaction_id=transaction_id,
            scope_path=scope.collection_path,
            actor_id=user.uid,
            correlation_id=correlation_id,
        )

    async def suggest_category(self, description: str) -> Category:
        """
        Get an AI-suggested category for a description.

        Raises:
            CategorySuggestionError: If no suggestion could be produced
        """
        if self._suggestion_agent is None:
            self._suggestion_agent = CategorySuggestionAgent(
                audit_logger=self._audit_logger
            )
        return await self._suggestion_agent.suggest(description)


class AccountFlow:
    """Profile and settings of the signed-in user. Last write wins."""

    def __init__(
        self,
        profile_storage: ProfileStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = profile_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def get_profile(self, user: AuthUser) -> Optional[UserProfile]:
        return await self._storage.get_profile(user.uid)

    async def ensure_profile(self, user: AuthUser) -> UserProfile:
        """Load the profile, creating it on first sign-in."""
        profile = await self._storage.get_profile(user.uid)
        if profile is not None:
            return profile

        email = user.email or ""
        profile = UserProfile(
            user_id=user.uid,
            name=user.display_name or email,
            email=email,
        )
        await self._storage.save_profile(profile)
        await self._audit_logger.log_profile_saved(user.uid)
        return profile

    async def update_profile(
        self,
        user: AuthUser,
        name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> UserProfile:
        """Merge the given fields into the stored profile."""
        profile = await self.ensure_profile(user)

        changes = {"updated_at": utc_now()}
        if name is not None:
            changes["name"] = name.strip()
        if photo_url is not None:
            changes["photo_url"] = photo_url.strip()
        profile = profile.model_copy(update=changes)

        await self._storage.save_profile(profile)
        await self._audit_logger.log_profile_saved(user.uid)
        return profile

    async def get_settings(self, user: AuthUser) -> UserSettings:
        """Stored settings, or defaults when the user never saved any."""
        settings = await self._storage.get_settings(user.uid)
        return settings or UserSettings(user_id=user.uid)

    async def save_settings(self, user: AuthUser, settings: UserSettings) -> UserSettings:
        """Settings are always stored under the signed-in user's id."""
        owned = settings.model_copy(update={"user_id": user.uid})
        await self._storage.save_settings(owned)
        await self._audit_logger.log_settings_saved(user.uid)
        return owned


def create_app_components(
    use_storage: bool = True,
) -> tuple[TransactionFlow, GroupWorkflow, AccountFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (transaction_flow, group_workflow, account_flow, sheets_client)
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            group_storage = GoogleSheetsGroupStorage(sheets_client)
            profile_storage = GoogleSheetsProfileStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False
            sheets_client = None

    if not use_storage:
        transaction_storage = InMemoryTransactionStorage()
        group_storage = InMemoryGroupStorage()
        profile_storage = InMemoryProfileStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    # Create flows
    group_workflow = GroupWorkflow(group_storage, audit_logger=audit_logger)

    transaction_flow = TransactionFlow(
        transaction_storage=transaction_storage,
        group_workflow=group_workflow,
        audit_logger=audit_logger,
    )

    account_flow = AccountFlow(profile_storage, audit_logger=audit_logger)

    return transaction_flow, group_workflow, account_flow, sheets_client
