"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Operations that touch more than one document (accepting an invitation,
deleting a group with its invitations) are single interface methods so
each backend can apply them all-or-nothing.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.group import (
    Group,
    GroupInvitation,
    GroupMember,
    InvitationStatus,
)
from finance_tracker.models.transaction import (
    OwnerScope,
    Transaction,
    TransactionFields,
)
from finance_tracker.models.user import UserProfile, UserSettings


class TransactionStorageInterface(ABC):
    """
    Transactions addressed by owner scope.

    A scope selects users/{uid}/transactions or groups/{gid}/transactions.
    No ordering guarantee: callers sort when order matters.
    """

    @abstractmethod
    async def list_transactions(self, scope: OwnerScope) -> list[Transaction]:
        """
        Return every transaction in the scope's collection.

        Raises:
            StorageError: If the backend read fails
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> Optional[Transaction]:
        """Return one transaction, or None if the scope has no such id."""
        pass

    @abstractmethod
    async def create_transaction(
        self,
        scope: OwnerScope,
        fields: TransactionFields,
    ) -> str:
        """
        Store a new transaction.

        Returns:
            The id assigned to the new transaction
        """
        pass

    @abstractmethod
    async def replace_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
        fields: TransactionFields,
    ) -> None:
        """
        Replace the full field set of an existing transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist in the scope
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> None:
        """
        Delete a transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist in the scope
        """
        pass


class GroupStorageInterface(ABC):
    """Groups and their invitations."""

    @abstractmethod
    async def create_group(self, group: Group) -> str:
        """Store a new group and return its id."""
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        pass

    @abstractmethod
    async def list_groups_for_member(self, user_id: str) -> list[Group]:
        """Groups whose member list contains `user_id`."""
        pass

    @abstractmethod
    async def update_members(
        self,
        group_id: str,
        members: list[GroupMember],
    ) -> None:
        """
        Persist a new member list (member ids follow from it).

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def create_invitation(self, invitation: GroupInvitation) -> str:
        """Store a new invitation and return its id."""
        pass

    @abstractmethod
    async def get_invitation(self, invitation_id: str) -> Optional[GroupInvitation]:
        pass

    @abstractmethod
    async def get_invitation_by_token(self, token: str) -> Optional[GroupInvitation]:
        pass

    @abstractmethod
    async def list_invitations_for_email(self, email: str) -> list[GroupInvitation]:
        """Invitations addressed to exactly this email, any status."""
        pass

    @abstractmethod
    async def list_invitations_for_group(self, group_id: str) -> list[GroupInvitation]:
        pass

    @abstractmethod
    async def set_invitation_status(
        self,
        invitation_id: str,
        status: InvitationStatus,
    ) -> None:
        """
        Raises:
            NotFoundError: If the invitation doesn't exist
        """
        pass

    @abstractmethod
    async def add_member_and_accept_invitation(
        self,
        group_id: str,
        member: GroupMember,
        invitation_id: str,
    ) -> None:
        """
        Append `member` to the group and mark the invitation accepted.

        Both writes happen or neither does. Adding a user who is already
        a member leaves the member list unchanged.

        Raises:
            NotFoundError: If the group or the invitation doesn't exist
        """
        pass

    @abstractmethod
    async def delete_group_cascade(self, group_id: str) -> int:
        """
        Delete the group and all of its pending invitations.

        All deletes happen or none do.

        Returns:
            Number of pending invitations removed

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass


class ProfileStorageInterface(ABC):
    """User profiles and settings, last write wins."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> None:
        """Insert or overwrite the profile."""
        pass

    @abstractmethod
    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        pass

    @abstractmethod
    async def save_settings(self, settings: UserSettings) -> None:
        """Insert or overwrite the settings."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one multi-step action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
