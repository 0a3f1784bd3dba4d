"""
In-Memory Storage Implementation

Used by the test suite and for running the app without a spreadsheet.
Every value is deep-copied on the way in and out, so callers can't mutate
stored state behind the storage's back - the same isolation a remote
backend gives.

Multi-document operations check every precondition before touching
anything, which makes them all-or-nothing.
"""

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
    new_id,
)
from finance_tracker.models.user import UserProfile, UserSettings
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    GroupStorageInterface,
    NotFoundError,
    ProfileStorageInterface,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept per collection path."""

    def __init__(self):
        self._collections: dict[str, dict[str, Transaction]] = {}

    def _collection(self, scope: OwnerScope) -> dict[str, Transaction]:
        return self._collections.setdefault(scope.collection_path, {})

    async def list_transactions(self, scope: OwnerScope) -> list[Transaction]:
        return [t.model_copy(deep=True) for t in self._collection(scope).values()]

    async def get_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> Optional[Transaction]:
        found = self._collection(scope).get(transaction_id)
        return found.model_copy(deep=True) if found else None

    async def create_transaction(
        self,
        scope: OwnerScope,
        fields: TransactionFields,
    ) -> str:
        collection = self._collection(scope)
        transaction_id = new_id()
        if transaction_id in collection:
            raise DuplicateError(f"Transaction already exists: {transaction_id}")
        collection[transaction_id] = Transaction(
            id=transaction_id,
            **fields.model_dump(),
        )
        return transaction_id

    async def replace_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
        fields: TransactionFields,
    ) -> None:
        collection = self._collection(scope)
        if transaction_id not in collection:
            raise NotFoundError(
                f"Transaction not found: {scope.collection_path}/{transaction_id}"
            )
        collection[transaction_id] = Transaction(
            id=transaction_id,
            **fields.model_dump(),
        )

    async def delete_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> None:
        collection = self._collection(scope)
        if collection.pop(transaction_id, None) is None:
            raise NotFoundError(
                f"Transaction not found: {scope.collection_path}/{transaction_id}"
            )


class InMemoryGroupStorage(GroupStorageInterface):
    """Groups and invitations in two dicts keyed by id."""

    def __init__(self):
        self._groups: dict[str, Group] = {}
        self._invitations: dict[str, GroupInvitation] = {}

    def _require_group(self, group_id: str) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    def _require_invitation(self, invitation_id: str) -> GroupInvitation:
        invitation = self._invitations.get(invitation_id)
        if invitation is None:
            raise NotFoundError(f"Invitation not found: {invitation_id}")
        return invitation

    async def create_group(self, group: Group) -> str:
        if group.id in self._groups:
            raise DuplicateError(f"Group already exists: {group.id}")
        self._groups[group.id] = group.model_copy(deep=True)
        return group.id

    async def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def list_groups_for_member(self, user_id: str) -> list[Group]:
        return [
            group.model_copy(deep=True)
            for group in self._groups.values()
            if user_id in group.member_ids
        ]

    async def update_members(
        self,
        group_id: str,
        members: list[GroupMember],
    ) -> None:
        group = self._require_group(group_id)
        group.members = [m.model_copy() for m in members]

    async def create_invitation(self, invitation: GroupInvitation) -> str:
        if invitation.id in self._invitations:
            raise DuplicateError(f"Invitation already exists: {invitation.id}")
        self._invitations[invitation.id] = invitation.model_copy()
        return invitation.id

    async def get_invitation(self, invitation_id: str) -> Optional[GroupInvitation]:
        invitation = self._invitations.get(invitation_id)
        return invitation.model_copy() if invitation else None

    async def get_invitation_by_token(self, token: str) -> Optional[GroupInvitation]:
        for invitation in self._invitations.values():
            if invitation.invite_token == token:
                return invitation.model_copy()
        return None

    async def list_invitations_for_email(self, email: str) -> list[GroupInvitation]:
        return [
            inv.model_copy() for inv in self._invitations.values()
            if inv.invited_email == email
        ]

    async def list_invitations_for_group(self, group_id: str) -> list[GroupInvitation]:
        return [
            inv.model_copy() for inv in self._invitations.values()
            if inv.group_id == group_id
        ]

    async def set_invitation_status(
        self,
        invitation_id: str,
        status: InvitationStatus,
    ) -> None:
        self._require_invitation(invitation_id).status = status

    async def add_member_and_accept_invitation(
        self,
        group_id: str,
        member: GroupMember,
        invitation_id: str,
    ) -> None:
        group = self._require_group(group_id)
        invitation = self._require_invitation(invitation_id)

        if not group.has_member(member.user_id):
            group.members = group.members + [member.model_copy()]
        invitation.status = InvitationStatus.ACCEPTED

    async def delete_group_cascade(self, group_id: str) -> int:
        self._require_group(group_id)

        pending = [
            inv.id for inv in self._invitations.values()
            if inv.group_id == group_id and inv.status == InvitationStatus.PENDING
        ]
        for invitation_id in pending:
            del self._invitations[invitation_id]
        del self._groups[group_id]
        return len(pending)


class InMemoryProfileStorage(ProfileStorageInterface):

    def __init__(self):
        self._profiles: dict[str, UserProfile] = {}
        self._settings: dict[str, UserSettings] = {}

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy() if profile else None

    async def save_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile.model_copy()

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        settings = self._settings.get(user_id)
        return settings.model_copy(deep=True) if settings else None

    async def save_settings(self, settings: UserSettings) -> None:
        self._settings[settings.user_id] = settings.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
