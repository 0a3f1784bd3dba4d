"""
Group & Invitation Workflow

The only multi-step state machine in the system:

    create_invitation -> pending -> accepted  (member added)
                                 -> rejected  (no effect)
                                 -> expired   (derived from expires_at)

DESIGN DECISION: Authorization is checked here, not in the UI.
Every operation receives the acting user and refuses what that user
may not do, so a hand-crafted request can't skip the checks.

DESIGN DECISION: Invitations are re-read from storage before acting on
them. The copy a page rendered may be stale by the time the user clicks.
"""

from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import get_settings
from finance_tracker.groups.errors import (
    InvitationEmailMismatchError,
    InvitationNotValidError,
    PermissionDeniedError,
)
from finance_tracker.models.group import (
    Group,
    GroupInvitation,
    GroupMember,
    InvitationStatus,
    MemberRole,
)
from finance_tracker.models.transaction import ensure_aware, utc_now
from finance_tracker.models.user import AuthUser
from finance_tracker.services.storage import GroupStorageInterface, NotFoundError
from finance_tracker.validation import validate_group_name, validate_invite_email


logger = structlog.get_logger(__name__)

INVITE_PATH = "/dashboard/groups/invite/"
INVITE_PARAM = "invite"
REASON_EXPIRED = "This invitation has expired"
REASON_USED = "This invitation has already been used"


class GroupWorkflow:
    """Creates groups, manages membership and runs invitations."""

    def __init__(
        self,
        storage: GroupStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = get_settings().app

    # =========================================================================
    # GROUPS
    # =========================================================================

    async def create_group(
        self,
        name: str,
        description: str,
        creator: AuthUser,
    ) -> Group:
        """
        Create a group whose only member is its creator, as admin.

        Raises:
            GroupValidationError: If the trimmed name is empty
        """
        group = Group(
            name=validate_group_name(name),
            description=(description or "").strip(),
            created_by=creator.uid,
            members=[GroupMember(
                user_id=creator.uid,
                email=creator.email or "",
                display_name=creator.effective_display_name,
                role=MemberRole.ADMIN,
            )],
        )
        await self._storage.create_group(group)
        await self._audit.log_group_created(group.id, group.name, creator.uid)
        return group

    async def get_group(self, group_id: str) -> Optional[Group]:
        return await self._storage.get_group(group_id)

    async def list_groups_for_user(self, user_id: str) -> list[Group]:
        groups = await self._storage.list_groups_for_member(user_id)
        return sorted(groups, key=lambda g: g.created_at, reverse=True)

    async def require_member(self, group_id: str, user: AuthUser) -> Group:
        """
        Return the group if `user` currently belongs to it.

        Raises:
            NotFoundError: If the group doesn't exist
            PermissionDeniedError: If the user is not a member
        """
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        if not group.has_member(user.uid):
            await self._deny("access group", "group", group_id, user, "not a member")
        return group

    async def leave_group(self, group: Group, user: AuthUser) -> bool:
        """
        Remove `user` from the group.

        The last member leaving deletes the group (and its pending
        invitations).

        Returns:
            True if the group was deleted
        """
        current = await self.require_member(group.id, user)
        remaining = [m for m in current.members if m.user_id != user.uid]

        if not remaining:
            await self._storage.delete_group_cascade(current.id)
            deleted = True
        else:
            await self._storage.update_members(current.id, remaining)
            deleted = False

        logger.info("member_left", group_id=current.id, user_id=user.uid, group_deleted=deleted)
        await self._audit.log_member_left(current.id, deleted, user.uid)
        return deleted

    async def delete_group(self, group: Group, requester: AuthUser) -> int:
        """
        Delete the group and its pending invitations in one atomic write.

        Only the creator may delete a group.

        Returns:
            Number of pending invitations removed

        Raises:
            PermissionDeniedError: If the requester didn't create the group
        """
        current = await self._storage.get_group(group.id)
        if current is None:
            raise NotFoundError(f"Group not found: {group.id}")
        if current.created_by != requester.uid:
            await self._deny(
                "delete group", "group", current.id, requester,
                "only the creator can delete a group",
            )

        removed = await self._storage.delete_group_cascade(current.id)
        await self._audit.log_group_deleted(current.id, removed, requester.uid)
        return removed

    # =========================================================================
    # INVITATIONS
    # =========================================================================

    async def create_invitation(
        self,
        group: Group,
        inviter: AuthUser,
        invited_email: str,
        now: Optional[datetime] = None,
    ) -> GroupInvitation:
        """
        Invite an email address to the group.

        The invitation expires `invitation_expiry_days` after creation.

        Raises:
            GroupValidationError: If the email is malformed
            PermissionDeniedError: If the inviter is not a member
        """
        email = validate_invite_email(invited_email)
        current = await self.require_member(group.id, inviter)

        created_at = ensure_aware(now or utc_now())
        invitation = GroupInvitation(
            group_id=current.id,
            group_name=current.name,
            invited_by=inviter.uid,
            invited_by_name=inviter.effective_display_name,
            invited_email=email,
            created_at=created_at,
            expires_at=created_at + timedelta(days=self._settings.invitation_expiry_days),
        )
        await self._storage.create_invitation(invitation)
        await self._audit.log_invitation_created(
            invitation.id, current.id, email, inviter.uid
        )
        return invitation

    def generate_invite_link(self, token: str, base_url: Optional[str] = None) -> str:
        """
        e.g. https://app.example/dashboard/groups/invite/{token}?invite={token}

        The query parameter is what the app reads to pre-fill the join page.
        """
        origin = (base_url or self._settings.base_url).rstrip("/")
        query = urlencode({INVITE_PARAM: token})
        return f"{origin}{INVITE_PATH}{token}?{query}"

    @staticmethod
    def extract_invite_token(link_or_token: str) -> str:
        """Accept a full invitation link, a `?invite=` link or the bare token."""
        text = (link_or_token or "").strip()
        if INVITE_PATH in text:
            text = text.split(INVITE_PATH, 1)[1]
            return text.split("?", 1)[0].strip("/")
        if "?" in text:
            tokens = parse_qs(urlsplit(text).query).get(INVITE_PARAM)
            if tokens:
                return tokens[0].strip()
        return text.split("?", 1)[0].strip("/")

    async def get_invitation_by_token(self, token: str) -> Optional[GroupInvitation]:
        return await self._storage.get_invitation_by_token(token)

    @staticmethod
    def is_invitation_valid(
        invitation: GroupInvitation,
        now: Optional[datetime] = None,
    ) -> tuple[bool, Optional[str]]:
        """
        (valid, reason). Valid while pending and `now <= expires_at`.
        """
        if invitation.is_expired(now):
            return False, REASON_EXPIRED
        if invitation.status != InvitationStatus.PENDING:
            return False, REASON_USED
        return True, None

    async def list_pending_invitations(
        self,
        email: str,
        now: Optional[datetime] = None,
    ) -> list[GroupInvitation]:
        """Still-valid invitations addressed to this exact email."""
        invitations = await self._storage.list_invitations_for_email(email)
        return [inv for inv in invitations if inv.is_valid(now)]

    async def list_group_invitations(
        self,
        group: Group,
        requester: AuthUser,
    ) -> list[GroupInvitation]:
        """All invitations of a group, newest first. Members only."""
        await self.require_member(group.id, requester)
        invitations = await self._storage.list_invitations_for_group(group.id)
        return sorted(invitations, key=lambda inv: inv.created_at, reverse=True)

    async def _fresh_invitation(self, invitation: GroupInvitation) -> GroupInvitation:
        current = await self._storage.get_invitation(invitation.id)
        if current is None:
            raise NotFoundError(f"Invitation not found: {invitation.id}")
        return current

    async def _require_invitee(
        self,
        invitation: GroupInvitation,
        user: AuthUser,
        action: str,
        correlation_id: UUID,
    ) -> None:
        """Only the exact invited email may answer an invitation."""
        if user.email != invitation.invited_email:
            await self._audit.log_permission_denied(
                action=action,
                entity_type="invitation",
                entity_id=invitation.id,
                actor_id=user.uid,
                reason="email mismatch",
                correlation_id=correlation_id,
            )
            raise InvitationEmailMismatchError(invitation.invited_email)

    async def accept_invitation(
        self,
        invitation: GroupInvitation,
        user: AuthUser,
        now: Optional[datetime] = None,
    ) -> Group:
        """
        Join the group through an invitation.

        The member is added and the invitation marked accepted in one
        atomic write. On any error, membership is left unchanged.

        Raises:
            InvitationEmailMismatchError: If `user.email` isn't exactly the invited email
            InvitationNotValidError: If the invitation expired or was already used
        """
        correlation_id = create_correlation_id()
        current = await self._fresh_invitation(invitation)
        await self._require_invitee(current, user, "accept invitation", correlation_id)

        valid, reason = self.is_invitation_valid(current, now)
        if not valid:
            logger.info("invitation_not_valid", invitation_id=current.id, reason=reason)
            raise InvitationNotValidError(reason)

        member = GroupMember(
            user_id=user.uid,
            email=user.email or "",
            display_name=user.effective_display_name,
            role=MemberRole.MEMBER,
            joined_at=ensure_aware(now or utc_now()),
        )
        await self._storage.add_member_and_accept_invitation(
            current.group_id, member, current.id
        )
        await self._audit.log_invitation_accepted(
            current.id, current.group_id, user.uid, correlation_id
        )

        group = await self._storage.get_group(current.group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {current.group_id}")
        return group

    async def reject_invitation(
        self,
        invitation: GroupInvitation,
        user: AuthUser,
    ) -> None:
        """
        Decline an invitation. Membership is not touched.

        Raises:
            InvitationEmailMismatchError: If `user.email` isn't exactly the invited email
            InvitationNotValidError: If it was already accepted or rejected
        """
        correlation_id = create_correlation_id()
        current = await self._fresh_invitation(invitation)
        await self._require_invitee(current, user, "reject invitation", correlation_id)
        if current.status != InvitationStatus.PENDING:
            raise InvitationNotValidError(REASON_USED)

        await self._storage.set_invitation_status(current.id, InvitationStatus.REJECTED)
        await self._audit.log_invitation_rejected(
            current.id, current.group_id, user.uid, correlation_id
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _deny(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        user: AuthUser,
        reason: str,
    ) -> None:
        await self._audit.log_permission_denied(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=user.uid,
            reason=reason,
        )
        raise PermissionDeniedError(f"Not allowed to {action}: {reason}")
