"""Tests for groups, membership and the invitation lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from finance_tracker.groups import (
    InvitationEmailMismatchError,
    InvitationNotValidError,
    PermissionDeniedError,
)
from finance_tracker.groups.workflow import REASON_EXPIRED, REASON_USED
from finance_tracker.models import AuditEventType, InvitationStatus, MemberRole
from finance_tracker.services.storage import NotFoundError
from finance_tracker.validation import GroupValidationError


NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


@pytest_asyncio.fixture
async def family(group_workflow, alice):
    return await group_workflow.create_group("  Family  ", "Household", alice)


@pytest_asyncio.fixture
async def bob_invitation(group_workflow, family, alice):
    return await group_workflow.create_invitation(family, alice, "bob@example.com", now=NOW)


class TestGroups:

    @pytest.mark.asyncio
    async def test_creator_is_sole_admin(self, family, alice, audit_storage):
        assert family.name == "Family"
        assert family.member_ids == [alice.uid]
        assert family.members[0].role == MemberRole.ADMIN
        assert family.created_by == alice.uid
        assert AuditEventType.GROUP_CREATED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, group_workflow, alice, group_storage):
        with pytest.raises(GroupValidationError):
            await group_workflow.create_group("   ", "", alice)
        assert await group_storage.list_groups_for_member(alice.uid) == []

    @pytest.mark.asyncio
    async def test_list_groups_for_user(self, group_workflow, family, alice, bob):
        await group_workflow.create_group("Trip", "", alice)
        names = [g.name for g in await group_workflow.list_groups_for_user(alice.uid)]
        assert sorted(names) == ["Family", "Trip"]
        assert await group_workflow.list_groups_for_user(bob.uid) == []

    @pytest.mark.asyncio
    async def test_require_member(self, group_workflow, family, alice, bob, audit_storage):
        assert (await group_workflow.require_member(family.id, alice)).id == family.id
        with pytest.raises(PermissionDeniedError):
            await group_workflow.require_member(family.id, bob)
        assert AuditEventType.PERMISSION_DENIED in event_types(audit_storage)
        with pytest.raises(NotFoundError):
            await group_workflow.require_member("missing", alice)


class TestLeaveAndDelete:

    @pytest.mark.asyncio
    async def test_member_leaves(self, group_workflow, family, bob_invitation, alice, bob):
        await group_workflow.accept_invitation(bob_invitation, bob, now=NOW)

        deleted = await group_workflow.leave_group(family, bob)

        assert deleted is False
        group = await group_workflow.get_group(family.id)
        assert group.member_ids == [alice.uid]

    @pytest.mark.asyncio
    async def test_last_member_leaving_deletes_group(
        self, group_workflow, family, bob_invitation, alice, group_storage
    ):
        deleted = await group_workflow.leave_group(family, alice)

        assert deleted is True
        assert await group_workflow.get_group(family.id) is None
        assert await group_storage.get_invitation(bob_invitation.id) is None

    @pytest.mark.asyncio
    async def test_non_member_cannot_leave(self, group_workflow, family, bob):
        with pytest.raises(PermissionDeniedError):
            await group_workflow.leave_group(family, bob)

    @pytest.mark.asyncio
    async def test_creator_deletes_group_and_pending_invitations(
        self, group_workflow, family, bob_invitation, alice, carol, group_storage, audit_storage
    ):
        carol_invitation = await group_workflow.create_invitation(
            family, alice, "carol@example.com", now=NOW
        )
        await group_workflow.reject_invitation(carol_invitation, carol)

        removed = await group_workflow.delete_group(family, alice)

        assert removed == 1
        assert await group_workflow.get_group(family.id) is None
        assert await group_storage.get_invitation(bob_invitation.id) is None
        # Answered invitations stay as history
        kept = await group_storage.get_invitation(carol_invitation.id)
        assert kept.status == InvitationStatus.REJECTED
        assert AuditEventType.GROUP_DELETED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_only_creator_deletes(self, group_workflow, family, bob_invitation, bob):
        await group_workflow.accept_invitation(bob_invitation, bob, now=NOW)
        with pytest.raises(PermissionDeniedError):
            await group_workflow.delete_group(family, bob)
        assert await group_workflow.get_group(family.id) is not None


class TestInvitations:

    @pytest.mark.asyncio
    async def test_invitation_fields(self, bob_invitation, family, alice):
        assert bob_invitation.group_id == family.id
        assert bob_invitation.group_name == "Family"
        assert bob_invitation.invited_by == alice.uid
        assert bob_invitation.invited_by_name == "Alice"
        assert bob_invitation.status == InvitationStatus.PENDING
        assert bob_invitation.expires_at - bob_invitation.created_at == timedelta(days=7)
        assert len(bob_invitation.invite_token) >= 32

    @pytest.mark.asyncio
    async def test_non_member_cannot_invite(self, group_workflow, family, bob):
        with pytest.raises(PermissionDeniedError):
            await group_workflow.create_invitation(family, bob, "carol@example.com")

    @pytest.mark.asyncio
    async def test_malformed_email(self, group_workflow, family, alice):
        with pytest.raises(GroupValidationError):
            await group_workflow.create_invitation(family, alice, "not-an-email")

    @pytest.mark.asyncio
    async def test_accept_adds_member(self, group_workflow, bob_invitation, family, bob, group_storage, audit_storage):
        group = await group_workflow.accept_invitation(bob_invitation, bob, now=NOW + timedelta(days=1))

        assert group.member_ids == ["alice", "bob"]
        assert group.get_member("bob").role == MemberRole.MEMBER
        stored = await group_storage.get_invitation(bob_invitation.id)
        assert stored.status == InvitationStatus.ACCEPTED
        assert AuditEventType.INVITATION_ACCEPTED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_accept_on_expiry_instant(self, group_workflow, bob_invitation, bob):
        group = await group_workflow.accept_invitation(
            bob_invitation, bob, now=bob_invitation.expires_at
        )
        assert group.has_member(bob.uid)

    @pytest.mark.asyncio
    async def test_expired_invitation(self, group_workflow, bob_invitation, family, bob, group_storage):
        """Accepting eight days after a seven-day invitation fails."""
        with pytest.raises(InvitationNotValidError) as exc:
            await group_workflow.accept_invitation(bob_invitation, bob, now=NOW + timedelta(days=8))

        assert exc.value.reason == REASON_EXPIRED
        group = await group_workflow.get_group(family.id)
        assert not group.has_member(bob.uid)
        stored = await group_storage.get_invitation(bob_invitation.id)
        assert stored.status == InvitationStatus.PENDING

    @pytest.mark.asyncio
    async def test_reinvite_after_expiry(self, group_workflow, bob_invitation, family, alice, bob):
        later = NOW + timedelta(days=8)
        with pytest.raises(InvitationNotValidError):
            await group_workflow.accept_invitation(bob_invitation, bob, now=later)

        fresh = await group_workflow.create_invitation(family, alice, bob.email, now=later)
        group = await group_workflow.accept_invitation(fresh, bob, now=later + timedelta(days=2))

        assert bob.uid in group.member_ids
        stored = await group_workflow.get_invitation_by_token(fresh.invite_token)
        assert stored.status == InvitationStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_email_mismatch(self, group_workflow, bob_invitation, family, carol, audit_storage):
        with pytest.raises(InvitationEmailMismatchError) as exc:
            await group_workflow.accept_invitation(bob_invitation, carol, now=NOW)

        assert exc.value.invited_email == "bob@example.com"
        group = await group_workflow.get_group(family.id)
        assert not group.has_member(carol.uid)
        assert AuditEventType.PERMISSION_DENIED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_email_match_is_exact(self, group_workflow, family, alice, bob):
        invitation = await group_workflow.create_invitation(family, alice, "Bob@Example.com", now=NOW)
        with pytest.raises(InvitationEmailMismatchError):
            await group_workflow.accept_invitation(invitation, bob, now=NOW)

    @pytest.mark.asyncio
    async def test_cannot_accept_twice(self, group_workflow, bob_invitation, bob):
        await group_workflow.accept_invitation(bob_invitation, bob, now=NOW)
        with pytest.raises(InvitationNotValidError) as exc:
            await group_workflow.accept_invitation(bob_invitation, bob, now=NOW)
        assert exc.value.reason == REASON_USED

    @pytest.mark.asyncio
    async def test_reject(self, group_workflow, bob_invitation, family, bob, group_storage):
        await group_workflow.reject_invitation(bob_invitation, bob)

        stored = await group_storage.get_invitation(bob_invitation.id)
        assert stored.status == InvitationStatus.REJECTED
        assert not (await group_workflow.get_group(family.id)).has_member(bob.uid)
        with pytest.raises(InvitationNotValidError):
            await group_workflow.accept_invitation(bob_invitation, bob, now=NOW)

    @pytest.mark.asyncio
    async def test_reject_twice(self, group_workflow, bob_invitation, bob):
        await group_workflow.reject_invitation(bob_invitation, bob)
        with pytest.raises(InvitationNotValidError):
            await group_workflow.reject_invitation(bob_invitation, bob)

    @pytest.mark.asyncio
    async def test_only_invitee_can_reject(
        self, group_workflow, bob_invitation, alice, carol, group_storage, audit_storage
    ):
        for outsider in (carol, alice):
            with pytest.raises(InvitationEmailMismatchError):
                await group_workflow.reject_invitation(bob_invitation, outsider)

        stored = await group_storage.get_invitation(bob_invitation.id)
        assert stored.status == InvitationStatus.PENDING
        assert AuditEventType.PERMISSION_DENIED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_reject_after_expiry(self, group_workflow, bob_invitation, bob, group_storage):
        """An expired invitation can still be dismissed by its invitee."""
        await group_workflow.reject_invitation(bob_invitation, bob)
        stored = await group_storage.get_invitation(bob_invitation.id)
        assert stored.status == InvitationStatus.REJECTED

    @pytest.mark.asyncio
    async def test_pending_invitations_for_email(self, group_workflow, bob_invitation, family, alice):
        await group_workflow.create_invitation(
            family, alice, "bob@example.com", now=NOW - timedelta(days=30)
        )
        pending = await group_workflow.list_pending_invitations("bob@example.com", now=NOW)
        assert [inv.id for inv in pending] == [bob_invitation.id]
        assert await group_workflow.list_pending_invitations("BOB@example.com", now=NOW) == []

    @pytest.mark.asyncio
    async def test_group_invitations_members_only(self, group_workflow, bob_invitation, family, alice, carol):
        invitations = await group_workflow.list_group_invitations(family, alice)
        assert [inv.id for inv in invitations] == [bob_invitation.id]
        with pytest.raises(PermissionDeniedError):
            await group_workflow.list_group_invitations(family, carol)

    @pytest.mark.asyncio
    async def test_lookup_by_token(self, group_workflow, bob_invitation):
        found = await group_workflow.get_invitation_by_token(bob_invitation.invite_token)
        assert found.id == bob_invitation.id
        assert await group_workflow.get_invitation_by_token("nope") is None


class TestInviteLinks:

    def test_generate_link(self, group_workflow):
        link = group_workflow.generate_invite_link("abc123", base_url="https://app.example/")
        assert link == "https://app.example/dashboard/groups/invite/abc123?invite=abc123"

    @pytest.mark.asyncio
    async def test_generated_link_opens_invitation(self, group_workflow, bob_invitation):
        link = group_workflow.generate_invite_link(bob_invitation.invite_token)
        token = group_workflow.extract_invite_token(link)
        assert (await group_workflow.get_invitation_by_token(token)).id == bob_invitation.id

    @pytest.mark.parametrize("text", [
        "abc123",
        "  abc123  ",
        "https://app.example/dashboard/groups/invite/abc123",
        "https://app.example/dashboard/groups/invite/abc123/",
        "https://app.example/dashboard/groups/invite/abc123?utm=x",
        "https://app.example/dashboard/groups/invite/abc123?invite=abc123",
        "https://app.example/?invite=abc123",
        "https://app.example/?utm=x&invite=abc123",
    ])
    def test_extract_token(self, group_workflow, text):
        assert group_workflow.extract_invite_token(text) == "abc123"

    def test_extract_empty(self, group_workflow):
        assert group_workflow.extract_invite_token("") == ""

    @pytest.mark.asyncio
    async def test_validity_reasons(self, group_workflow, bob_invitation):
        assert group_workflow.is_invitation_valid(bob_invitation, NOW) == (True, None)
        assert group_workflow.is_invitation_valid(
            bob_invitation, NOW + timedelta(days=8)
        ) == (False, REASON_EXPIRED)
        used = bob_invitation.model_copy(update={"status": InvitationStatus.ACCEPTED})
        assert group_workflow.is_invitation_valid(used, NOW) == (False, REASON_USED)
