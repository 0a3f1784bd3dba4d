"""
Group and Invitation Models

A group is a named set of members sharing one transaction list.
Members join by accepting a time-boxed invitation.

DESIGN DECISION: `member_ids` is derived from `members`.
Storing both invites drift; one is the projection of the other.
"""

import secrets
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from finance_tracker.models.transaction import ensure_aware, new_id, utc_now


def generate_invite_token() -> str:
    """Unguessable, URL-safe invitation token."""
    return secrets.token_urlsafe(32)


class MemberRole(str, Enum):
    """Role of a member inside a group."""
    ADMIN = "admin"
    MEMBER = "member"


class InvitationStatus(str, Enum):
    """
    Invitation lifecycle.

    pending -> accepted | rejected. EXPIRED is never written to storage;
    it is derived at read time from `expires_at`.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class GroupMember(BaseModel):
    """A member inside a group's member list. Not independently addressable."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    email: str
    display_name: str
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = Field(default_factory=utc_now)

    @field_validator('joined_at')
    @classmethod
    def make_joined_at_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class GroupInvitation(BaseModel):
    """An offer for one email address to join one group."""

    id: str = Field(default_factory=new_id)
    group_id: str = Field(..., min_length=1)
    group_name: str = Field(
        ...,
        description="Snapshot of the group name when the invitation was sent"
    )
    invited_by: str
    invited_by_name: str
    invited_email: str = Field(..., min_length=3)
    status: InvitationStatus = InvitationStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    invite_token: str = Field(default_factory=generate_invite_token)

    @field_validator('created_at', 'expires_at')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Expired strictly after the expiry instant."""
        now = ensure_aware(now or utc_now())
        return self.expires_at < now

    def effective_status(self, now: Optional[datetime] = None) -> InvitationStatus:
        """Status as seen at `now`, with expiry applied to pending invitations."""
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED
        return self.status

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.effective_status(now) == InvitationStatus.PENDING


class Group(BaseModel):
    """A named collection of members sharing transactions."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    created_by: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    members: list[GroupMember] = Field(default_factory=list)

    # Always empty: never stored or loaded. Invitations live in their own
    # collection; use `GroupWorkflow.list_group_invitations`.
    invitations: list[GroupInvitation] = Field(default_factory=list)

    @field_validator('created_at')
    @classmethod
    def make_created_at_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @computed_field
    @property
    def member_ids(self) -> list[str]:
        return [member.user_id for member in self.members]

    def has_member(self, user_id: str) -> bool:
        return any(member.user_id == user_id for member in self.members)

    def get_member(self, user_id: str) -> Optional[GroupMember]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_admin(self, user_id: str) -> bool:
        member = self.get_member(user_id)
        return member is not None and member.role == MemberRole.ADMIN
