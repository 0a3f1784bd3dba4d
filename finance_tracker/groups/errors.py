"""Errors raised by the group and invitation workflow."""


class GroupWorkflowError(Exception):
    """Base exception for group workflow operations."""
    pass


class PermissionDeniedError(GroupWorkflowError):
    """The acting user may not perform this operation."""
    pass


class InvitationEmailMismatchError(GroupWorkflowError):
    """Signed-in email differs from the invited one. Nothing was changed."""

    def __init__(self, invited_email: str):
        self.invited_email = invited_email
        super().__init__(
            f"This invitation was sent to {invited_email}. "
            "Please sign in with that email address."
        )


class InvitationNotValidError(GroupWorkflowError):
    """Invitation is expired or already used."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
