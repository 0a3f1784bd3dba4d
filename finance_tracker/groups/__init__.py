"""Group and invitation workflow package."""

from finance_tracker.groups.errors import (
    GroupWorkflowError,
    InvitationEmailMismatchError,
    InvitationNotValidError,
    PermissionDeniedError,
)
from finance_tracker.groups.workflow import GroupWorkflow

__all__ = [
    "GroupWorkflow",
    "GroupWorkflowError",
    "InvitationEmailMismatchError",
    "InvitationNotValidError",
    "PermissionDeniedError",
]
