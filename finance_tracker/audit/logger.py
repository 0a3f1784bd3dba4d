"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of who changed shared money records
2. Debugging capability
3. Group members can see the history of their group

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog's JSON lines) to stderr."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Google Sheets (for persistence and member visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def log_transaction_created(
        self,
        transaction_id: str,
        scope_path: str,
        amount: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            scope_path=scope_path,
            amount=amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: str,
        scope_path: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            scope_path=scope_path,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        scope_path: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            scope_path=scope_path,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        issues: list[dict],
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected transaction form."""
        await self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Groups and invitations
    # -------------------------------------------------------------------------

    async def log_group_created(
        self,
        group_id: str,
        name: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_group_deleted(
        self,
        group_id: str,
        removed_invitations: int,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            removed_invitations=removed_invitations,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_member_left(
        self,
        group_id: str,
        group_deleted: bool,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_left(
            group_id=group_id,
            group_deleted=group_deleted,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_invitation_created(
        self,
        invitation_id: str,
        group_id: str,
        invited_email: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.invitation_created(
            invitation_id=invitation_id,
            group_id=group_id,
            invited_email=invited_email,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_invitation_accepted(
        self,
        invitation_id: str,
        group_id: str,
        actor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.invitation_accepted(
            invitation_id=invitation_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_invitation_rejected(
        self,
        invitation_id: str,
        group_id: str,
        actor_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.invitation_rejected(
            invitation_id=invitation_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_permission_denied(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a refused action. Warning severity: worth a look, not an outage."""
        await self.log(AuditEventBuilder.permission_denied(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Profile, settings, suggestions
    # -------------------------------------------------------------------------

    async def log_profile_saved(self, actor_id: str) -> None:
        await self.log(AuditEventBuilder.profile_saved(actor_id, what="profile"))

    async def log_settings_saved(self, actor_id: str) -> None:
        await self.log(AuditEventBuilder.profile_saved(actor_id, what="settings"))

    async def log_category_suggested(
        self,
        category: str,
        confidence: float,
        accepted: bool,
    ) -> None:
        await self.log(AuditEventBuilder.category_suggested(
            category=category,
            confidence=confidence,
            accepted=accepted,
        ))

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., accepting an invitation).
    Pass it through all subsequent operations.
    """
    return uuid4()
