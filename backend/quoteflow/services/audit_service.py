"""Audit service for recording state changes to invoices and payments."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from quoteflow.repositories.audit_log_repository import AuditLogRepository


class AuditService:
    """Service for recording audit trail entries.

    Entries are staged in the caller's transaction and commit or roll back
    with the change they describe.
    """

    def __init__(self, db: Session):
        self.repo = AuditLogRepository(db)

    def log_create(
        self,
        resource_type: str,
        resource_id: UUID,
        actor_type: str = "system",
        actor_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Log a resource creation event."""
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action="created",
            changes=data or {},
            actor_type=actor_type,
            actor_id=actor_id,
        )

    def log_status_change(
        self,
        resource_type: str,
        resource_id: UUID,
        old_status: str | None,
        new_status: str,
        field: str = "status",
        actor_type: str = "system",
        actor_id: str | None = None,
    ) -> None:
        """Log a status change event."""
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action="status_changed",
            changes={field: {"old": old_status, "new": new_status}},
            actor_type=actor_type,
            actor_id=actor_id,
        )

    def log_action(
        self,
        resource_type: str,
        resource_id: UUID,
        action: str,
        changes: dict[str, Any] | None = None,
        actor_type: str = "system",
        actor_id: str | None = None,
    ) -> None:
        """Log a named ledger action (payment_applied, payment_removed, voided)."""
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            changes=changes or {},
            actor_type=actor_type,
            actor_id=actor_id,
        )
