"""Audit logging service."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""


@dataclass
class AuditService:
    """Service for recording admin actions."""

    repository: AuditRepository

    def record_event(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: dict[str, object] | None = None,
    ) -> None:
        """Persist an audit event without failing the audited action."""
        try:
            self.repository.create_event(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
            )
        except Exception:
            logger.exception(
                "Failed to record audit event",
                extra={"action": action, "resource_id": str(resource_id)},
            )
