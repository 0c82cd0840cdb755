"""Supabase repository for audit events."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from phenotype_live.adapters.supabase_errors import execute
from phenotype_live.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase-backed audit repository."""

    client: Client

    def create_event(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""
        execute(
            self.client.table("audit_logs").insert(
                {
                    "action": action,
                    "resource_type": resource_type,
                    "resource_id": str(resource_id),
                    "details": details,
                }
            ),
            "record audit event",
        )
