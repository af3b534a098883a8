from supabase import Client
from app.modules.audit.schemas import AuditLogCreate, AuditLogEntry
from app.core.exceptions import store_error
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only writer/reader for delegation_audit_log."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def append(self, entry: AuditLogCreate) -> Optional[AuditLogEntry]:
        """Best-effort write: a failure is logged and never propagates to the caller"""
        try:
            result = self.supabase.table("delegation_audit_log").insert({
                "tenant_id": entry.tenant_id,
                "actor_user_id": entry.actor_user_id,
                "target_member_id": entry.target_member_id,
                "permission_key": entry.permission_key,
                "action": entry.action.value
            }).execute()
            if not result.data:
                logger.warning(
                    f"Audit insert returned no row for {entry.action.value} "
                    f"{entry.permission_key} on member {entry.target_member_id}"
                )
                return None
            return AuditLogEntry(**result.data[0])
        except Exception as e:
            logger.error(
                f"Failed to write audit entry ({entry.action.value} {entry.permission_key} "
                f"on member {entry.target_member_id}): {e}"
            )
            return None

    def list_recent(self, tenant_id: str, limit: int = 50) -> List[AuditLogEntry]:
        """List a tenant's audit entries, newest first"""
        try:
            result = self.supabase.table("delegation_audit_log")\
                .select("*")\
                .eq("tenant_id", tenant_id)\
                .order("created_at", desc=True)\
                .limit(limit)\
                .execute()
            return [AuditLogEntry(**row) for row in result.data]
        except Exception as e:
            raise store_error(e)
