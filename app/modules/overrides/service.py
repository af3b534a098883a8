from supabase import Client
from app.modules.overrides.schemas import OverrideResponse
from app.modules.audit.schemas import AuditAction, AuditLogCreate
from app.modules.audit.service import AuditLogger
from app.modules.memberships.service import MembershipService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.core.exceptions import InvalidReferenceError, store_error
from typing import List, Optional
from datetime import datetime, timezone
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class OverrideService:
    def __init__(
        self,
        supabase: Client,
        registry: Optional[DefinitionRegistry] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.supabase = supabase
        self.registry = registry or get_definition_registry()
        self.audit_logger = audit_logger or AuditLogger(supabase)
        self.memberships = MembershipService(supabase)

    def set_override(
        self,
        membership_id: str,
        permission_key: str,
        granted: bool,
        actor_user_id: str
    ) -> OverrideResponse:
        """Grant or revoke one key for a membership (upsert), then audit the change"""
        if not self.registry.contains(permission_key):
            raise InvalidReferenceError("Unknown permission key", invalid_keys=[permission_key])
        # Audit tenant comes from the target membership, not the actor's active tenant
        target = self.memberships.get_membership(membership_id)

        try:
            result = self.supabase.table("member_permission_overrides").upsert(
                {
                    "membership_id": membership_id,
                    "permission_key": permission_key,
                    "granted": granted,
                    "granted_by": actor_user_id,
                    "granted_at": datetime.now(timezone.utc).isoformat()
                },
                on_conflict="membership_id,permission_key"
            ).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to set permission override")

            override = OverrideResponse(**result.data[0])
        except Exception as e:
            raise store_error(e)

        self.audit_logger.append(AuditLogCreate(
            tenant_id=target.tenant_id,
            actor_user_id=actor_user_id,
            target_member_id=membership_id,
            permission_key=permission_key,
            action=AuditAction.GRANTED if granted else AuditAction.REVOKED
        ))
        return override

    def remove_override(self, membership_id: str, permission_key: str) -> bool:
        """Delete an override row. Not audited, matching the existing grant/revoke-only audit trail."""
        # TODO: decide with product whether override removal should write an audit entry
        self.memberships.get_membership(membership_id)
        try:
            result = self.supabase.table("member_permission_overrides")\
                .delete()\
                .eq("membership_id", membership_id)\
                .eq("permission_key", permission_key)\
                .execute()
            return bool(result.data)
        except Exception as e:
            raise store_error(e)

    def list_overrides(self, membership_id: str) -> List[OverrideResponse]:
        """All overrides of a membership"""
        try:
            result = self.supabase.table("member_permission_overrides")\
                .select("membership_id, permission_key, granted, granted_by, granted_at")\
                .eq("membership_id", membership_id)\
                .execute()
            return [OverrideResponse(**row) for row in result.data]
        except Exception as e:
            raise store_error(e)
