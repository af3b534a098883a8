from supabase import Client
from app.modules.delegation.schemas import DelegationScopeResponse
from app.modules.memberships.service import MembershipService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.core.exceptions import InvalidReferenceError, NotFoundError, store_error
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

SCOPE_COLUMNS = "tenant_id, grantor_member_id, permission_key, can_delegate, created_by, created_at"


class DelegationScopeService:
    """
    Owner-granted allowances for a member to delegate a specific key.

    The service trusts its caller: checking that the caller is the tenant owner
    is done by the route dependency before any method here is invoked.
    """

    def __init__(self, supabase: Client, registry: Optional[DefinitionRegistry] = None):
        self.supabase = supabase
        self.registry = registry or get_definition_registry()
        self.memberships = MembershipService(supabase)

    def _check_grantor(self, tenant_id: str, grantor_member_id: str) -> None:
        membership = self.memberships.get_membership(grantor_member_id)
        if membership.tenant_id != tenant_id:
            raise NotFoundError("Membership not found in tenant")

    def set_scope(
        self,
        tenant_id: str,
        grantor_member_id: str,
        permission_key: str,
        can_delegate: bool,
        created_by: Optional[str] = None
    ) -> DelegationScopeResponse:
        """Upsert the scope row for (tenant, member, key)"""
        if not self.registry.contains(permission_key):
            raise InvalidReferenceError("Unknown permission key", invalid_keys=[permission_key])
        self._check_grantor(tenant_id, grantor_member_id)
        try:
            result = self.supabase.table("delegation_scopes").upsert(
                {
                    "tenant_id": tenant_id,
                    "grantor_member_id": grantor_member_id,
                    "permission_key": permission_key,
                    "can_delegate": can_delegate,
                    "created_by": created_by
                },
                on_conflict="tenant_id,grantor_member_id,permission_key"
            ).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to set delegation scope")

            logger.info(
                f"Delegation scope {permission_key} for member {grantor_member_id} "
                f"set to {can_delegate} in tenant {tenant_id}"
            )
            return DelegationScopeResponse(**result.data[0])
        except Exception as e:
            raise store_error(e)

    def has_scope(self, tenant_id: str, grantor_member_id: str, permission_key: str) -> bool:
        """True only when a row exists with can_delegate set"""
        try:
            result = self.supabase.table("delegation_scopes")\
                .select("permission_key")\
                .eq("tenant_id", tenant_id)\
                .eq("grantor_member_id", grantor_member_id)\
                .eq("permission_key", permission_key)\
                .eq("can_delegate", True)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            raise store_error(e)

    def list_scopes(self, tenant_id: str, grantor_member_id: str) -> List[DelegationScopeResponse]:
        try:
            result = self.supabase.table("delegation_scopes")\
                .select(SCOPE_COLUMNS)\
                .eq("tenant_id", tenant_id)\
                .eq("grantor_member_id", grantor_member_id)\
                .execute()
            return [DelegationScopeResponse(**row) for row in result.data]
        except Exception as e:
            raise store_error(e)

    def list_delegatable_keys(self, tenant_id: str, grantor_member_id: str) -> List[str]:
        return sorted(s.permission_key for s in self.list_scopes(tenant_id, grantor_member_id) if s.can_delegate)

    def remove_scope(self, tenant_id: str, grantor_member_id: str, permission_key: str) -> bool:
        self._check_grantor(tenant_id, grantor_member_id)
        try:
            result = self.supabase.table("delegation_scopes")\
                .delete()\
                .eq("tenant_id", tenant_id)\
                .eq("grantor_member_id", grantor_member_id)\
                .eq("permission_key", permission_key)\
                .execute()
            return bool(result.data)
        except Exception as e:
            raise store_error(e)
