from supabase import Client
from app.modules.memberships.schemas import Membership
from app.core.exceptions import NotFoundError, UnauthenticatedError, store_error
from typing import Optional
import logging

logger = logging.getLogger(__name__)

MEMBERSHIP_COLUMNS = "id, tenant_id, user_id, role, is_active, created_at"


class MembershipService:
    """Read-only view of tenant_members: membership id, tenant and coarse role."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_membership(self, membership_id: str) -> Optional[Membership]:
        try:
            result = self.supabase.table("tenant_members")\
                .select(MEMBERSHIP_COLUMNS)\
                .eq("id", membership_id)\
                .limit(1)\
                .execute()
            if not result.data:
                return None
            return Membership(**result.data[0])
        except Exception as e:
            raise store_error(e)

    def get_membership(self, membership_id: str) -> Membership:
        """Get membership by ID"""
        membership = self.find_membership(membership_id)
        if membership is None:
            raise NotFoundError("Membership not found")
        return membership

    def get_membership_for_user(self, user_id: str, tenant_id: str) -> Membership:
        """Resolve the caller's active membership inside a tenant"""
        if not user_id or not tenant_id:
            raise UnauthenticatedError("User and tenant are required")
        try:
            result = self.supabase.table("tenant_members")\
                .select(MEMBERSHIP_COLUMNS)\
                .eq("user_id", user_id)\
                .eq("tenant_id", tenant_id)\
                .eq("is_active", True)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise store_error(e)
        if not result.data:
            logger.info(f"No active membership for user {user_id} in tenant {tenant_id}")
            raise UnauthenticatedError("Not a member of this tenant")
        return Membership(**result.data[0])

    def get_tenant_id(self, membership_id: str) -> str:
        return self.get_membership(membership_id).tenant_id

    def ensure_tenant_exists(self, tenant_id: str) -> None:
        """A tenant exists once it has at least one membership row"""
        if not tenant_id:
            raise NotFoundError("Tenant not found")
        try:
            result = self.supabase.table("tenant_members")\
                .select("id")\
                .eq("tenant_id", tenant_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise store_error(e)
        if not result.data:
            raise NotFoundError("Tenant not found")
