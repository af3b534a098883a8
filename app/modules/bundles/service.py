from supabase import Client
from app.modules.bundles.schemas import (
    BundleCreate, BundleUpdate, BundleResponse, BundleWithPermissionsResponse,
    BundleAssignmentResponse
)
from app.modules.memberships.service import MembershipService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.core.exceptions import (
    NotFoundError, InvalidReferenceError, ConflictError, store_error
)
from typing import Iterable, List, Optional, Set
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def _dedupe(keys: Iterable[str]) -> List[str]:
    seen = []
    for key in keys:
        if key not in seen:
            seen.append(key)
    return seen


class BundleService:
    def __init__(self, supabase: Client, registry: Optional[DefinitionRegistry] = None):
        self.supabase = supabase
        self.registry = registry or get_definition_registry()
        self.memberships = MembershipService(supabase)

    def _validate_keys(self, permission_keys: Iterable[str]) -> List[str]:
        """Every key must exist in the definition registry; nothing is written otherwise."""
        keys = _dedupe(permission_keys)
        unknown = self.registry.unknown_keys(keys)
        if unknown:
            raise InvalidReferenceError("Unknown permission keys", invalid_keys=unknown)
        return keys

    def create_bundle(
        self,
        tenant_id: str,
        bundle_data: BundleCreate,
        created_by: Optional[str] = None
    ) -> BundleWithPermissionsResponse:
        """Create a bundle and its permission keys as one atomic write"""
        self.memberships.ensure_tenant_exists(tenant_id)
        keys = self._validate_keys(bundle_data.permission_keys)
        try:
            result = self.supabase.rpc("create_permission_bundle", {
                "p_tenant_id": tenant_id,
                "p_name": bundle_data.name,
                "p_description": bundle_data.description,
                "p_created_by": created_by,
                "p_permission_keys": keys
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create bundle")

            bundle = result.data[0] if isinstance(result.data, list) else result.data
            logger.info(f"Created bundle {bundle['id']} in tenant {tenant_id} with {len(keys)} permissions")
            return BundleWithPermissionsResponse(**bundle, permission_keys=sorted(keys))
        except Exception as e:
            raise store_error(e)

    def get_bundle(self, bundle_id: str) -> BundleResponse:
        """Get bundle by ID"""
        try:
            result = self.supabase.table("permission_bundles")\
                .select("*")\
                .eq("id", bundle_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise NotFoundError("Bundle not found")

            return BundleResponse(**result.data[0])
        except Exception as e:
            raise store_error(e)

    def get_tenant_bundle(self, bundle_id: str, tenant_id: str) -> BundleResponse:
        """Get bundle by ID, hiding bundles that belong to another tenant"""
        bundle = self.get_bundle(bundle_id)
        if bundle.tenant_id != tenant_id:
            raise NotFoundError("Bundle not found")
        return bundle

    def get_bundle_with_permissions(self, bundle_id: str) -> BundleWithPermissionsResponse:
        bundle = self.get_bundle(bundle_id)
        return BundleWithPermissionsResponse(
            **bundle.model_dump(),
            permission_keys=self.get_bundle_permission_keys(bundle_id)
        )

    def list_bundles(self, tenant_id: str, limit: int = 100, offset: int = 0) -> List[BundleResponse]:
        """List bundles of a tenant, newest first"""
        try:
            result = self.supabase.table("permission_bundles")\
                .select("*")\
                .eq("tenant_id", tenant_id)\
                .order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [BundleResponse(**bundle) for bundle in result.data]
        except Exception as e:
            raise store_error(e)

    def get_bundle_permission_keys(self, bundle_id: str) -> List[str]:
        return sorted(self.get_permission_keys_for_bundles([bundle_id]))

    def get_permission_keys_for_bundles(self, bundle_ids: List[str]) -> Set[str]:
        """Union of the permission keys of all given bundles"""
        if not bundle_ids:
            return set()
        try:
            result = self.supabase.table("bundle_permissions")\
                .select("bundle_id, permission_key")\
                .in_("bundle_id", bundle_ids)\
                .execute()
            return {row["permission_key"] for row in result.data} if result.data else set()
        except Exception as e:
            raise store_error(e)

    def update_bundle(self, bundle_id: str, bundle_data: BundleUpdate) -> BundleResponse:
        """Update bundle name/description"""
        try:
            update_data = {}
            if bundle_data.name:
                update_data["name"] = bundle_data.name
            if bundle_data.description is not None:
                update_data["description"] = bundle_data.description
            if not update_data:
                return self.get_bundle(bundle_id)

            result = self.supabase.table("permission_bundles")\
                .update(update_data)\
                .eq("id", bundle_id)\
                .execute()

            if not result.data:
                raise NotFoundError("Bundle not found")

            return BundleResponse(**result.data[0])
        except Exception as e:
            raise store_error(e)

    def replace_bundle_permissions(self, bundle_id: str, permission_keys: List[str]) -> List[str]:
        """Replace all permission keys of a bundle in a single transaction"""
        self.get_bundle(bundle_id)
        keys = self._validate_keys(permission_keys)
        try:
            self.supabase.rpc("replace_bundle_permissions", {
                "p_bundle_id": bundle_id,
                "p_permission_keys": keys
            }).execute()
        except Exception as e:
            raise store_error(e)
        logger.info(f"Replaced permissions of bundle {bundle_id}: {len(keys)} keys")
        return sorted(keys)

    def delete_bundle(self, bundle_id: str) -> bool:
        """Delete a non-system bundle; its keys and assignments go with it via on delete cascade"""
        bundle = self.get_bundle(bundle_id)
        if bundle.is_system:
            raise ConflictError("System bundles cannot be deleted")
        try:
            result = self.supabase.table("permission_bundles")\
                .delete()\
                .eq("id", bundle_id)\
                .execute()

            return len(result.data) > 0
        except Exception as e:
            raise store_error(e)


class AssignmentService:
    def __init__(self, supabase: Client, registry: Optional[DefinitionRegistry] = None):
        self.supabase = supabase
        self.memberships = MembershipService(supabase)
        self.bundles = BundleService(supabase, registry)

    def assign_bundle(self, membership_id: str, bundle_id: str, assigned_by: Optional[str] = None) -> None:
        """Assign a bundle to a membership; assigning twice is a no-op"""
        membership = self.memberships.get_membership(membership_id)
        bundle = self.bundles.get_bundle(bundle_id)
        if bundle.tenant_id != membership.tenant_id:
            raise InvalidReferenceError("Bundle belongs to another tenant")
        try:
            self.supabase.table("membership_bundle_assignments").upsert(
                {
                    "membership_id": membership_id,
                    "bundle_id": bundle_id,
                    "assigned_by": assigned_by
                },
                on_conflict="membership_id,bundle_id",
                ignore_duplicates=True
            ).execute()
        except Exception as e:
            raise store_error(e)

    def remove_bundle(self, membership_id: str, bundle_id: str) -> bool:
        """Remove a bundle from a membership; removing a missing assignment succeeds"""
        self.memberships.get_membership(membership_id)
        try:
            result = self.supabase.table("membership_bundle_assignments")\
                .delete()\
                .eq("membership_id", membership_id)\
                .eq("bundle_id", bundle_id)\
                .execute()
            return bool(result.data)
        except Exception as e:
            raise store_error(e)

    def list_assignments(self, membership_id: str) -> List[BundleAssignmentResponse]:
        try:
            result = self.supabase.table("membership_bundle_assignments")\
                .select("*")\
                .eq("membership_id", membership_id)\
                .order("assigned_at")\
                .execute()
            return [BundleAssignmentResponse(**row) for row in result.data]
        except Exception as e:
            raise store_error(e)

    def list_bundle_ids(self, membership_id: str) -> List[str]:
        try:
            result = self.supabase.table("membership_bundle_assignments")\
                .select("bundle_id")\
                .eq("membership_id", membership_id)\
                .execute()
            return [row["bundle_id"] for row in result.data] if result.data else []
        except Exception as e:
            raise store_error(e)
