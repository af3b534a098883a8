from fastapi import APIRouter, Depends, Request
from app.config.permissions_config import DELEGATE_PERMISSION_KEY, VIEW_PERMISSIONS_KEY
from app.database.supabase_client import get_supabase
from app.modules.bundles.schemas import (
    BundleCreate, BundleUpdate, BundlePermissionsUpdate, BundleResponse,
    BundleWithPermissionsResponse, BundleAssignmentResponse
)
from app.modules.bundles.service import BundleService, AssignmentService
from app.modules.memberships.schemas import Membership
from app.modules.permissions.registry import DefinitionRegistry
from app.modules.permissions.resolver import PermissionResolver
from app.core.dependencies import (
    require_permission,
    get_registry,
    get_resolver,
    get_tenant_member,
    get_access_cache,
    ensure_can_delegate_keys,
)
from supabase import Client
from typing import List

router = APIRouter(prefix="/bundles", tags=["bundles"])


def get_bundle_service(
    supabase: Client = Depends(get_supabase),
    registry: DefinitionRegistry = Depends(get_registry)
) -> BundleService:
    return BundleService(supabase, registry)


def get_assignment_service(
    supabase: Client = Depends(get_supabase),
    registry: DefinitionRegistry = Depends(get_registry)
) -> AssignmentService:
    return AssignmentService(supabase, registry)


@router.get("", response_model=List[BundleResponse])
async def list_bundles(
    limit: int = 100,
    offset: int = 0,
    membership: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    service: BundleService = Depends(get_bundle_service)
):
    """List bundles of the active tenant"""
    return service.list_bundles(membership.tenant_id, limit=limit, offset=offset)


@router.post("", response_model=BundleWithPermissionsResponse, status_code=201)
async def create_bundle(
    bundle_data: BundleCreate,
    request: Request,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    resolver: PermissionResolver = Depends(get_resolver),
    service: BundleService = Depends(get_bundle_service)
):
    """Create a bundle with its permission keys; non-owners may only bundle keys they can delegate"""
    ensure_can_delegate_keys(resolver, membership, bundle_data.permission_keys, get_access_cache(request))
    return service.create_bundle(membership.tenant_id, bundle_data, membership.user_id)


@router.get("/members/{membership_id}", response_model=List[BundleAssignmentResponse])
async def list_member_bundles(
    membership_id: str,
    membership: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    target: Membership = Depends(get_tenant_member),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Bundles assigned to a member"""
    return service.list_assignments(target.id)


@router.get("/{bundle_id}", response_model=BundleWithPermissionsResponse)
async def get_bundle(
    bundle_id: str,
    membership: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    service: BundleService = Depends(get_bundle_service)
):
    """Get bundle with its permission keys"""
    service.get_tenant_bundle(bundle_id, membership.tenant_id)
    return service.get_bundle_with_permissions(bundle_id)


@router.put("/{bundle_id}", response_model=BundleResponse)
async def update_bundle(
    bundle_id: str,
    bundle_data: BundleUpdate,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    service: BundleService = Depends(get_bundle_service)
):
    """Rename or re-describe a bundle"""
    service.get_tenant_bundle(bundle_id, membership.tenant_id)
    return service.update_bundle(bundle_id, bundle_data)


@router.put("/{bundle_id}/permissions", response_model=BundleWithPermissionsResponse)
async def replace_bundle_permissions(
    bundle_id: str,
    permissions_data: BundlePermissionsUpdate,
    request: Request,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    resolver: PermissionResolver = Depends(get_resolver),
    service: BundleService = Depends(get_bundle_service)
):
    """Replace the full permission key set of a bundle"""
    bundle = service.get_tenant_bundle(bundle_id, membership.tenant_id)
    # Keys dropped from the bundle are revoked from its holders, so they count as well
    touched = set(service.get_bundle_permission_keys(bundle_id)) | set(permissions_data.permission_keys)
    ensure_can_delegate_keys(resolver, membership, touched, get_access_cache(request))
    keys = service.replace_bundle_permissions(bundle_id, permissions_data.permission_keys)
    return BundleWithPermissionsResponse(**bundle.model_dump(), permission_keys=keys)


@router.delete("/{bundle_id}", status_code=204)
async def delete_bundle(
    bundle_id: str,
    request: Request,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    resolver: PermissionResolver = Depends(get_resolver),
    service: BundleService = Depends(get_bundle_service)
):
    """Delete a bundle; system bundles are protected"""
    service.get_tenant_bundle(bundle_id, membership.tenant_id)
    ensure_can_delegate_keys(
        resolver, membership, service.get_bundle_permission_keys(bundle_id), get_access_cache(request)
    )
    service.delete_bundle(bundle_id)
    return None


@router.post("/{bundle_id}/members/{membership_id}", status_code=204)
async def assign_bundle(
    bundle_id: str,
    membership_id: str,
    request: Request,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    target: Membership = Depends(get_tenant_member),
    resolver: PermissionResolver = Depends(get_resolver),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Assign a bundle to a member (idempotent)"""
    service.bundles.get_tenant_bundle(bundle_id, membership.tenant_id)
    ensure_can_delegate_keys(
        resolver, membership, service.bundles.get_bundle_permission_keys(bundle_id), get_access_cache(request)
    )
    service.assign_bundle(target.id, bundle_id, membership.user_id)
    return None


@router.delete("/{bundle_id}/members/{membership_id}", status_code=204)
async def remove_bundle(
    bundle_id: str,
    membership_id: str,
    request: Request,
    membership: Membership = Depends(require_permission(DELEGATE_PERMISSION_KEY)),
    target: Membership = Depends(get_tenant_member),
    resolver: PermissionResolver = Depends(get_resolver),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Remove a bundle from a member (idempotent)"""
    ensure_can_delegate_keys(
        resolver, membership, service.bundles.get_bundle_permission_keys(bundle_id), get_access_cache(request)
    )
    service.remove_bundle(target.id, bundle_id)
    return None
