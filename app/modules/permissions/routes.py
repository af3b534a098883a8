from fastapi import APIRouter, Depends, Query
from app.config.permissions_config import VIEW_PERMISSIONS_KEY
from app.modules.permissions.schemas import (
    PermissionDefinition, EffectivePermissionsResponse, PermissionCheckResponse,
    MemberPermissionsResponse
)
from app.modules.permissions.registry import DefinitionRegistry
from app.modules.permissions.resolver import PermissionResolver
from app.modules.memberships.schemas import Membership
from app.core.dependencies import (
    require_permission,
    get_current_membership,
    get_tenant_member,
    get_registry,
    get_resolver,
    get_access_cache,
)
from typing import List, Optional, Dict

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/definitions", response_model=List[PermissionDefinition])
async def list_definitions(
    module: Optional[str] = None,
    membership: Membership = Depends(get_current_membership),
    registry: DefinitionRegistry = Depends(get_registry)
):
    """List the permission catalog, optionally for one module"""
    definitions = registry.load_all()
    if module:
        definitions = [d for d in definitions if d.module == module]
    return definitions


@router.get("/me", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    membership: Membership = Depends(get_current_membership),
    resolver: PermissionResolver = Depends(get_resolver),
    cache: Dict = Depends(get_access_cache)
):
    """Caller's effective permissions in the active tenant (for frontend UI)"""
    return EffectivePermissionsResponse(
        membership_id=membership.id,
        tenant_id=membership.tenant_id,
        role=membership.role.value,
        is_owner=membership.is_owner,
        permissions=sorted(resolver.effective_permissions(membership, cache)),
        delegatable=resolver.delegatable_permissions(membership, cache)
    )


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    key: str = Query(..., min_length=1),
    membership: Membership = Depends(get_current_membership),
    resolver: PermissionResolver = Depends(get_resolver),
    cache: Dict = Depends(get_access_cache)
):
    """Whether the caller holds and may delegate one key"""
    return PermissionCheckResponse(
        key=key,
        has_permission=resolver.has_permission(membership, key, cache),
        can_delegate=resolver.can_delegate(membership, key, cache)
    )


@router.get("/members/{membership_id}", response_model=MemberPermissionsResponse)
async def get_member_permissions(
    membership_id: str,
    caller: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    target: Membership = Depends(get_tenant_member),
    resolver: PermissionResolver = Depends(get_resolver)
):
    """Effective permissions, bundles and overrides of a member of the active tenant"""
    overrides = [] if target.is_owner else resolver.overrides.list_overrides(target.id)
    return MemberPermissionsResponse(
        membership_id=target.id,
        is_owner=target.is_owner,
        permissions=sorted(resolver.effective_permissions(target)),
        bundle_ids=resolver.assignments.list_bundle_ids(target.id),
        overrides=[o.model_dump(mode="json") for o in overrides]
    )
