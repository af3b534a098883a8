from fastapi import APIRouter, Depends, Request
from app.config.permissions_config import VIEW_PERMISSIONS_KEY
from app.database.supabase_client import get_supabase
from app.modules.overrides.schemas import OverrideSet, OverrideResponse
from app.modules.overrides.service import OverrideService
from app.modules.memberships.schemas import Membership
from app.modules.permissions.registry import DefinitionRegistry
from app.modules.permissions.resolver import PermissionResolver
from app.core.dependencies import (
    require_permission,
    get_current_membership,
    get_tenant_member,
    get_registry,
    get_resolver,
    get_access_cache,
)
from app.core.exceptions import UnauthorizedError
from supabase import Client
from typing import List

router = APIRouter(prefix="/members", tags=["overrides"])


def get_override_service(
    supabase: Client = Depends(get_supabase),
    registry: DefinitionRegistry = Depends(get_registry)
) -> OverrideService:
    return OverrideService(supabase, registry)


def require_can_delegate(
    permission_key: str,
    request: Request,
    membership: Membership = Depends(get_current_membership),
    resolver: PermissionResolver = Depends(get_resolver)
) -> Membership:
    """Callers can only grant or revoke keys they are allowed to delegate"""
    if not resolver.can_delegate(membership, permission_key, get_access_cache(request)):
        raise UnauthorizedError(f"You cannot delegate {permission_key}")
    return membership


@router.get("/{membership_id}/overrides", response_model=List[OverrideResponse])
async def list_overrides(
    membership_id: str,
    membership: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    target: Membership = Depends(get_tenant_member),
    service: OverrideService = Depends(get_override_service)
):
    """List a member's permission overrides"""
    return service.list_overrides(target.id)


@router.put("/{membership_id}/overrides/{permission_key}", response_model=OverrideResponse)
async def set_override(
    membership_id: str,
    permission_key: str,
    override_data: OverrideSet,
    membership: Membership = Depends(require_can_delegate),
    target: Membership = Depends(get_tenant_member),
    service: OverrideService = Depends(get_override_service)
):
    """Grant (granted=true) or revoke (granted=false) one permission for a member"""
    return service.set_override(target.id, permission_key, override_data.granted, membership.user_id)


@router.delete("/{membership_id}/overrides/{permission_key}", status_code=204)
async def remove_override(
    membership_id: str,
    permission_key: str,
    membership: Membership = Depends(require_can_delegate),
    target: Membership = Depends(get_tenant_member),
    service: OverrideService = Depends(get_override_service)
):
    """Drop an override so the member falls back to their bundles"""
    service.remove_override(target.id, permission_key)
    return None
