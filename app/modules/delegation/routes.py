from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.delegation.schemas import DelegationScopeSet, DelegationScopeResponse
from app.modules.delegation.service import DelegationScopeService
from app.modules.memberships.schemas import Membership
from app.modules.permissions.registry import DefinitionRegistry
from app.core.dependencies import require_owner, get_tenant_member, get_registry
from supabase import Client
from typing import List

router = APIRouter(prefix="/delegation-scopes", tags=["delegation"])


def get_delegation_service(
    supabase: Client = Depends(get_supabase),
    registry: DefinitionRegistry = Depends(get_registry)
) -> DelegationScopeService:
    return DelegationScopeService(supabase, registry)


@router.get("/{membership_id}", response_model=List[DelegationScopeResponse])
async def list_scopes(
    membership_id: str,
    owner: Membership = Depends(require_owner),
    target: Membership = Depends(get_tenant_member),
    service: DelegationScopeService = Depends(get_delegation_service)
):
    """List delegation scopes granted to a member (owner only)"""
    return service.list_scopes(owner.tenant_id, target.id)


@router.put("/{membership_id}/{permission_key}", response_model=DelegationScopeResponse)
async def set_scope(
    membership_id: str,
    permission_key: str,
    scope_data: DelegationScopeSet,
    owner: Membership = Depends(require_owner),
    target: Membership = Depends(get_tenant_member),
    service: DelegationScopeService = Depends(get_delegation_service)
):
    """Allow or disallow a member to delegate one permission (owner only)"""
    return service.set_scope(owner.tenant_id, target.id, permission_key, scope_data.can_delegate, owner.user_id)


@router.delete("/{membership_id}/{permission_key}", status_code=204)
async def remove_scope(
    membership_id: str,
    permission_key: str,
    owner: Membership = Depends(require_owner),
    target: Membership = Depends(get_tenant_member),
    service: DelegationScopeService = Depends(get_delegation_service)
):
    """Remove a delegation scope row (owner only)"""
    service.remove_scope(owner.tenant_id, target.id, permission_key)
    return None
