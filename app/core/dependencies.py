"""
Core dependencies for route protection and permission checking.

This is the session/context layer that sits above the engine: it turns a
bearer token plus the active-tenant header into a Membership, and performs
the caller-level checks (owner-only, permission required) before any store
is invoked.
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import settings
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.memberships.schemas import Membership
from app.modules.memberships.service import MembershipService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.modules.permissions.resolver import PermissionResolver
from app.core.exceptions import NotFoundError, UnauthenticatedError, UnauthorizedError
from supabase import Client
from typing import Dict, Any, Iterable, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (membership, effective permissions)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_access_cache(request: Request) -> Dict[str, Any]:
    return _get_request_cache(request)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_registry() -> DefinitionRegistry:
    return get_definition_registry()


def get_resolver(
    supabase: Client = Depends(get_supabase),
    registry: DefinitionRegistry = Depends(get_registry)
) -> PermissionResolver:
    return PermissionResolver(supabase, registry)


def get_membership_service(supabase: Client = Depends(get_supabase)) -> MembershipService:
    return MembershipService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(credentials.credentials)


def get_active_tenant_id(request: Request) -> str:
    """Active tenant chosen by the client, sent in the tenant header"""
    tenant_id = request.headers.get(settings.tenant_header)
    if not tenant_id:
        raise UnauthenticatedError(f"Missing {settings.tenant_header} header")
    return tenant_id


def get_current_membership(
    request: Request,
    user_data: dict = Depends(get_current_user_id),
    tenant_id: str = Depends(get_active_tenant_id),
    memberships: MembershipService = Depends(get_membership_service)
) -> Membership:
    """Caller's active membership in the active tenant. Cached per request."""
    cache = _get_request_cache(request)
    if "membership" in cache:
        return cache["membership"]
    membership = memberships.get_membership_for_user(user_data["id"], tenant_id)
    cache["membership"] = membership
    return membership


def require_permission(required_permission: str):
    """Factory function to create permission check dependency"""
    def check_permission(
        request: Request,
        membership: Membership = Depends(get_current_membership),
        resolver: PermissionResolver = Depends(get_resolver)
    ) -> Membership:
        """Dependency to check if the caller holds the required permission"""
        cache = _get_request_cache(request)
        if not resolver.has_permission(membership, required_permission, cache):
            raise UnauthorizedError(f"Insufficient permissions. Required: {required_permission}")
        return membership
    return check_permission


def ensure_can_delegate_keys(
    resolver: PermissionResolver,
    membership: Membership,
    keys: Iterable[str],
    cache: Optional[Dict[str, Any]] = None
) -> None:
    """Non-owners may only hand out or take back keys they can each delegate"""
    if membership.is_owner:
        return
    blocked = sorted(key for key in set(keys) if not resolver.can_delegate(membership, key, cache))
    if blocked:
        raise UnauthorizedError(f"You cannot delegate: {', '.join(blocked)}")


def require_owner(membership: Membership = Depends(get_current_membership)) -> Membership:
    """Only the tenant owner may pass"""
    if not membership.is_owner:
        raise UnauthorizedError("Only the tenant owner can perform this action")
    return membership


def get_tenant_member(
    membership_id: str,
    caller: Membership = Depends(get_current_membership),
    memberships: MembershipService = Depends(get_membership_service)
) -> Membership:
    """Target membership from the path; members of other tenants are reported as not found"""
    target = memberships.get_membership(membership_id)
    if target.tenant_id != caller.tenant_id:
        raise NotFoundError("Membership not found")
    return target
