"""
Id-based entry point for other modules.

Domain code that only knows a membership id calls ``has_permission`` /
``can_delegate`` here; the HTTP layer uses the same services directly once it
has resolved the caller's membership.
"""

from supabase import Client
from app.modules.audit.schemas import AuditLogEntry
from app.modules.bundles.schemas import BundleCreate
from app.modules.memberships.schemas import Membership
from app.modules.memberships.service import MembershipService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.modules.permissions.resolver import PermissionResolver
from app.core.exceptions import UnauthenticatedError
from typing import List, Optional


class PermissionEngine:
    def __init__(self, supabase: Client, registry: Optional[DefinitionRegistry] = None):
        self.registry = registry or get_definition_registry()
        self.resolver = PermissionResolver(supabase, self.registry)
        self.memberships = MembershipService(supabase)
        self.bundles = self.resolver.bundles
        self.assignments = self.resolver.assignments
        self.overrides = self.resolver.overrides
        self.scopes = self.resolver.scopes
        self.audit_logger = self.overrides.audit_logger

    def _membership(self, membership_id: str) -> Membership:
        if not membership_id:
            raise UnauthenticatedError("Membership id is required")
        membership = self.memberships.find_membership(membership_id)
        if membership is None or not membership.is_active:
            raise UnauthenticatedError("Membership not found or inactive")
        return membership

    # Resolution

    def has_permission(self, membership_id: str, key: str) -> bool:
        return self.resolver.has_permission(self._membership(membership_id), key)

    def can_delegate(self, membership_id: str, key: str) -> bool:
        return self.resolver.can_delegate(self._membership(membership_id), key)

    def effective_permissions(self, membership_id: str) -> List[str]:
        return sorted(self.resolver.effective_permissions(self._membership(membership_id)))

    # Bundles

    def create_bundle(
        self,
        tenant_id: str,
        name: str,
        description: Optional[str],
        keys: List[str],
        created_by: Optional[str] = None
    ) -> str:
        bundle = self.bundles.create_bundle(
            tenant_id,
            BundleCreate(name=name, description=description, permission_keys=keys),
            created_by
        )
        return bundle.id

    def replace_bundle_permissions(self, bundle_id: str, keys: List[str]) -> None:
        self.bundles.replace_bundle_permissions(bundle_id, keys)

    def assign_bundle(self, membership_id: str, bundle_id: str, assigned_by: Optional[str] = None) -> None:
        self.assignments.assign_bundle(membership_id, bundle_id, assigned_by)

    def remove_bundle(self, membership_id: str, bundle_id: str) -> None:
        self.assignments.remove_bundle(membership_id, bundle_id)

    # Overrides and delegation

    def set_override(self, membership_id: str, key: str, granted: bool, actor_id: str) -> None:
        self.overrides.set_override(membership_id, key, granted, actor_id)

    def remove_override(self, membership_id: str, key: str) -> None:
        self.overrides.remove_override(membership_id, key)

    def set_delegation_scope(
        self,
        tenant_id: str,
        grantor_membership_id: str,
        key: str,
        can_delegate: bool,
        created_by: Optional[str] = None
    ) -> None:
        """Caller must already be verified as the tenant owner"""
        self.scopes.set_scope(tenant_id, grantor_membership_id, key, can_delegate, created_by)

    def list_audit_log(self, tenant_id: str, limit: int = 50) -> List[AuditLogEntry]:
        return self.audit_logger.list_recent(tenant_id, limit)
