"""
Effective permission resolution.

For the tenant owner the effective set is the whole catalog and no store is
consulted. For everyone else it is the union of the keys of every assigned
bundle, then overrides are applied: a granted override adds its key, a revoked
one removes it. Resolution only reads, so calls may run concurrently.
"""

from supabase import Client
from app.config.permissions_config import DELEGATE_PERMISSION_KEY
from app.modules.bundles.service import AssignmentService, BundleService
from app.modules.delegation.service import DelegationScopeService
from app.modules.memberships.schemas import Membership
from app.modules.overrides.service import OverrideService
from app.modules.permissions.registry import DefinitionRegistry, get_definition_registry
from app.core.exceptions import UnauthenticatedError
from typing import Any, Dict, FrozenSet, List, Optional


class PermissionResolver:
    def __init__(self, supabase: Client, registry: Optional[DefinitionRegistry] = None):
        self.registry = registry or get_definition_registry()
        self.assignments = AssignmentService(supabase, self.registry)
        self.bundles = BundleService(supabase, self.registry)
        self.overrides = OverrideService(supabase, self.registry)
        self.scopes = DelegationScopeService(supabase, self.registry)

    @staticmethod
    def _require_identity(membership: Optional[Membership]) -> Membership:
        if membership is None or not membership.id or not membership.tenant_id:
            raise UnauthenticatedError("No membership for the current identity")
        return membership

    def effective_permissions(
        self,
        membership: Optional[Membership],
        cache: Optional[Dict[str, Any]] = None
    ) -> FrozenSet[str]:
        """Fully resolved key set. Uses request-scoped cache when provided."""
        membership = self._require_identity(membership)
        if membership.is_owner:
            return self.registry.keys()

        cache_key = f"effective_permissions:{membership.id}"
        if cache is not None and cache_key in cache:
            return cache[cache_key]

        bundle_ids = self.assignments.list_bundle_ids(membership.id)
        effective = set(self.bundles.get_permission_keys_for_bundles(bundle_ids))
        for override in self.overrides.list_overrides(membership.id):
            if override.granted:
                effective.add(override.permission_key)
            else:
                effective.discard(override.permission_key)

        result = frozenset(effective)
        if cache is not None:
            cache[cache_key] = result
        return result

    def has_permission(
        self,
        membership: Optional[Membership],
        key: str,
        cache: Optional[Dict[str, Any]] = None
    ) -> bool:
        membership = self._require_identity(membership)
        if membership.is_owner:
            return True
        return key in self.effective_permissions(membership, cache)

    def can_delegate(
        self,
        membership: Optional[Membership],
        key: str,
        cache: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Whether the member may hand ``key`` to others"""
        membership = self._require_identity(membership)
        if membership.is_owner:
            return True

        effective = self.effective_permissions(membership, cache)
        if key not in effective or DELEGATE_PERMISSION_KEY not in effective:
            return False

        definition = self.registry.find(key)
        if definition is None or not definition.is_delegatable:
            return False

        return self.scopes.has_scope(membership.tenant_id, membership.id, key)

    def delegatable_permissions(
        self,
        membership: Optional[Membership],
        cache: Optional[Dict[str, Any]] = None
    ) -> List[str]:
        """All keys the member could delegate right now"""
        membership = self._require_identity(membership)
        if membership.is_owner:
            return sorted(self.registry.keys())

        effective = self.effective_permissions(membership, cache)
        if DELEGATE_PERMISSION_KEY not in effective:
            return []
        scoped = self.scopes.list_delegatable_keys(membership.tenant_id, membership.id)
        delegatable = []
        for key in scoped:
            definition = self.registry.find(key)
            if key in effective and definition is not None and definition.is_delegatable:
                delegatable.append(key)
        return delegatable
