"""
Process-wide catalog of permission definitions.

The registry holds an immutable snapshot of every row in permission_definitions.
Readers take the current snapshot reference without locking; a refresh builds a
complete new snapshot and swaps the reference, so a resolution in flight sees
either the old catalog or the new one, never a mix. The snapshot expires after
``ttl_seconds`` and is reloaded either by the background ticker
(``registry_refresh_loop``) or by the first reader that notices the expiry.
"""

import asyncio
import logging
import threading
import time
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from supabase import Client

from app.config import settings
from app.core.exceptions import NotFoundError, store_error
from app.modules.permissions.schemas import PermissionDefinition

logger = logging.getLogger(__name__)

DefinitionLoader = Callable[[], List[Dict]]


class _Snapshot:
    __slots__ = ("definitions", "by_key", "keys", "loaded_at")

    def __init__(self, definitions: Iterable[PermissionDefinition], loaded_at: Optional[float]):
        self.definitions = tuple(definitions)
        self.by_key = MappingProxyType({d.key: d for d in self.definitions})
        self.keys: FrozenSet[str] = frozenset(self.by_key)
        # None marks an invalidated snapshot
        self.loaded_at = loaded_at


def supabase_definition_loader(supabase: Client) -> DefinitionLoader:
    """Loader reading the full catalog from Supabase, ordered by module."""
    def load() -> List[Dict]:
        result = supabase.table("permission_definitions")\
            .select("*")\
            .order("module")\
            .order("key")\
            .execute()
        return result.data or []
    return load


class DefinitionRegistry:
    def __init__(
        self,
        loader: DefinitionLoader,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[_Snapshot] = None
        self._refresh_lock = threading.Lock()

    # Snapshot lifecycle

    def is_stale(self) -> bool:
        snapshot = self._snapshot
        return snapshot is None or self._is_expired(snapshot)

    def _is_expired(self, snapshot: _Snapshot) -> bool:
        if snapshot.loaded_at is None:
            return True
        return self._clock() - snapshot.loaded_at >= self.ttl_seconds

    def _current(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            return self.refresh(force=False)
        # Expired: reload unless another thread already is, in which case serve the old snapshot
        if self._is_expired(snapshot) and self._refresh_lock.acquire(blocking=False):
            try:
                snapshot = self._reload(self._snapshot)
            finally:
                self._refresh_lock.release()
        return snapshot

    def refresh(self, force: bool = True) -> _Snapshot:
        """Reload the catalog. Without ``force`` a fresh snapshot is kept as is."""
        with self._refresh_lock:
            snapshot = self._snapshot
            if not force and snapshot is not None and not self._is_expired(snapshot):
                return snapshot
            return self._reload(snapshot)

    def _reload(self, previous: Optional[_Snapshot]) -> _Snapshot:
        try:
            rows = self._loader()
            snapshot = _Snapshot(
                (PermissionDefinition(**row) for row in rows),
                self._clock(),
            )
        except Exception as e:
            if previous is None:
                logger.error(f"Failed to load permission definitions: {e}")
                raise store_error(e)
            logger.error(f"Permission definition refresh failed, serving previous snapshot: {e}")
            return previous
        self._snapshot = snapshot
        logger.info(f"Loaded {len(snapshot.definitions)} permission definitions")
        return snapshot

    def invalidate(self) -> None:
        """Force the next read (or tick) to reload, without dropping the current catalog."""
        snapshot = self._snapshot
        if snapshot is not None:
            self._snapshot = _Snapshot(snapshot.definitions, None)

    # Read API

    def load_all(self) -> List[PermissionDefinition]:
        return list(self._current().definitions)

    def keys(self) -> FrozenSet[str]:
        return self._current().keys

    def find(self, key: str) -> Optional[PermissionDefinition]:
        return self._current().by_key.get(key)

    def get(self, key: str) -> PermissionDefinition:
        definition = self.find(key)
        if definition is None:
            raise NotFoundError(f"Permission definition not found: {key}")
        return definition

    def contains(self, key: str) -> bool:
        return key in self._current().keys

    def unknown_keys(self, keys: Iterable[str]) -> List[str]:
        """Keys absent from the catalog, in first-seen order without duplicates."""
        known = self._current().keys
        unknown = []
        for key in keys:
            if key not in known and key not in unknown:
                unknown.append(key)
        return unknown


_registry: Optional[DefinitionRegistry] = None
_registry_init_lock = threading.Lock()


def _build_registry(
    loader: Optional[DefinitionLoader] = None,
    ttl_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DefinitionRegistry:
    if loader is None:
        from app.database.supabase_client import get_service_supabase
        loader = supabase_definition_loader(get_service_supabase())
    if ttl_seconds is None:
        ttl_seconds = settings.permission_registry_ttl_seconds
    return DefinitionRegistry(loader, ttl_seconds=ttl_seconds, clock=clock)


def init_definition_registry(
    loader: Optional[DefinitionLoader] = None,
    ttl_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DefinitionRegistry:
    """Install the process-wide registry. Called once at startup (and by tests)."""
    global _registry
    registry = _build_registry(loader, ttl_seconds, clock)
    with _registry_init_lock:
        _registry = registry
    return registry


def get_definition_registry() -> DefinitionRegistry:
    global _registry
    if _registry is None:
        with _registry_init_lock:
            if _registry is None:
                _registry = _build_registry()
    return _registry


def reset_definition_registry() -> None:
    global _registry
    with _registry_init_lock:
        _registry = None


async def registry_refresh_loop(registry: Optional[DefinitionRegistry] = None):
    """Background task that reloads the catalog every TTL interval"""
    registry = registry or get_definition_registry()
    while True:
        await asyncio.sleep(registry.ttl_seconds)
        try:
            await asyncio.to_thread(registry.refresh, True)
        except Exception as e:
            logger.error(f"Error in permission registry refresh loop: {str(e)}")
