"""Snapshot caches feeding the policy evaluator.

Collaborators fetch principal, override and module configuration data
from the administration API and store it here; the evaluator only reads.

Each cache entry owns ``{snapshot, fetched_at, valid}`` and is in one of
three states:

- LOADING: never fetched; the evaluator answers "deny"
- FRESH:   fetched and valid
- STALE:   invalidated by an administration mutation; the previous
           snapshot keeps serving reads until the collaborator stores a
           new one (stale-while-revalidate)

Invalidation happens only through explicit messages, never through
time-based expiry:

    OverridesChanged(principal_id)        -> principal override snapshot
    TenantOverridesChanged(tenant_id)     -> store override snapshot
    RoleAssignmentsChanged(principal_id)  -> principal snapshot
    TransitionMatrixUpdated(module_id)    -> module configuration snapshot
    RoleCatalogChanged()                  -> every principal snapshot

Revoking access must not wait for a refresh: override and role assignment
invalidations drop the snapshot immediately (back to LOADING) so the
evaluator denies until fresh data arrives. Module configuration keeps
serving its stale snapshot.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

from .rbac.catalog import AccessCatalog
from .rbac.checker import PolicyEvaluator
from .rbac.membership import MembershipResolver, Principal, principal_key
from .rbac.overrides import PermissionOverride, TenantPermissionOverride, utcnow
from .workflow.machine import ModuleStateMachine, ModuleTransitionGraph
from .workflow.states import ModuleConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotState(str, Enum):
    """Availability of a cached snapshot."""

    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class SnapshotCache(Generic[T]):
    """A single cached snapshot with explicit invalidation."""

    snapshot: Optional[T] = None
    fetched_at: Optional[datetime] = None
    valid: bool = False

    @property
    def state(self) -> SnapshotState:
        if self.fetched_at is None:
            return SnapshotState.LOADING
        return SnapshotState.FRESH if self.valid else SnapshotState.STALE

    def put(self, snapshot: T, fetched_at: datetime) -> None:
        self.snapshot = snapshot
        self.fetched_at = fetched_at
        self.valid = True

    def invalidate(self) -> None:
        """Mark stale; the previous snapshot keeps serving reads."""
        self.valid = False

    def clear(self) -> None:
        """Drop the snapshot; reads are denied until the next put."""
        self.snapshot = None
        self.fetched_at = None
        self.valid = False

    def peek(self) -> Optional[T]:
        """Current snapshot, fresh or stale; None while loading."""
        if self.state == SnapshotState.LOADING:
            return None
        return self.snapshot


# =============================================================================
# Invalidation messages
# =============================================================================


@dataclass(frozen=True)
class OverridesChanged:
    principal_id: Any


@dataclass(frozen=True)
class TenantOverridesChanged:
    tenant_id: int


@dataclass(frozen=True)
class RoleAssignmentsChanged:
    principal_id: Any


@dataclass(frozen=True)
class TransitionMatrixUpdated:
    module_id: str


@dataclass(frozen=True)
class RoleCatalogChanged:
    pass


InvalidationEvent = Union[
    OverridesChanged,
    TenantOverridesChanged,
    RoleAssignmentsChanged,
    TransitionMatrixUpdated,
    RoleCatalogChanged,
]


@dataclass(frozen=True)
class RefreshRequest:
    """A snapshot a collaborator should (re)fetch."""

    kind: str   # "principal" | "overrides" | "tenant_overrides" | "module"
    key: Any
    state: SnapshotState


class PolicySnapshots:
    """
    Snapshot store shared by all evaluations of a process.

    Thread-safe; evaluators built from it capture immutable snapshots, so
    concurrent readers never observe a half-applied refresh.
    """

    def __init__(
        self,
        catalog: AccessCatalog,
        *,
        clock: Callable[[], datetime] = utcnow,
        track_tenant_overrides: bool = False,
    ):
        """
        Args:
            catalog: Static role/permission catalog
            clock: Returns the current time
            track_tenant_overrides: When True, store overrides start LOADING
                and must be stored per tenant before permission checks pass.
                When False, stores without a stored snapshot have none.
        """
        self.catalog = catalog
        self.clock = clock
        self.track_tenant_overrides = track_tenant_overrides

        self._principals: Dict[Any, SnapshotCache[Principal]] = {}
        self._overrides: Dict[Any, SnapshotCache[Tuple[PermissionOverride, ...]]] = {}
        self._tenant_overrides: Dict[int, SnapshotCache[Tuple[TenantPermissionOverride, ...]]] = {}
        self._modules: Dict[str, SnapshotCache[ModuleStateMachine]] = {}
        self._selected_tenants: Dict[Any, int] = {}
        self._resolver = MembershipResolver(catalog.hierarchy)
        self._lock = threading.RLock()

    # =========================================================================
    # Stores (called by collaborators after a fetch)
    # =========================================================================

    def store_principal(self, principal: Principal) -> None:
        with self._lock:
            # A refresh keeps the explicit store selection while it is still valid
            selected = self._selected_tenants.get(principal.id)
            if (
                principal.current_tenant_id is None
                and selected is not None
                and principal.membership_for(selected) is not None
            ):
                principal = principal.switch_tenant(selected)
            cache = self._principals.setdefault(principal.id, SnapshotCache())
            cache.put(principal, self.clock())

    def store_overrides(self, principal_id: Any, overrides: Sequence[PermissionOverride]) -> None:
        principal_id = principal_key(principal_id)
        with self._lock:
            cache = self._overrides.setdefault(principal_id, SnapshotCache())
            cache.put(tuple(overrides), self.clock())

    def store_tenant_overrides(self, tenant_id: int, overrides: Sequence[TenantPermissionOverride]) -> None:
        with self._lock:
            cache = self._tenant_overrides.setdefault(tenant_id, SnapshotCache())
            cache.put(tuple(overrides), self.clock())

    def store_module(self, config: ModuleConfig) -> None:
        machine = ModuleStateMachine(config)
        with self._lock:
            cache = self._modules.setdefault(config.module_id, SnapshotCache())
            cache.put(machine, self.clock())

    def replace_catalog(self, catalog: AccessCatalog) -> None:
        """Swap the static catalog after a role catalog reload.

        Principal snapshots were resolved against the old catalog and go
        back to LOADING, as on RoleCatalogChanged.
        """
        with self._lock:
            self.catalog = catalog
            self._resolver = MembershipResolver(catalog.hierarchy)
            for cache in self._principals.values():
                cache.clear()
        logger.info(f"Access catalog replaced: {catalog.describe()}")

    def forget_principal(self, principal_id: Any) -> None:
        """Drop everything cached for a principal (logout)."""
        principal_id = principal_key(principal_id)
        with self._lock:
            self._principals.pop(principal_id, None)
            self._overrides.pop(principal_id, None)
            self._selected_tenants.pop(principal_id, None)

    # =========================================================================
    # Tenant switch
    # =========================================================================

    def switch_tenant(self, principal_id: Any, tenant_id: int) -> Principal:
        """
        Change the current store of a cached principal.

        Raises:
            KeyError: If the principal snapshot is not available
            TenantAccessError: If the principal is not a member of the store
        """
        principal_id = principal_key(principal_id)
        with self._lock:
            cache = self._principals.get(principal_id)
            principal = cache.peek() if cache else None
            if principal is None:
                raise KeyError(f"No principal snapshot for {principal_id}")
            switched = principal.switch_tenant(tenant_id)
            cache.snapshot = switched
            self._selected_tenants[principal_id] = tenant_id
            logger.info(f"Principal {principal_id} switched to tenant {tenant_id}")
            return switched

    # =========================================================================
    # Invalidation
    # =========================================================================

    def handle(self, event: InvalidationEvent) -> None:
        """Apply an invalidation message from the administration path."""
        with self._lock:
            if isinstance(event, OverridesChanged):
                self._clear(self._overrides, principal_key(event.principal_id))
            elif isinstance(event, TenantOverridesChanged):
                self._clear(self._tenant_overrides, event.tenant_id)
            elif isinstance(event, RoleAssignmentsChanged):
                self._clear(self._principals, principal_key(event.principal_id))
            elif isinstance(event, TransitionMatrixUpdated):
                cache = self._modules.get(event.module_id)
                if cache is not None:
                    cache.invalidate()
            elif isinstance(event, RoleCatalogChanged):
                for cache in self._principals.values():
                    cache.clear()
            else:
                raise TypeError(f"Unknown invalidation event: {event!r}")
        logger.info(f"Applied invalidation: {event}")

    def _clear(self, caches: Dict[Any, SnapshotCache], key: Any) -> None:
        cache = caches.get(key)
        if cache is not None:
            cache.clear()

    def pending_refresh(self) -> List[RefreshRequest]:
        """Snapshots a collaborator should fetch: loading or stale entries."""
        with self._lock:
            pending = []
            groups = (
                ("principal", self._principals),
                ("overrides", self._overrides),
                ("tenant_overrides", self._tenant_overrides),
                ("module", self._modules),
            )
            for kind, caches in groups:
                for key, cache in caches.items():
                    if cache.state != SnapshotState.FRESH:
                        pending.append(RefreshRequest(kind=kind, key=key, state=cache.state))
            return pending

    def state(self, kind: str, key: Any) -> SnapshotState:
        """State of one snapshot; unknown entries are LOADING."""
        caches = {
            "principal": self._principals,
            "overrides": self._overrides,
            "tenant_overrides": self._tenant_overrides,
            "module": self._modules,
        }[kind]
        with self._lock:
            cache = caches.get(key)
            return cache.state if cache else SnapshotState.LOADING

    # =========================================================================
    # Reads
    # =========================================================================

    def principal(self, principal_id: Any) -> Optional[Principal]:
        principal_id = principal_key(principal_id)
        with self._lock:
            cache = self._principals.get(principal_id)
            return cache.peek() if cache else None

    def modules(self) -> ModuleTransitionGraph:
        """Graph of every module with an available snapshot."""
        with self._lock:
            return ModuleTransitionGraph({
                module_id: cache.peek()
                for module_id, cache in self._modules.items()
                if cache.peek() is not None
            })

    def evaluator_for(self, principal_id: Any) -> Tuple[Optional[Principal], PolicyEvaluator]:
        """
        Build an evaluator over the current snapshots of a principal.

        Returns:
            (principal or None while loading, evaluator)
        """
        principal_id = principal_key(principal_id)
        with self._lock:
            principal = self.principal(principal_id)

            cache = self._overrides.get(principal_id)
            overrides = cache.peek() if cache else None

            tenant_overrides: Optional[Tuple[TenantPermissionOverride, ...]] = ()
            if principal is not None:
                tenant_overrides = self._tenant_overrides_for(principal)

            evaluator = PolicyEvaluator(
                self.catalog,
                overrides=overrides,
                tenant_overrides=tenant_overrides,
                modules=self.modules(),
                clock=self.clock,
            )
            return principal, evaluator

    def _tenant_overrides_for(self, principal: Principal) -> Optional[Tuple[TenantPermissionOverride, ...]]:
        membership = self._resolver.current_membership(principal)
        if membership is None:
            return ()
        cache = self._tenant_overrides.get(membership.tenant_id)
        if cache is None:
            # Never stored for this store
            return None if self.track_tenant_overrides else ()
        return cache.peek()
