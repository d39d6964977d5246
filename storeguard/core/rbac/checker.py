"""Policy evaluation for StoreGuard.

PolicyEvaluator is the single query surface used by menus, action buttons
and bulk operations. It is a pure function of four inputs:

- the principal snapshot (passed on every call)
- the override snapshot for that principal (and its store)
- the module configuration snapshot
- the wall clock

A snapshot given as ``None`` is still loading; every operation that reads
it answers "deny". Nothing here raises on missing or inconsistent runtime
data: the answer is deny (or an empty set) and the gap is logged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from ..workflow.machine import ModuleTransitionGraph
from ..workflow.states import ModuleStatus, StatusId
from .catalog import AccessCatalog
from .membership import Membership, MembershipResolver, Principal
from .overrides import (
    AnyOverride,
    ExpiringPermission,
    OverrideEngine,
    OverrideKind,
    PermissionOverride,
    TenantPermissionOverride,
    utcnow,
)
from .roles import UnknownRoleError

logger = logging.getLogger(__name__)


class PermissionSource(str, Enum):
    """Where an effective permission comes from."""

    ROLE = "role"
    USER_OVERRIDE = "user_override"
    TENANT_OVERRIDE = "tenant_override"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class EffectivePermission:
    """An effective permission with its provenance."""

    name: str
    source: PermissionSource
    role: Optional[str] = None
    tenant_id: Optional[int] = None
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class PolicyEvaluator:
    """Answers permission, role and transition questions for principals."""

    def __init__(
        self,
        catalog: AccessCatalog,
        *,
        overrides: Optional[Sequence[PermissionOverride]] = (),
        tenant_overrides: Optional[Sequence[TenantPermissionOverride]] = (),
        modules: Optional[ModuleTransitionGraph] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize with the current snapshots.

        Args:
            catalog: Static role/permission catalog
            overrides: Principal overrides (None while loading)
            tenant_overrides: Store-wide overrides (None while loading)
            modules: Module transition graphs (None while loading)
            clock: Returns the evaluation time
        """
        self.catalog = catalog
        self.resolver = MembershipResolver(catalog.hierarchy)
        self.override_engine = OverrideEngine(catalog.permissions.known_permissions)
        self.overrides = None if overrides is None else tuple(overrides)
        self.tenant_overrides = None if tenant_overrides is None else tuple(tenant_overrides)
        self.modules = modules
        self.clock = clock

    # =========================================================================
    # Membership
    # =========================================================================

    def current_membership(self, principal: Optional[Principal]) -> Optional[Membership]:
        """Membership in effect for the principal's current store."""
        if principal is None:
            return None
        return self.resolver.current_membership(principal)

    def current_role(self, principal: Optional[Principal]) -> Optional[str]:
        """Role in effect for the principal's current store."""
        if principal is None:
            return None
        return self.resolver.effective_role(principal)

    def get_highest_role(self, principal: Optional[Principal]) -> Optional[str]:
        """Highest role across all stores (the maximum role for super admins)."""
        if principal is None:
            return None
        return self.resolver.highest_role(principal)

    # =========================================================================
    # Permissions
    # =========================================================================

    def permissions(self, principal: Optional[Principal]) -> FrozenSet[str]:
        """Effective permission set of a non super-admin principal.

        Super admins bypass permission sets entirely; use has_permission.
        """
        if not self._snapshots_ready(principal, "permissions"):
            return frozenset()

        role = self.resolver.effective_role(principal)
        if role is None:
            logger.debug(f"Principal {principal.id} has no effective role")
        base = self.catalog.permissions.base_permissions(role)
        return self.override_engine.resolve(base, self._overrides_for(principal), self.clock())

    def has_permission(self, principal: Optional[Principal], permission: str) -> bool:
        """Check if the principal currently holds a permission."""
        if not self._snapshots_ready(principal, "permissions"):
            return False
        if principal.is_super_admin:
            return True
        return permission in self.permissions(principal)

    def has_any_permission(self, principal: Optional[Principal], permissions: Iterable[str]) -> bool:
        """Check if the principal holds any of the permissions."""
        if not self._snapshots_ready(principal, "permissions"):
            return False
        if principal.is_super_admin:
            return True
        effective = self.permissions(principal)
        return any(p in effective for p in permissions)

    def has_all_permissions(self, principal: Optional[Principal], permissions: Iterable[str]) -> bool:
        """Check if the principal holds all of the permissions."""
        if not self._snapshots_ready(principal, "permissions"):
            return False
        if principal.is_super_admin:
            return True
        effective = self.permissions(principal)
        return all(p in effective for p in permissions)

    def effective_permissions(self, principal: Optional[Principal]) -> List[EffectivePermission]:
        """
        Explain the principal's effective permissions.

        Returns:
            One entry per effective permission, sorted by name. The source
            is the override that granted it, or the role when it is part of
            the base set. Super admins get every known permission.
        """
        if not self._snapshots_ready(principal, "permissions"):
            return []

        if principal.is_super_admin:
            return [
                EffectivePermission(name=name, source=PermissionSource.SUPER_ADMIN)
                for name in sorted(self.catalog.permissions.known_permissions)
            ]

        membership = self.resolver.current_membership(principal)
        role = membership.role if membership else None
        tenant_id = membership.tenant_id if membership else None
        base = self.catalog.permissions.base_permissions(role)
        effective = self.permissions(principal)

        granted_by = {}
        for override in self.override_engine.active(self._overrides_for(principal), self.clock()):
            if override.kind == OverrideKind.GRANT and override.permission not in base:
                # Principal overrides take precedence over store overrides
                if isinstance(override, PermissionOverride) or override.permission not in granted_by:
                    granted_by[override.permission] = override

        result = []
        for name in sorted(effective):
            override = granted_by.get(name)
            if override is None:
                result.append(EffectivePermission(
                    name=name, source=PermissionSource.ROLE, role=role, tenant_id=tenant_id,
                ))
            elif isinstance(override, PermissionOverride):
                result.append(EffectivePermission(
                    name=name,
                    source=PermissionSource.USER_OVERRIDE,
                    tenant_id=tenant_id,
                    expires_at=override.expires_at,
                    reason=override.reason,
                ))
            else:
                result.append(EffectivePermission(
                    name=name,
                    source=PermissionSource.TENANT_OVERRIDE,
                    tenant_id=override.tenant_id,
                    expires_at=override.expires_at,
                    reason=override.reason,
                ))
        return result

    def expiring_overrides(
        self,
        principal: Optional[Principal],
        window: timedelta = timedelta(days=7),
    ) -> List[ExpiringPermission]:
        """Temporary grants of the principal that expire within ``window``."""
        if not self._snapshots_ready(principal, "permissions"):
            return []
        return self.override_engine.find_expiring(
            self._overrides_for(principal), self.clock(), window
        )

    # =========================================================================
    # Roles
    # =========================================================================

    def has_role(self, principal: Optional[Principal], role: str) -> bool:
        """Check if the principal holds exactly this role.

        Global flags count only for roles the catalog scopes as global; a
        store role is held only through the membership in effect.
        """
        if principal is None:
            logger.debug("Principal snapshot is loading; denying role check")
            return False
        if principal.is_super_admin:
            return True
        if role in self.catalog.global_roles and self.resolver.has_global_role(principal, role):
            return True
        return self.resolver.effective_role(principal) == role

    def has_min_role(self, principal: Optional[Principal], min_role: str) -> bool:
        """Check if the principal's role is at least ``min_role`` in the hierarchy."""
        if principal is None:
            logger.debug("Principal snapshot is loading; denying role check")
            return False
        if principal.is_super_admin:
            return True

        role = self.resolver.effective_role(principal)
        if role is None:
            logger.debug(f"Principal {principal.id} has no effective role")
            return False
        try:
            return self.catalog.hierarchy.at_least(role, min_role)
        except UnknownRoleError as e:
            logger.warning(f"Role hierarchy check for principal {principal.id} denied: {e}")
            return False

    def has_any_role(self, principal: Optional[Principal], roles: Iterable[str]) -> bool:
        """Check if the principal holds any of the roles."""
        if principal is None:
            return False
        if principal.is_super_admin:
            return True
        return any(self.has_role(principal, role) for role in roles)

    # =========================================================================
    # Transitions
    # =========================================================================

    def allowed_transitions(
        self,
        principal: Optional[Principal],
        module_id: str,
        from_status: StatusId,
    ) -> FrozenSet[StatusId]:
        """Statuses the principal may move an item to from ``from_status``."""
        if not self._modules_ready(principal, module_id):
            return frozenset()

        if principal.is_super_admin:
            return self.modules.allowed_targets(module_id, from_status)

        role = self.resolver.effective_role(principal)
        if role is None:
            logger.debug(f"Principal {principal.id} has no effective role for module {module_id}")
            return frozenset()
        if role not in self.catalog.hierarchy:
            logger.warning(f"Principal {principal.id} holds role {role!r} outside the role catalog; denying transitions")
            return frozenset()
        return self.modules.allowed_targets_for_role(module_id, from_status, role)

    def can_transition(
        self,
        principal: Optional[Principal],
        module_id: str,
        from_status: StatusId,
        to_status: StatusId,
    ) -> bool:
        """Check if the principal may move an item from one status to another."""
        return to_status in self.allowed_transitions(principal, module_id, from_status)

    def statuses(self, module_id: str) -> Mapping[StatusId, ModuleStatus]:
        """Status metadata of a module (empty when unknown or loading)."""
        if self.modules is None:
            return {}
        return self.modules.statuses(module_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _snapshots_ready(self, principal: Optional[Principal], operation: str) -> bool:
        if principal is None:
            logger.debug(f"Principal snapshot is loading; denying {operation}")
            return False
        if self.overrides is None or self.tenant_overrides is None:
            logger.debug(f"Override snapshot for principal {principal.id} is loading; denying {operation}")
            return False
        return True

    def _modules_ready(self, principal: Optional[Principal], module_id: str) -> bool:
        if principal is None:
            logger.debug(f"Principal snapshot is loading; denying transitions for {module_id}")
            return False
        if self.modules is None:
            logger.debug(f"Module configuration is loading; denying transitions for {module_id}")
            return False
        return True

    def _overrides_for(self, principal: Principal) -> List[AnyOverride]:
        """Principal overrides plus those of the principal's current store."""
        membership = self.resolver.current_membership(principal)
        tenant_id = membership.tenant_id if membership else None
        own = [o for o in self.overrides if o.principal_id == principal.id]
        store = [o for o in self.tenant_overrides if tenant_id is not None and o.tenant_id == tenant_id]
        return store + own
