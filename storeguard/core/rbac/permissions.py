"""Permission catalog for StoreGuard RBAC.

Permissions are opaque string identifiers (e.g. "sales:view",
"capas.delete"). The catalog maps each role to its base permission set
and keeps the registry of every permission the system knows about.

Lookups are fail-closed: an unknown role has no permissions.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional

from .roles import ConfigurationError


class PermissionType(str, Enum):
    """Kinds of permissions exposed by the administration API."""

    ABILITY = "ability"   # An action (create, approve, delete...)
    SCREEN = "screen"     # Access to a screen
    FEATURE = "feature"   # A feature toggle inside a screen


class PermissionDefinition(NamedTuple):
    """A permission known to the catalog."""

    name: str
    display_name: str = ""
    type: PermissionType = PermissionType.ABILITY
    module: str = ""
    description: Optional[str] = None


class PermissionCatalog:
    """Static mapping role -> base permissions.

    Loaded once at process/session start. Every permission referenced by a
    role is registered as known; extra definitions (e.g. module permissions
    fetched from the administration API) can be registered on top.
    """

    def __init__(
        self,
        role_permissions: Mapping[str, Iterable[str]],
        definitions: Iterable[PermissionDefinition] = (),
        roles: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the catalog.

        Args:
            role_permissions: Base permission names per role
            definitions: Extra permission definitions to register as known
            roles: Closed role set; when given, mappings for other roles
                are rejected

        Raises:
            ConfigurationError: If a mapping references an undeclared role
        """
        if roles is not None:
            declared = set(roles)
            unknown = sorted(set(role_permissions) - declared)
            if unknown:
                raise ConfigurationError(
                    f"Permission mapping references undeclared roles: {', '.join(unknown)}"
                )

        self._role_permissions: Dict[str, FrozenSet[str]] = {
            role: frozenset(perms) for role, perms in role_permissions.items()
        }

        self._definitions: Dict[str, PermissionDefinition] = {}
        for perms in self._role_permissions.values():
            for name in perms:
                self._definitions.setdefault(name, PermissionDefinition(name))
        for definition in definitions:
            self._definitions[definition.name] = definition

    def base_permissions(self, role: Optional[str]) -> FrozenSet[str]:
        """Get base permissions of a role (empty for unknown roles)."""
        if role is None:
            return frozenset()
        return self._role_permissions.get(role, frozenset())

    def role_has_permission(self, role: Optional[str], permission: str) -> bool:
        """Check if a role grants a permission by default."""
        return permission in self.base_permissions(role)

    def roles_with_permission(self, permission: str) -> List[str]:
        """Get roles whose base set contains the permission."""
        return sorted(
            role for role, perms in self._role_permissions.items() if permission in perms
        )

    def is_known(self, permission: str) -> bool:
        """Check if a permission is registered in the catalog."""
        return permission in self._definitions

    @property
    def known_permissions(self) -> FrozenSet[str]:
        return frozenset(self._definitions)

    def definition(self, permission: str) -> Optional[PermissionDefinition]:
        return self._definitions.get(permission)

    def get_permissions_for_module(self, module: str) -> List[str]:
        """Get all known permission names of a module."""
        return sorted(d.name for d in self._definitions.values() if d.module == module)

    def with_definitions(self, definitions: Iterable[PermissionDefinition]) -> "PermissionCatalog":
        """Return a new catalog with extra permission definitions registered."""
        return PermissionCatalog(
            self._role_permissions,
            list(self._definitions.values()) + list(definitions),
        )
