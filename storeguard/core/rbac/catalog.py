"""Access catalog: the static half of the policy engine.

Bundles the role definitions, the role hierarchy and the permission
catalog. Built once at process start, either from the built-in default
roles or from a YAML role catalog; every consistency problem is raised
here as ConfigurationError and never at request time.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from src.common.config import CatalogConfig, load_typed_config

from ..config import Settings, get_settings
from .permissions import PermissionCatalog, PermissionDefinition, PermissionType
from .roles import (
    DEFAULT_ROLES,
    ConfigurationError,
    RoleDefinition,
    RoleHierarchy,
    build_role_definitions,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessCatalog:
    """Closed role set, hierarchy and base permissions."""

    roles: Mapping[str, RoleDefinition]
    hierarchy: RoleHierarchy
    permissions: PermissionCatalog

    @classmethod
    def from_roles(
        cls,
        roles_config: Mapping[str, Mapping],
        definitions: Iterable[PermissionDefinition] = (),
    ) -> "AccessCatalog":
        """
        Build a catalog from role entries.

        Args:
            roles_config: role key -> {name, level, scope, permissions, ...}
            definitions: Extra permissions to register as known

        Raises:
            ConfigurationError: If the catalog is inconsistent
        """
        roles = build_role_definitions(roles_config)
        hierarchy = RoleHierarchy.from_definitions(roles.values())
        permissions = PermissionCatalog(
            {key: role.permissions for key, role in roles.items()},
            definitions,
            roles=roles.keys(),
        )
        return cls(roles=roles, hierarchy=hierarchy, permissions=permissions)

    @classmethod
    def from_config(cls, config: CatalogConfig) -> "AccessCatalog":
        """Build a catalog from a parsed YAML role catalog."""
        definitions = []
        for permission in config.permissions:
            if not permission.name:
                raise ConfigurationError("Permission entry without a name")
            try:
                permission_type = PermissionType(permission.type)
            except ValueError:
                raise ConfigurationError(
                    f"Permission {permission.name!r} has invalid type: {permission.type!r}"
                )
            definitions.append(PermissionDefinition(
                name=permission.name,
                display_name=permission.display_name,
                type=permission_type,
                module=permission.module,
                description=permission.description,
            ))

        return cls.from_roles(
            {key: role.to_dict() for key, role in config.roles.items()},
            definitions,
        )

    @classmethod
    def default(cls) -> "AccessCatalog":
        """Catalog of the built-in default roles."""
        return cls.from_roles(DEFAULT_ROLES)

    @property
    def global_roles(self) -> FrozenSet[str]:
        """Roles held through principal flags instead of memberships."""
        return frozenset(key for key, role in self.roles.items() if role.is_global)

    def display_name(self, role: str) -> str:
        definition = self.roles.get(role)
        return definition.display_name if definition else role

    def with_definitions(self, definitions: Iterable[PermissionDefinition]) -> "AccessCatalog":
        """Return a catalog with extra known permissions registered."""
        return AccessCatalog(
            roles=self.roles,
            hierarchy=self.hierarchy,
            permissions=self.permissions.with_definitions(definitions),
        )

    def describe(self) -> Dict[str, int]:
        return {
            "roles": len(self.roles),
            "tenant_roles": len(self.hierarchy),
            "permissions": len(self.permissions.known_permissions),
        }


def load_access_catalog(settings: Optional[Settings] = None) -> AccessCatalog:
    """
    Load the access catalog configured for this process.

    Raises:
        ConfigurationError: If the catalog is inconsistent
        FileNotFoundError: If the configured catalog file is missing
    """
    settings = settings or get_settings()
    if settings.role_catalog_path:
        catalog = AccessCatalog.from_config(load_typed_config(settings.role_catalog_path))
        source = settings.role_catalog_path
    else:
        catalog = AccessCatalog.default()
        source = "default roles"

    logger.info(f"Access catalog loaded from {source}: {catalog.describe()}")
    return catalog
