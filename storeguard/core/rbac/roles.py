"""Role definitions and hierarchy for StoreGuard.

Defines the closed role set of the back office with its default
permission sets:
1. Admin - Full store administration
2. Gerente - Store management (goals, rules, reports, approvals)
3. Conferente - Cash conference (shifts, closings, divergences)
4. Vendedor - Sales floor (own sales, bonus, commission)
5. Fabrica - Factory partner, a global role held without store membership

Tenant roles are totally ordered by level (higher number = more power).
Global roles sit outside the hierarchy and are checked through the
principal's global role flags only.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple


class ConfigurationError(ValueError):
    """Raised when the static role/permission catalog is invalid."""


class UnknownRoleError(ConfigurationError):
    """Raised when a role is not part of the closed role set."""

    def __init__(self, role: Optional[str]):
        super().__init__(f"Unknown role: {role!r}")
        self.role = role


class RoleScope(str, Enum):
    """Where a role is assigned."""

    TENANT = "tenant"   # Assigned per store through a membership
    GLOBAL = "global"   # Assigned through a principal flag, no store


@dataclass(frozen=True)
class RoleDefinition:
    """A role in the closed role set."""

    key: str
    display_name: str
    level: Optional[int] = None
    description: str = ""
    scope: RoleScope = RoleScope.TENANT
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_system: bool = True

    @property
    def is_global(self) -> bool:
        return self.scope == RoleScope.GLOBAL


ADMIN_PERMISSIONS = [
    "dashboard:view",
    "sales:view",
    "sales:edit",
    "sales:delete",
    "bonus:view_all",
    "commission:view_all",
    "shift:view",
    "closing:approve",
    "closing:reject",
    "divergence:view",
    "goals:view",
    "goals:manage",
    "rules:view",
    "rules:manage",
    "ranking:view",
    "reports:store_performance",
    "reports:cash_integrity",
    "reports:consolidated",
    "users:view",
    "users:manage",
    "stores:view",
    "stores:manage",
    "audit:view",
]

GERENTE_PERMISSIONS = [
    "dashboard:view",
    "sales:view",
    "sales:edit",
    "bonus:view_all",
    "commission:view_all",
    "shift:view",
    "closing:approve",
    "closing:reject",
    "divergence:view",
    "goals:view",
    "goals:manage",
    "rules:view",
    "rules:manage",
    "ranking:view",
    "reports:store_performance",
    "reports:cash_integrity",
]

CONFERENTE_PERMISSIONS = [
    "dashboard:view",
    "shift:create",
    "shift:view",
    "closing:submit",
    "closing:approve",
    "closing:reject",
    "divergence:view",
    "reports:cash_integrity",
]

VENDEDOR_PERMISSIONS = [
    "dashboard:view",
    "sales:create",
    "sales:view",
    "bonus:view_own",
    "commission:view_own",
    "shift:create",
    "closing:submit",
]

# Global roles carry no store-scoped permissions
FABRICA_PERMISSIONS: List[str] = []


DEFAULT_ROLES: Dict[str, dict] = {
    "admin": {
        "name": "Administrador",
        "description": "Full store administration",
        "level": 4,
        "permissions": ADMIN_PERMISSIONS,
        "is_system": True,
    },
    "gerente": {
        "name": "Gerente",
        "description": "Manages goals, rules, reports and closing approvals",
        "level": 3,
        "permissions": GERENTE_PERMISSIONS,
        "is_system": True,
    },
    "conferente": {
        "name": "Conferente",
        "description": "Registers shifts and conferences cash closings",
        "level": 2,
        "permissions": CONFERENTE_PERMISSIONS,
        "is_system": True,
    },
    "vendedor": {
        "name": "Vendedor",
        "description": "Registers sales and follows own bonus and commission",
        "level": 1,
        "permissions": VENDEDOR_PERMISSIONS,
        "is_system": True,
    },
    "fabrica": {
        "name": "Fábrica",
        "description": "Factory partner handling production orders across stores",
        "scope": "global",
        "permissions": FABRICA_PERMISSIONS,
        "is_system": True,
    },
}


def parse_role_definition(key: str, role_dict: Mapping) -> RoleDefinition:
    """Build a RoleDefinition from a catalog entry.

    Raises:
        ConfigurationError: If the entry is malformed
    """
    try:
        scope = RoleScope(role_dict.get("scope", RoleScope.TENANT.value))
    except ValueError:
        raise ConfigurationError(f"Role {key!r} has invalid scope: {role_dict.get('scope')!r}")

    level = role_dict.get("level")
    if scope == RoleScope.TENANT:
        if level is None:
            raise ConfigurationError(f"Tenant role {key!r} requires a hierarchy level")
        if isinstance(level, bool) or not isinstance(level, int):
            raise ConfigurationError(f"Role {key!r} level must be an integer, got {level!r}")

    return RoleDefinition(
        key=key,
        display_name=role_dict.get("name") or key,
        level=level if scope == RoleScope.TENANT else None,
        description=role_dict.get("description", ""),
        scope=scope,
        permissions=frozenset(role_dict.get("permissions") or []),
        is_system=role_dict.get("is_system", False),
    )


def build_role_definitions(roles_config: Mapping[str, Mapping]) -> Dict[str, RoleDefinition]:
    """Parse and validate a full role catalog.

    Raises:
        ConfigurationError: If the catalog is empty or any entry is invalid
    """
    if not roles_config:
        raise ConfigurationError("Role catalog is empty")
    return {
        key: parse_role_definition(key, role_dict)
        for key, role_dict in roles_config.items()
    }


class RoleHierarchy:
    """Total order over tenant roles.

    Built once at load time; unknown roles and tied levels are rejected
    here so that per-request checks never see an inconsistent hierarchy.
    """

    def __init__(self, levels: Mapping[str, int]):
        if not levels:
            raise ConfigurationError("Role hierarchy is empty")

        seen: Dict[int, str] = {}
        for role, level in levels.items():
            if level in seen:
                raise ConfigurationError(
                    f"Roles {seen[level]!r} and {role!r} share hierarchy level {level}"
                )
            seen[level] = role

        self._levels: Dict[str, int] = dict(levels)
        self._ordered: Tuple[str, ...] = tuple(
            sorted(self._levels, key=self._levels.__getitem__)
        )

    @classmethod
    def from_definitions(cls, definitions: Iterable[RoleDefinition]) -> "RoleHierarchy":
        """Build the hierarchy from the tenant roles of a catalog."""
        return cls({d.key: d.level for d in definitions if not d.is_global})

    def __contains__(self, role: object) -> bool:
        return role in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    @property
    def roles(self) -> Tuple[str, ...]:
        """Roles ordered from lowest to highest level."""
        return self._ordered

    @property
    def highest(self) -> str:
        """The maximum defined role."""
        return self._ordered[-1]

    def level(self, role: str) -> int:
        """Get the hierarchy level of a role.

        Raises:
            UnknownRoleError: If the role is not in the hierarchy
        """
        try:
            return self._levels[role]
        except (KeyError, TypeError):
            raise UnknownRoleError(role)

    def at_least(self, role: str, min_role: str) -> bool:
        """Check if role is higher than or equal to min_role."""
        return self.level(role) >= self.level(min_role)

    def max_role(self, roles: Iterable[str]) -> Optional[str]:
        """Get the highest of the given roles, ignoring unknown ones."""
        known = [r for r in roles if r in self._levels]
        if not known:
            return None
        return max(known, key=self._levels.__getitem__)
