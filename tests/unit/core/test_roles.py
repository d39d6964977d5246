"""Tests for the role hierarchy and default roles."""

import pytest

from storeguard.core.rbac.catalog import AccessCatalog
from storeguard.core.rbac.roles import (
    DEFAULT_ROLES,
    ConfigurationError,
    RoleHierarchy,
    RoleScope,
    UnknownRoleError,
    build_role_definitions,
    parse_role_definition,
)


class TestRoleHierarchy:
    """Test RoleHierarchy ordering."""

    @pytest.fixture
    def hierarchy(self):
        return RoleHierarchy({"vendedor": 1, "gerente": 2, "admin": 3})

    def test_at_least_higher_role(self, hierarchy):
        """Test a higher role satisfies a lower minimum."""
        assert hierarchy.at_least("admin", "gerente")
        assert hierarchy.at_least("gerente", "vendedor")

    def test_at_least_same_role(self, hierarchy):
        """Test a role satisfies itself."""
        for role in ("vendedor", "gerente", "admin"):
            assert hierarchy.at_least(role, role)

    def test_at_least_lower_role(self, hierarchy):
        """Test a lower role does not satisfy a higher minimum."""
        assert not hierarchy.at_least("vendedor", "gerente")
        assert not hierarchy.at_least("gerente", "admin")

    def test_unknown_role_raises(self, hierarchy):
        """Test unknown roles raise UnknownRoleError."""
        with pytest.raises(UnknownRoleError) as exc_info:
            hierarchy.level("supervisor")
        assert exc_info.value.role == "supervisor"

        with pytest.raises(UnknownRoleError):
            hierarchy.at_least("admin", "supervisor")

    def test_ordered_roles(self, hierarchy):
        """Test roles are ordered from lowest to highest."""
        assert hierarchy.roles == ("vendedor", "gerente", "admin")
        assert hierarchy.highest == "admin"
        assert len(hierarchy) == 3
        assert "gerente" in hierarchy
        assert "fabrica" not in hierarchy

    def test_max_role(self, hierarchy):
        """Test the highest of several roles is found."""
        assert hierarchy.max_role(["vendedor", "admin", "gerente"]) == "admin"
        assert hierarchy.max_role(["vendedor", "unknown"]) == "vendedor"
        assert hierarchy.max_role([]) is None

    def test_tied_levels_rejected(self):
        """Test two roles at the same level are rejected."""
        with pytest.raises(ConfigurationError):
            RoleHierarchy({"vendedor": 1, "caixa": 1})

    def test_empty_hierarchy_rejected(self):
        """Test an empty hierarchy is rejected."""
        with pytest.raises(ConfigurationError):
            RoleHierarchy({})


class TestRoleDefinitions:
    """Test parsing of role catalog entries."""

    def test_parse_tenant_role(self):
        """Test parsing a tenant role."""
        role = parse_role_definition("gerente", {
            "name": "Gerente",
            "level": 3,
            "permissions": ["goals:manage"],
        })
        assert role.display_name == "Gerente"
        assert role.level == 3
        assert role.scope == RoleScope.TENANT
        assert "goals:manage" in role.permissions
        assert not role.is_global

    def test_parse_global_role(self):
        """Test a global role carries no level."""
        role = parse_role_definition("fabrica", {"scope": "global", "level": 9})
        assert role.is_global
        assert role.level is None
        assert role.display_name == "fabrica"

    def test_tenant_role_requires_level(self):
        """Test tenant roles without level are rejected."""
        with pytest.raises(ConfigurationError):
            parse_role_definition("gerente", {"name": "Gerente"})

    def test_non_integer_level_rejected(self):
        """Test non integer levels are rejected."""
        with pytest.raises(ConfigurationError):
            parse_role_definition("gerente", {"level": "high"})
        with pytest.raises(ConfigurationError):
            parse_role_definition("gerente", {"level": True})

    def test_invalid_scope_rejected(self):
        """Test an unknown scope is rejected."""
        with pytest.raises(ConfigurationError):
            parse_role_definition("gerente", {"level": 1, "scope": "planet"})

    def test_empty_catalog_rejected(self):
        """Test an empty role catalog is rejected."""
        with pytest.raises(ConfigurationError):
            build_role_definitions({})


class TestDefaultRoles:
    """Test the built-in role catalog."""

    def test_default_levels(self):
        """Test default role levels."""
        roles = build_role_definitions(DEFAULT_ROLES)
        hierarchy = RoleHierarchy.from_definitions(roles.values())
        assert hierarchy.roles == ("vendedor", "conferente", "gerente", "admin")

    def test_fabrica_is_global(self):
        """Test the factory role sits outside the hierarchy."""
        roles = build_role_definitions(DEFAULT_ROLES)
        assert roles["fabrica"].is_global
        assert "fabrica" not in RoleHierarchy.from_definitions(roles.values())

    def test_admin_has_user_management(self):
        """Test admin permissions."""
        perms = AccessCatalog.default().permissions.base_permissions("admin")
        assert "users:manage" in perms
        assert "stores:manage" in perms

    def test_vendedor_permissions_limited(self):
        """Test vendedor cannot approve closings."""
        perms = AccessCatalog.default().permissions.base_permissions("vendedor")
        assert "sales:create" in perms
        assert "closing:approve" not in perms
        assert "users:manage" not in perms

    def test_unknown_default_role(self):
        """Test roles outside the default catalog have no permissions."""
        assert AccessCatalog.default().permissions.base_permissions("supervisor") == frozenset()
