"""Tests for role catalog configuration loading."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from src.common.config import (
    CatalogConfig,
    PermissionConfig,
    RoleConfig,
    load_config,
    load_typed_config,
    parse_config,
    parse_permission_config,
    parse_role_config,
)


class TestRoleConfig:
    """Tests for RoleConfig parsing."""

    def test_parse_tenant_role(self):
        """Test parsing a tenant role."""
        role = parse_role_config("gerente", {
            "name": "Gerente",
            "level": 3,
            "permissions": ["goals:manage", "rules:manage"],
        })

        assert role.key == "gerente"
        assert role.name == "Gerente"
        assert role.level == 3
        assert role.scope == "tenant"
        assert "goals:manage" in role.permissions

    def test_parse_global_role(self):
        """Test parsing a global role."""
        role = parse_role_config("fabrica", {"scope": "global"})

        assert role.scope == "global"
        assert role.level is None
        assert role.permissions == []

    def test_to_dict_defaults_name(self):
        """Test catalog entry falls back to the key as name."""
        entry = RoleConfig(key="vendedor", level=1).to_dict()

        assert entry["name"] == "vendedor"
        assert entry["level"] == 1
        assert entry["scope"] == "tenant"


class TestPermissionConfig:
    """Tests for PermissionConfig parsing."""

    def test_parse_bare_name(self):
        """Test a bare string is a permission name."""
        permission = parse_permission_config("capas.view")

        assert permission == PermissionConfig(name="capas.view")

    def test_parse_mapping(self):
        """Test a full permission entry."""
        permission = parse_permission_config({
            "name": "capas.view",
            "display_name": "Ver capas",
            "type": "screen",
            "module": "capas",
        })

        assert permission.display_name == "Ver capas"
        assert permission.type == "screen"
        assert permission.module == "capas"


class TestParseConfig:
    """Tests for full config parsing."""

    def test_parse_full_config(self):
        """Test parsing complete configuration."""
        config = parse_config({
            "roles": {
                "vendedor": {"level": 1},
                "admin": {"level": 2, "permissions": ["users:manage"]},
            },
            "permissions": ["capas.view", {"name": "capas.delete"}],
        })

        assert isinstance(config, CatalogConfig)
        assert set(config.roles) == {"vendedor", "admin"}
        assert [p.name for p in config.permissions] == ["capas.view", "capas.delete"]

    def test_parse_empty_config(self):
        """Test parsing empty configuration."""
        config = parse_config({})

        assert config.roles == {}
        assert config.permissions == []

    def test_parse_role_without_body(self):
        """Test a role declared without a mapping."""
        config = parse_config({"roles": {"vendedor": None}})

        assert config.roles["vendedor"].level is None


class TestLoadConfig:
    """Tests for loading configuration from files."""

    def test_load_config_file(self):
        """Test loading config from YAML file."""
        config_data = {"roles": {"vendedor": {"level": 1}}}

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            config = load_config(config_path)
            assert config["roles"]["vendedor"]["level"] == 1
        finally:
            Path(config_path).unlink()

    def test_load_missing_file(self):
        """Test loading non-existent config file."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/path/roles.yaml")

    def test_load_empty_file(self):
        """Test an empty file is an empty configuration."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            config_path = f.name

        try:
            assert load_config(config_path) == {}
        finally:
            Path(config_path).unlink()

    def test_load_non_mapping_root(self):
        """Test a list root is rejected."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("- vendedor\n- admin\n")
            config_path = f.name

        try:
            with pytest.raises(TypeError):
                load_config(config_path)
        finally:
            Path(config_path).unlink()

    def test_env_var_expansion(self, monkeypatch):
        """Test environment variables are expanded."""
        monkeypatch.setenv("STOREGUARD_ADMIN_NAME", "Dono")

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("roles:\n  admin:\n    name: ${STOREGUARD_ADMIN_NAME}\n    level: 1\n")
            config_path = f.name

        try:
            config = load_config(config_path)
            assert config["roles"]["admin"]["name"] == "Dono"
            assert config["roles"]["admin"]["level"] == 1
        finally:
            Path(config_path).unlink()

    def test_load_typed_config(self):
        """Test loading typed configuration."""
        config_data = {
            "roles": {
                "vendedor": {"name": "Vendedor", "level": 1},
                "fabrica": {"scope": "global"},
            },
            "permissions": [{"name": "capas.view", "type": "screen", "module": "capas"}],
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            config = load_typed_config(config_path)
            assert isinstance(config, CatalogConfig)
            assert config.roles["vendedor"].name == "Vendedor"
            assert config.roles["fabrica"].scope == "global"
            assert config.permissions[0].type == "screen"
        finally:
            os.unlink(config_path)
