"""Configuration management for storeguard.

Handles loading and validation of the YAML role catalog file:

    roles:
      admin:
        name: Administrador
        level: 4
        permissions: [dashboard:view, users:manage]
      fabrica:
        name: Fábrica
        scope: global
    permissions:
      - name: capas.view
        display_name: Ver capas
        type: screen
        module: capas
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class RoleConfig:
    """Configuration for a single role."""

    key: str
    name: str = ""
    level: Optional[int] = None
    scope: str = "tenant"
    description: str = ""
    permissions: List[str] = field(default_factory=list)
    is_system: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the role catalog entry format."""
        return {
            "name": self.name or self.key,
            "level": self.level,
            "scope": self.scope,
            "description": self.description,
            "permissions": list(self.permissions),
            "is_system": self.is_system,
        }


@dataclass
class PermissionConfig:
    """Configuration for a declared permission."""

    name: str
    display_name: str = ""
    type: str = "ability"
    module: str = ""
    description: Optional[str] = None


@dataclass
class CatalogConfig:
    """Top-level role catalog configuration."""

    roles: Dict[str, RoleConfig] = field(default_factory=dict)
    permissions: List[PermissionConfig] = field(default_factory=list)


def parse_role_config(key: str, role_dict: Dict[str, Any]) -> RoleConfig:
    """Parse a role configuration dictionary.

    Args:
        key: Role identifier
        role_dict: Role configuration dictionary

    Returns:
        RoleConfig instance
    """
    return RoleConfig(
        key=key,
        name=role_dict.get("name", ""),
        level=role_dict.get("level"),
        scope=role_dict.get("scope", "tenant"),
        description=role_dict.get("description", ""),
        permissions=role_dict.get("permissions") or [],
        is_system=role_dict.get("is_system", False),
    )


def parse_permission_config(permission: Any) -> PermissionConfig:
    """Parse a permission entry, either a bare name or a mapping.

    Args:
        permission: Permission name or configuration dictionary

    Returns:
        PermissionConfig instance
    """
    if isinstance(permission, str):
        return PermissionConfig(name=permission)

    return PermissionConfig(
        name=permission.get("name", ""),
        display_name=permission.get("display_name", ""),
        type=permission.get("type", "ability"),
        module=permission.get("module", ""),
        description=permission.get("description"),
    )


def parse_config(config_dict: Dict[str, Any]) -> CatalogConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        CatalogConfig instance
    """
    roles = {}
    for key, role_dict in (config_dict.get("roles") or {}).items():
        roles[key] = parse_role_config(key, role_dict or {})

    permissions = [
        parse_permission_config(p) for p in (config_dict.get("permissions") or [])
    ]

    return CatalogConfig(roles=roles, permissions=permissions)


def load_config(config_path: str = "/etc/storeguard/roles.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    # Validate config structure
    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    # Expand environment variables
    config = _expand_env_vars(config)

    return config


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration.

    Args:
        obj: Configuration object (dict, list, str, etc.)

    Returns:
        Configuration with expanded environment variables
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(
    config_path: str = "/etc/storeguard/roles.yaml",
) -> CatalogConfig:
    """Load and parse configuration into typed dataclass.

    Args:
        config_path: Path to configuration file

    Returns:
        CatalogConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_dict = load_config(config_path)
    return parse_config(config_dict)
