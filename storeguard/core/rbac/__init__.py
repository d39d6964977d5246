"""RBAC (Role-Based Access Control) module for StoreGuard.

This module defines the role hierarchy, the permission catalog, store
memberships, permission overrides and the policy evaluator.
"""

from .roles import RoleHierarchy, RoleDefinition, ConfigurationError, UnknownRoleError, DEFAULT_ROLES
from .permissions import PermissionCatalog, PermissionDefinition, PermissionType
from .catalog import AccessCatalog, load_access_catalog
from .membership import Principal, Membership, MembershipResolver, TenantAccessError
from .overrides import PermissionOverride, TenantPermissionOverride, OverrideKind, OverrideEngine
from .checker import PolicyEvaluator, EffectivePermission, PermissionSource

__all__ = [
    "RoleHierarchy",
    "RoleDefinition",
    "ConfigurationError",
    "UnknownRoleError",
    "DEFAULT_ROLES",
    "PermissionCatalog",
    "PermissionDefinition",
    "PermissionType",
    "AccessCatalog",
    "load_access_catalog",
    "Principal",
    "Membership",
    "MembershipResolver",
    "TenantAccessError",
    "PermissionOverride",
    "TenantPermissionOverride",
    "OverrideKind",
    "OverrideEngine",
    "PolicyEvaluator",
    "EffectivePermission",
    "PermissionSource",
]
