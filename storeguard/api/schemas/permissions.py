"""Permission and override payloads from the permission administration API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storeguard.core.rbac.overrides import OverrideKind, PermissionOverride, TenantPermissionOverride
from storeguard.core.rbac.permissions import PermissionDefinition, PermissionType


class OverridePayload(BaseModel):
    """A principal override as listed by /permissions/users/{id}/overrides."""

    id: Optional[int] = None
    permission: str
    kind: OverrideKind = Field(..., alias="type")
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    granted_by: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("kind", mode="before")
    @classmethod
    def _lower_kind(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    def to_override(self, principal_id: Any) -> PermissionOverride:
        return PermissionOverride(
            principal_id=principal_id,
            permission=self.permission,
            kind=self.kind,
            expires_at=self.expires_at,
            reason=self.reason,
            id=self.id,
            granted_by=self.granted_by,
        )


class TenantOverridePayload(BaseModel):
    """A store-wide override."""

    id: Optional[int] = None
    tenant_id: int = Field(..., alias="store_id")
    permission: str
    kind: OverrideKind = Field(..., alias="type")
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("kind", mode="before")
    @classmethod
    def _lower_kind(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    def to_override(self) -> TenantPermissionOverride:
        return TenantPermissionOverride(
            tenant_id=self.tenant_id,
            permission=self.permission,
            kind=self.kind,
            expires_at=self.expires_at,
            reason=self.reason,
            id=self.id,
        )


class PermissionPayload(BaseModel):
    """A permission declaration."""

    name: str
    display_name: str = ""
    type: PermissionType = PermissionType.ABILITY
    module: str = ""
    description: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ModuleGroup(BaseModel):
    """Permissions declared by one module, split by type."""

    module: str
    module_display: str = ""
    abilities: List[PermissionPayload] = Field(default_factory=list)
    screens: List[PermissionPayload] = Field(default_factory=list)
    features: List[PermissionPayload] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def permissions(self) -> List[PermissionPayload]:
        return self.abilities + self.screens + self.features


_GROUP_FIELDS = {
    PermissionType.ABILITY: "abilities",
    PermissionType.SCREEN: "screens",
    PermissionType.FEATURE: "features",
}


def _legacy_group(module: str, permissions: Any) -> ModuleGroup:
    group = ModuleGroup(module=module)
    if not isinstance(permissions, list):
        # Legacy listings occasionally carry non-list values; nothing to register
        return group
    for entry in permissions:
        if isinstance(entry, str):
            entry = {"name": entry}
        permission = PermissionPayload.model_validate(entry)
        getattr(group, _GROUP_FIELDS[permission.type]).append(permission)
    return group


def normalize_permission_groups(payload: Any) -> List[ModuleGroup]:
    """
    Normalize a permission listing into module groups.

    Accepted shapes:
    - ``{"data": [...]}`` or ``[{module, module_display, abilities, screens, features}]``
      (grouped listing)
    - ``{module: [permission, ...]}`` (legacy listing)

    Permissions without a module take the group's module.

    Raises:
        pydantic.ValidationError: If an entry is malformed
        TypeError: If the payload is neither a list nor a dict
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]

    if isinstance(payload, dict):
        groups = [_legacy_group(module, permissions) for module, permissions in payload.items()]
    elif isinstance(payload, list):
        groups = [ModuleGroup.model_validate(entry) for entry in payload]
    else:
        raise TypeError(f"Unsupported permission listing: {type(payload).__name__}")

    for group in groups:
        for permission in group.permissions:
            if not permission.module:
                permission.module = group.module
    return groups


def definitions_from_groups(groups: List[ModuleGroup]) -> List[PermissionDefinition]:
    """Flatten module groups into catalog permission definitions."""
    definitions: Dict[str, PermissionDefinition] = {}
    for group in groups:
        for permission in group.permissions:
            definitions[permission.name] = PermissionDefinition(
                name=permission.name,
                display_name=permission.display_name or permission.name,
                type=permission.type,
                module=permission.module,
                description=permission.description,
            )
    return list(definitions.values())
