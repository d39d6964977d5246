"""Session/principal payload from the authentication API (/me)."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storeguard.core.rbac.membership import Membership, Principal


class MembershipPayload(BaseModel):
    """A store role assignment, in either the current or the legacy shape."""

    tenant_id: int = Field(..., alias="tenantId")
    tenant_name: str = Field("", alias="tenantName")
    role: str

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _legacy_store(cls, data: Any) -> Any:
        # Legacy /me returns stores as {id, name, city, role}
        if isinstance(data, dict) and "id" in data and "tenantId" not in data and "tenant_id" not in data:
            data = dict(data)
            data["tenant_id"] = data.pop("id")
            if "name" in data:
                data["tenant_name"] = data.pop("name")
        return data


class PrincipalPayload(BaseModel):
    """Authenticated principal as returned by the session provider."""

    id: str
    is_super_admin: bool = False
    global_role_flags: Dict[str, bool] = Field(default_factory=dict)
    memberships: List[MembershipPayload] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        # Numeric ids are keyed like the forwarded principal header
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        """Fold legacy fields into the canonical shape.

        - ``stores`` -> ``memberships``
        - ``roles`` and ``has_fabrica_access`` -> global role flags

        The legacy ``roles`` list names every role of the user, store roles
        included; a role already held through a store is not a global flag.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "memberships" not in data and "stores" in data:
            data["memberships"] = data.pop("stores") or []

        store_roles = {
            m.get("role") if isinstance(m, dict) else getattr(m, "role", None)
            for m in data.get("memberships") or []
        }
        flags = dict(data.get("global_role_flags") or {})
        for role in data.pop("roles", None) or []:
            if role not in store_roles:
                flags.setdefault(role, True)
        if "has_fabrica_access" in data:
            flags.setdefault("fabrica", bool(data.pop("has_fabrica_access")))
        data["global_role_flags"] = flags

        if data.get("is_super_admin") is None:
            data["is_super_admin"] = False
        return data

    def to_principal(self, current_tenant_id: Optional[int] = None) -> Principal:
        """Build the immutable principal snapshot.

        Raises:
            ValueError: If the payload holds two roles at the same store
        """
        return Principal(
            id=self.id,
            is_super_admin=self.is_super_admin,
            global_role_flags=dict(self.global_role_flags),
            memberships=tuple(
                Membership(tenant_id=m.tenant_id, role=m.role, tenant_name=m.tenant_name)
                for m in self.memberships
            ),
            current_tenant_id=current_tenant_id,
        )
