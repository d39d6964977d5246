"""Principals, store memberships and current-store resolution.

A principal holds at most one role per tenant (store). The store "in
effect" is the explicitly selected one when the principal is a member
there, otherwise the first membership in the principal's list.

Roles granted without any store (e.g. the factory partner role) live in
``global_role_flags`` and never appear as memberships.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Tuple

from .roles import RoleHierarchy

logger = logging.getLogger(__name__)


def principal_key(value: Any) -> Any:
    """Key a principal id the way the forwarded principal header carries it.

    Collaborators hand out numeric user ids; sessions are looked up by the
    header string. Integers are keyed as their decimal string.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class TenantAccessError(PermissionError):
    """Raised when switching to a store the principal is not a member of."""

    def __init__(self, principal_id: Any, tenant_id: Any):
        super().__init__(f"Principal {principal_id} has no membership at tenant {tenant_id}")
        self.principal_id = principal_id
        self.tenant_id = tenant_id


@dataclass(frozen=True)
class Membership:
    """A role held by a principal at one tenant."""

    tenant_id: int
    role: str
    tenant_name: str = ""


@dataclass(frozen=True)
class Principal:
    """Snapshot of an authenticated actor for the duration of a session."""

    id: Any
    is_super_admin: bool = False
    global_role_flags: Mapping[str, bool] = field(default_factory=dict)
    memberships: Tuple[Membership, ...] = ()
    current_tenant_id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "id", principal_key(self.id))
        # Lists are accepted for convenience but stored as a tuple
        object.__setattr__(self, "memberships", tuple(self.memberships))

        seen = set()
        for membership in self.memberships:
            if membership.tenant_id in seen:
                raise ValueError(
                    f"Principal {self.id} holds more than one role at tenant {membership.tenant_id}"
                )
            seen.add(membership.tenant_id)

    @property
    def tenant_ids(self) -> Tuple[int, ...]:
        return tuple(m.tenant_id for m in self.memberships)

    def membership_for(self, tenant_id: Optional[int]) -> Optional[Membership]:
        """Get the membership at a tenant, if any."""
        if tenant_id is None:
            return None
        for membership in self.memberships:
            if membership.tenant_id == tenant_id:
                return membership
        return None

    def has_global_role(self, role: str) -> bool:
        return bool(self.global_role_flags.get(role, False))

    def has_access_to_tenant(self, tenant_id: int) -> bool:
        return self.is_super_admin or self.membership_for(tenant_id) is not None

    def switch_tenant(self, tenant_id: int) -> "Principal":
        """Select the current tenant.

        Only the selection changes; memberships are left untouched.

        Raises:
            TenantAccessError: If the principal is not a member of the tenant
        """
        if self.membership_for(tenant_id) is None:
            raise TenantAccessError(self.id, tenant_id)
        return replace(self, current_tenant_id=tenant_id)


class MembershipResolver:
    """Resolves the membership and role in effect for a principal."""

    def __init__(self, hierarchy: RoleHierarchy):
        self.hierarchy = hierarchy

    def current_membership(
        self,
        principal: Principal,
        requested_tenant_id: Optional[int] = None,
    ) -> Optional[Membership]:
        """
        Get the membership in effect.

        Args:
            principal: Principal snapshot
            requested_tenant_id: Tenant to use; defaults to the principal's
                current selection

        Returns:
            The requested membership if the principal holds one there, else
            the first membership, else None
        """
        if not principal.memberships:
            return None

        if requested_tenant_id is None:
            requested_tenant_id = principal.current_tenant_id

        membership = principal.membership_for(requested_tenant_id)
        if membership is not None:
            return membership

        if requested_tenant_id is not None:
            logger.debug(
                f"Principal {principal.id} has no membership at tenant {requested_tenant_id}, "
                f"falling back to tenant {principal.memberships[0].tenant_id}"
            )
        return principal.memberships[0]

    def effective_role(
        self,
        principal: Principal,
        requested_tenant_id: Optional[int] = None,
    ) -> Optional[str]:
        """Get the role of the membership in effect."""
        membership = self.current_membership(principal, requested_tenant_id)
        return membership.role if membership else None

    def highest_role(self, principal: Principal) -> Optional[str]:
        """Get the highest role across all memberships.

        Super admins are treated as holding the maximum defined role.
        """
        if principal.is_super_admin:
            return self.hierarchy.highest
        return self.hierarchy.max_role(m.role for m in principal.memberships)

    def has_global_role(self, principal: Principal, role: str) -> bool:
        """Check a role granted without tenant membership."""
        return principal.has_global_role(role)
