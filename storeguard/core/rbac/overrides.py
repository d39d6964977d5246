"""Time-bounded permission overrides.

Overrides are exceptions to the role-derived permission set, created by
administrators for a single principal or for every principal of a store:

    base permissions
      + every active grant
      - every active deny      (deny always wins, even over a grant)

An override whose ``expires_at`` is in the past is inert but stays in the
snapshot; it is simply skipped at evaluation time. Overrides naming a
permission the catalog does not know are ignored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import AbstractSet, Any, FrozenSet, Iterable, List, Optional, Union

from .membership import principal_key

logger = logging.getLogger(__name__)


class OverrideKind(str, Enum):
    """Effect of an override."""

    GRANT = "grant"
    DENY = "deny"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PermissionOverride:
    """A grant or deny of one permission for one principal."""

    principal_id: Any
    permission: str
    kind: OverrideKind
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    id: Optional[int] = None
    granted_by: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "principal_id", principal_key(self.principal_id))

    def is_active(self, now: datetime) -> bool:
        """Check the override has not expired at ``now``."""
        return self.expires_at is None or as_utc(self.expires_at) > as_utc(now)


@dataclass(frozen=True)
class TenantPermissionOverride:
    """A grant or deny of one permission for every principal of a store."""

    tenant_id: int
    permission: str
    kind: OverrideKind
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    id: Optional[int] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or as_utc(self.expires_at) > as_utc(now)


AnyOverride = Union[PermissionOverride, TenantPermissionOverride]


@dataclass(frozen=True)
class ExpiringPermission:
    """An active temporary grant that ends within the reporting window."""

    permission: str
    expires_at: datetime
    expires_in_hours: int
    granted_by: Optional[str] = None


class OverrideEngine:
    """Resolves overrides against a base permission set."""

    def __init__(self, known_permissions: Optional[AbstractSet[str]] = None):
        """
        Args:
            known_permissions: Permissions of the catalog. Overrides for any
                other name are inert. None disables the check.
        """
        self.known_permissions = known_permissions

    def active(self, overrides: Iterable[AnyOverride], now: datetime) -> List[AnyOverride]:
        """Filter out expired overrides and those naming unknown permissions."""
        active = []
        for override in overrides:
            if not override.is_active(now):
                continue
            if self.known_permissions is not None and override.permission not in self.known_permissions:
                logger.debug(f"Ignoring override for unknown permission: {override.permission}")
                continue
            active.append(override)
        return active

    def resolve(
        self,
        base_permissions: AbstractSet[str],
        overrides: Iterable[AnyOverride],
        now: datetime,
    ) -> FrozenSet[str]:
        """
        Compute the effective permission set.

        Args:
            base_permissions: Role-derived permissions
            overrides: Override snapshot (may include expired entries)
            now: Evaluation time

        Returns:
            Base permissions plus active grants minus active denies
        """
        grants = set()
        denies = set()
        for override in self.active(overrides, now):
            if override.kind == OverrideKind.DENY:
                denies.add(override.permission)
            else:
                grants.add(override.permission)

        return frozenset((set(base_permissions) | grants) - denies)

    def find_expiring(
        self,
        overrides: Iterable[AnyOverride],
        now: datetime,
        window: timedelta,
    ) -> List[ExpiringPermission]:
        """
        List active grants that expire within ``window``.

        Returns:
            ExpiringPermission entries sorted by expiry, soonest first
        """
        horizon = as_utc(now) + window
        expiring = []
        for override in self.active(overrides, now):
            if override.kind != OverrideKind.GRANT or override.expires_at is None:
                continue
            expires_at = as_utc(override.expires_at)
            if expires_at > horizon:
                continue
            remaining = expires_at - as_utc(now)
            expiring.append(ExpiringPermission(
                permission=override.permission,
                expires_at=expires_at,
                expires_in_hours=int(remaining.total_seconds() // 3600),
                granted_by=getattr(override, "granted_by", None),
            ))
        return sorted(expiring, key=lambda e: e.expires_at)
