"""Policy query API endpoints.

Read-only views over the evaluator for the authenticated principal, plus
the store switch. Every answer is computed from the cached snapshots.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from storeguard.api.deps import PolicyContext, get_policy_context, get_policy_snapshots
from storeguard.core.config import Settings, get_settings
from storeguard.core.rbac.membership import TenantAccessError
from storeguard.core.snapshots import PolicySnapshots

router = APIRouter(prefix="/policy", tags=["policy"])


# Schemas
class MembershipResponse(BaseModel):
    tenant_id: int
    tenant_name: str
    role: str


class SessionResponse(BaseModel):
    principal_id: str
    is_super_admin: bool
    current_role: Optional[str]
    highest_role: Optional[str]
    current_membership: Optional[MembershipResponse]
    memberships: List[MembershipResponse]
    global_roles: List[str]


class EffectivePermissionResponse(BaseModel):
    name: str
    source: str
    role: Optional[str] = None
    tenant_id: Optional[int] = None
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class ExpiringPermissionResponse(BaseModel):
    permission: str
    expires_at: datetime
    expires_in_hours: int
    granted_by: Optional[str] = None


class TransitionsResponse(BaseModel):
    module_id: str
    from_status: int
    allowed: List[int]
    statuses: Dict[int, str]


def _membership_response(membership) -> MembershipResponse:
    return MembershipResponse(
        tenant_id=membership.tenant_id,
        tenant_name=membership.tenant_name,
        role=membership.role,
    )


def _session_response(context: PolicyContext) -> SessionResponse:
    principal, evaluator = context
    current = evaluator.current_membership(principal)
    return SessionResponse(
        principal_id=str(principal.id),
        is_super_admin=principal.is_super_admin,
        current_role=evaluator.current_role(principal),
        highest_role=evaluator.get_highest_role(principal),
        current_membership=_membership_response(current) if current else None,
        memberships=[_membership_response(m) for m in principal.memberships],
        global_roles=sorted(r for r in evaluator.catalog.global_roles if principal.has_global_role(r)),
    )


# Endpoints
@router.get("/session", response_model=SessionResponse)
async def get_session(context: PolicyContext = Depends(get_policy_context)):
    """Roles and stores of the authenticated principal."""
    return _session_response(context)


@router.post("/session/tenant/{tenant_id}", response_model=SessionResponse)
async def switch_tenant(
    tenant_id: int,
    context: PolicyContext = Depends(get_policy_context),
    snapshots: PolicySnapshots = Depends(get_policy_snapshots),
):
    """Select the store the principal is working in."""
    try:
        snapshots.switch_tenant(context.principal.id, tenant_id)
    except TenantAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session not available")

    principal, evaluator = snapshots.evaluator_for(context.principal.id)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session not available")
    return _session_response(PolicyContext(principal, evaluator))


@router.get("/permissions", response_model=List[EffectivePermissionResponse])
async def list_effective_permissions(context: PolicyContext = Depends(get_policy_context)):
    """Effective permissions with their source."""
    principal, evaluator = context
    return [
        EffectivePermissionResponse(
            name=p.name,
            source=p.source.value,
            role=p.role,
            tenant_id=p.tenant_id,
            expires_at=p.expires_at,
            reason=p.reason,
        )
        for p in evaluator.effective_permissions(principal)
    ]


@router.get("/permissions/expiring", response_model=List[ExpiringPermissionResponse])
async def list_expiring_permissions(
    days: Optional[int] = Query(None, ge=1, description="Window in days"),
    context: PolicyContext = Depends(get_policy_context),
    settings: Settings = Depends(get_settings),
):
    """Temporary grants expiring soon."""
    principal, evaluator = context
    window = timedelta(days=days or settings.expiring_window_days)
    return [
        ExpiringPermissionResponse(
            permission=e.permission,
            expires_at=e.expires_at,
            expires_in_hours=e.expires_in_hours,
            granted_by=e.granted_by,
        )
        for e in evaluator.expiring_overrides(principal, window)
    ]


@router.get("/permissions/{permission}")
async def check_permission(permission: str, context: PolicyContext = Depends(get_policy_context)):
    """Check a single permission."""
    principal, evaluator = context
    return {"permission": permission, "allowed": evaluator.has_permission(principal, permission)}


@router.get("/modules/{module_id}/transitions", response_model=TransitionsResponse)
async def list_allowed_transitions(
    module_id: str,
    from_status: int = Query(..., description="Current status of the item"),
    context: PolicyContext = Depends(get_policy_context),
):
    """Statuses the principal may move an item to."""
    principal, evaluator = context
    allowed = evaluator.allowed_transitions(principal, module_id, from_status)
    statuses = evaluator.statuses(module_id)
    return TransitionsResponse(
        module_id=module_id,
        from_status=from_status,
        allowed=sorted(allowed),
        statuses={s: statuses[s].label or statuses[s].name for s in sorted(allowed) if s in statuses},
    )
