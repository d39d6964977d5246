"""FastAPI dependencies guarding endpoints with the policy evaluator.

The principal id is put on ``request.state.principal_id`` by the
authentication layer; snapshots live on ``app.state.policy_snapshots``.

Usage:
    @router.post(
        "/goals",
        dependencies=[Depends(RequirePermission("goals:manage"))],
    )
    async def create_goal():
        ...
"""

import logging
from typing import NamedTuple

from fastapi import Depends, HTTPException, Query, Request, status

from storeguard.core.rbac.checker import PolicyEvaluator
from storeguard.core.rbac.membership import Principal
from storeguard.core.snapshots import PolicySnapshots

logger = logging.getLogger(__name__)


class PolicyContext(NamedTuple):
    """Principal snapshot and evaluator for one request."""

    principal: Principal
    evaluator: PolicyEvaluator


def get_policy_snapshots(request: Request) -> PolicySnapshots:
    """Snapshot store of the running application."""
    snapshots = getattr(request.app.state, "policy_snapshots", None)
    if snapshots is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Policy engine not initialized",
        )
    return snapshots


def get_principal_id(request: Request) -> str:
    """Authenticated principal id."""
    principal_id = getattr(request.state, "principal_id", None)
    if principal_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal_id


def get_policy_context(
    principal_id: str = Depends(get_principal_id),
    snapshots: PolicySnapshots = Depends(get_policy_snapshots),
) -> PolicyContext:
    """Evaluator over the current snapshots of the authenticated principal."""
    principal, evaluator = snapshots.evaluator_for(principal_id)
    if principal is None:
        # Session snapshot is still loading (or was revoked)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session not available",
        )
    return PolicyContext(principal, evaluator)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class RequirePermission:
    """
    Require one (or all) of the given permissions.

    Usage:
        @router.get("/reports", dependencies=[Depends(RequirePermission("reports:consolidated"))])
    """

    def __init__(self, *permissions: str, require_all: bool = False):
        self.permissions = permissions
        self.require_all = require_all

    def __call__(self, context: PolicyContext = Depends(get_policy_context)) -> bool:
        principal, evaluator = context
        if self.require_all:
            has_access = evaluator.has_all_permissions(principal, self.permissions)
        else:
            has_access = evaluator.has_any_permission(principal, self.permissions)

        if not has_access:
            logger.info(f"Principal {principal.id} denied: requires {', '.join(self.permissions)}")
            raise _forbidden(f"Insufficient permissions. Required: {', '.join(self.permissions)}")
        return True


class RequireMinRole:
    """Require the current store role to be at least ``min_role``."""

    def __init__(self, min_role: str):
        self.min_role = min_role

    def __call__(self, context: PolicyContext = Depends(get_policy_context)) -> bool:
        principal, evaluator = context
        if not evaluator.has_min_role(principal, self.min_role):
            logger.info(f"Principal {principal.id} denied: requires role {self.min_role}")
            raise _forbidden(f"Insufficient role. Required: {self.min_role}")
        return True


class RequireTransition:
    """
    Require permission to move an item of a module between two statuses.

    The statuses are read from the ``from_status`` and ``to_status`` query
    parameters.
    """

    def __init__(self, module_id: str):
        self.module_id = module_id

    def __call__(
        self,
        from_status: int = Query(...),
        to_status: int = Query(...),
        context: PolicyContext = Depends(get_policy_context),
    ) -> bool:
        principal, evaluator = context
        if not evaluator.can_transition(principal, self.module_id, from_status, to_status):
            logger.info(
                f"Principal {principal.id} denied transition {from_status}->{to_status} "
                f"in module {self.module_id}"
            )
            raise _forbidden(
                f"Transition {from_status} -> {to_status} not allowed in module {self.module_id}"
            )
        return True
