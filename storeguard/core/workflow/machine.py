"""Data-driven transition graphs for configurable modules.

ModuleStateMachine answers transition questions for one module;
ModuleTransitionGraph is the snapshot of every configured module, keyed by
module id. Both are read-only and fail closed: an unknown module, an
unknown status or an edge without matrix entry yields no targets.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from .states import (
    WILDCARD_ROLE,
    ModuleConfig,
    ModuleStatus,
    StatusId,
    find_inconsistencies,
    roles_by_edge,
    valid_edges,
)

logger = logging.getLogger(__name__)


class ModuleStateMachine:
    """
    Transition rules of a single module.

    Built once per configuration snapshot; inconsistent entries are
    dropped (and logged) at build time so lookups stay simple.
    """

    def __init__(self, config: ModuleConfig):
        self.config = config

        for problem in find_inconsistencies(config):
            logger.warning(f"Module {config.module_id}: {problem}; ignoring")

        self._targets: Dict[StatusId, FrozenSet[StatusId]] = {}
        for from_status, to_status in valid_edges(config):
            self._targets[from_status] = self._targets.get(from_status, frozenset()) | {to_status}

        self._roles: Dict[StatusId, Dict[StatusId, FrozenSet[str]]] = {}
        for (from_status, to_status), roles in roles_by_edge(config).items():
            self._roles.setdefault(from_status, {})[to_status] = roles

    @property
    def module_id(self) -> str:
        return self.config.module_id

    @property
    def statuses(self) -> Mapping[StatusId, ModuleStatus]:
        return self.config.statuses

    def allowed_targets(self, from_status: StatusId) -> FrozenSet[StatusId]:
        """Raw graph targets from a status, independent of role."""
        return self._targets.get(from_status, frozenset())

    def allowed_targets_for_role(self, from_status: StatusId, role: Optional[str]) -> FrozenSet[StatusId]:
        """Targets whose matrix entry lists the role or the wildcard."""
        if role is None:
            return frozenset()
        return frozenset(
            to_status
            for to_status, roles in self._roles.get(from_status, {}).items()
            if role in roles or WILDCARD_ROLE in roles
        )

    def can_transition(self, from_status: StatusId, to_status: StatusId, role: Optional[str]) -> bool:
        return to_status in self.allowed_targets_for_role(from_status, role)

    def is_final(self, status: StatusId) -> bool:
        """Check if a status is final (declared final or without outgoing edges)."""
        declared = self.config.statuses.get(status)
        if declared is not None and declared.final:
            return True
        return not self.allowed_targets(status)


class ModuleTransitionGraph:
    """Transition rules of every configured module, keyed by module id."""

    def __init__(self, machines: Optional[Mapping[str, ModuleStateMachine]] = None):
        self._machines: Dict[str, ModuleStateMachine] = dict(machines or {})

    @classmethod
    def from_configs(cls, configs: Iterable[ModuleConfig]) -> "ModuleTransitionGraph":
        return cls({config.module_id: ModuleStateMachine(config) for config in configs})

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._machines

    @property
    def module_ids(self) -> FrozenSet[str]:
        return frozenset(self._machines)

    def get(self, module_id: str) -> Optional[ModuleStateMachine]:
        machine = self._machines.get(module_id)
        if machine is None:
            logger.debug(f"No configuration for module {module_id}")
        return machine

    def statuses(self, module_id: str) -> Mapping[StatusId, ModuleStatus]:
        machine = self.get(module_id)
        return machine.statuses if machine else {}

    def allowed_targets(self, module_id: str, from_status: StatusId) -> FrozenSet[StatusId]:
        machine = self.get(module_id)
        return machine.allowed_targets(from_status) if machine else frozenset()

    def allowed_targets_for_role(
        self,
        module_id: str,
        from_status: StatusId,
        role: Optional[str],
    ) -> FrozenSet[StatusId]:
        machine = self.get(module_id)
        return machine.allowed_targets_for_role(from_status, role) if machine else frozenset()

    def can_transition(
        self,
        module_id: str,
        from_status: StatusId,
        to_status: StatusId,
        role: Optional[str],
    ) -> bool:
        return to_status in self.allowed_targets_for_role(module_id, from_status, role)
