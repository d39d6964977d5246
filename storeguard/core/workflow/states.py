"""Module workflow configuration.

Each module (e.g. "pedidos-simples", "capas-personalizadas") ships its own
status set and transition rules as data:

    transitions:             from_status -> {to_status, ...}
    transition_role_matrix:  from_status -> to_status -> {role, ...}

Example (capas-personalizadas):

    ┌───────────┐  gerente, admin  ┌───────────┐   *   ┌──────────┐
    │ 1 NOVO    │─────────────────►│ 2 APROV.  │──────►│ 3 FINAL  │
    └───────────┘                  └───────────┘       └──────────┘

The wildcard role ``"*"`` on an edge permits it for every role. An edge
with no matrix entry is permitted for no one except super admins.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple

logger = logging.getLogger(__name__)

WILDCARD_ROLE = "*"

StatusId = int
Edge = Tuple[StatusId, StatusId]


@dataclass(frozen=True)
class ModuleStatus:
    """A status of a module. Only its existence matters to the engine."""

    id: StatusId
    name: str = ""
    label: str = ""
    final: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModuleConfig:
    """Configuration snapshot of one module."""

    module_id: str
    statuses: Mapping[StatusId, ModuleStatus] = field(default_factory=dict)
    transitions: Mapping[StatusId, FrozenSet[StatusId]] = field(default_factory=dict)
    role_matrix: Mapping[StatusId, Mapping[StatusId, FrozenSet[str]]] = field(default_factory=dict)

    def edges(self) -> FrozenSet[Edge]:
        """All status -> status edges of the transition graph."""
        return frozenset(
            (from_status, to_status)
            for from_status, targets in self.transitions.items()
            for to_status in targets
        )

    def matrix_edges(self) -> FrozenSet[Edge]:
        """All edges that carry a role matrix entry."""
        return frozenset(
            (from_status, to_status)
            for from_status, targets in self.role_matrix.items()
            for to_status in targets
        )


def build_module_config(
    module_id: str,
    statuses: Mapping[StatusId, ModuleStatus],
    transitions: Mapping[StatusId, Iterable[StatusId]],
    role_matrix: Mapping[StatusId, Mapping[StatusId, Iterable[str]]],
) -> ModuleConfig:
    """Freeze plain mappings into a ModuleConfig."""
    return ModuleConfig(
        module_id=module_id,
        statuses=dict(statuses),
        transitions={k: frozenset(v) for k, v in transitions.items()},
        role_matrix={
            from_status: {to_status: frozenset(roles) for to_status, roles in targets.items()}
            for from_status, targets in role_matrix.items()
        },
    )


def find_inconsistencies(config: ModuleConfig) -> List[str]:
    """
    Describe data inconsistencies of a module configuration.

    Reported (and ignored at evaluation time):
    - graph edges touching a status that is not declared
    - matrix entries for edges absent from the graph

    Edges that exist in the graph but have no matrix entry are valid; they
    are simply permitted for super admins only.
    """
    problems = []
    if config.statuses:
        for from_status, to_status in sorted(config.edges()):
            for status in (from_status, to_status):
                if status not in config.statuses:
                    problems.append(
                        f"edge {from_status}->{to_status} references undeclared status {status}"
                    )
    graph = config.edges()
    for from_status, to_status in sorted(config.matrix_edges() - graph):
        problems.append(f"matrix edge {from_status}->{to_status} is not in the transition graph")
    return problems


def valid_edges(config: ModuleConfig) -> FrozenSet[Edge]:
    """Graph edges whose endpoints are declared statuses."""
    if not config.statuses:
        return config.edges()
    return frozenset(
        (from_status, to_status)
        for from_status, to_status in config.edges()
        if from_status in config.statuses and to_status in config.statuses
    )


def roles_by_edge(config: ModuleConfig) -> Dict[Edge, FrozenSet[str]]:
    """Role matrix restricted to valid graph edges."""
    edges = valid_edges(config)
    return {
        (from_status, to_status): roles
        for from_status, targets in config.role_matrix.items()
        for to_status, roles in targets.items()
        if (from_status, to_status) in edges
    }
