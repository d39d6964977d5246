"""Module workflow rules for StoreGuard.

Implements the data-driven, per-module status transition graphs.
"""

from .states import ModuleConfig, ModuleStatus, WILDCARD_ROLE, build_module_config
from .machine import ModuleStateMachine, ModuleTransitionGraph

__all__ = [
    "ModuleConfig",
    "ModuleStatus",
    "WILDCARD_ROLE",
    "build_module_config",
    "ModuleStateMachine",
    "ModuleTransitionGraph",
]
