"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone

import pytest

from storeguard.core.rbac.catalog import AccessCatalog
from storeguard.core.rbac.membership import Membership, Principal
from storeguard.core.workflow.machine import ModuleTransitionGraph
from storeguard.core.workflow.states import ModuleStatus, build_module_config

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return NOW


@pytest.fixture
def clock():
    """Clock returning the fixed evaluation time."""
    return lambda: NOW


@pytest.fixture
def sample_roles():
    """Small three-role catalog with a global factory role."""
    return {
        "vendedor": {
            "name": "Vendedor",
            "level": 1,
            "permissions": ["sales:create", "sales:view"],
        },
        "gerente": {
            "name": "Gerente",
            "level": 2,
            "permissions": ["sales:view", "capas.view", "goals:manage"],
        },
        "admin": {
            "name": "Administrador",
            "level": 3,
            "permissions": ["sales:view", "capas.view", "goals:manage", "users:manage"],
        },
        "fabrica": {
            "name": "Fábrica",
            "scope": "global",
        },
    }


@pytest.fixture
def catalog(sample_roles):
    """Access catalog built from the sample roles."""
    return AccessCatalog.from_roles(sample_roles)


@pytest.fixture
def capas_config():
    """capas-personalizadas: 1 -> 2 gated to managers, 2 -> 3 open to all."""
    return build_module_config(
        "capas-personalizadas",
        statuses={
            1: ModuleStatus(1, name="novo", label="Novo"),
            2: ModuleStatus(2, name="aprovado", label="Aprovado"),
            3: ModuleStatus(3, name="finalizado", label="Finalizado", final=True),
            4: ModuleStatus(4, name="cancelado", label="Cancelado", final=True),
        },
        transitions={1: [2, 4], 2: [3]},
        role_matrix={1: {2: ["gerente", "admin"]}, 2: {3: ["*"]}},
    )


@pytest.fixture
def modules(capas_config):
    """Transition graph with the capas module."""
    return ModuleTransitionGraph.from_configs([capas_config])


@pytest.fixture
def vendedor():
    """Sales person at store 10."""
    return Principal(id="u-vendedor", memberships=[Membership(10, "vendedor", "Centro")])


@pytest.fixture
def gerente():
    """Manager at store 10."""
    return Principal(id="u-gerente", memberships=[Membership(10, "gerente", "Centro")])


@pytest.fixture
def multi_store():
    """Principal holding different roles at two stores."""
    return Principal(
        id="u-multi",
        memberships=[
            Membership(10, "vendedor", "Centro"),
            Membership(20, "admin", "Shopping"),
        ],
    )


@pytest.fixture
def super_admin():
    """Super admin without memberships."""
    return Principal(id="u-root", is_super_admin=True)


@pytest.fixture
def factory_partner():
    """Factory partner holding only the global role."""
    return Principal(id="u-fabrica", global_role_flags={"fabrica": True})
