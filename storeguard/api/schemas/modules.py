"""Module configuration payload from the module configuration service.

Status ids arrive as JSON object keys (strings); they are coerced to
integers here so the core only ever sees integer status ids.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storeguard.core.rbac.permissions import PermissionDefinition
from storeguard.core.workflow.states import ModuleConfig, ModuleStatus, build_module_config

from storeguard.api.schemas.permissions import PermissionPayload


class ModuleStatusPayload(BaseModel):
    """Status metadata; only a few fields matter to the engine."""

    name: str = ""
    label: str = ""
    final: bool = False

    model_config = ConfigDict(extra="allow")


class ModuleConfigPayload(BaseModel):
    """Full module configuration (/modules/{id}/full) or transitions response."""

    id: Optional[str] = None
    statuses: Dict[int, ModuleStatusPayload] = Field(default_factory=dict)
    transitions: Dict[int, List[int]] = Field(default_factory=dict)
    transition_role_matrix: Dict[int, Dict[int, List[str]]] = Field(default_factory=dict)
    permissions: List[PermissionPayload] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _transitions_response(cls, data: Any) -> Any:
        # The transitions endpoint names the matrix "role_matrix" and the id "module_id"
        if isinstance(data, dict):
            data = dict(data)
            if "transition_role_matrix" not in data and "role_matrix" in data:
                data["transition_role_matrix"] = data.pop("role_matrix")
            if "id" not in data and "module_id" in data:
                data["id"] = data.pop("module_id")
        return data

    @field_validator("permissions", mode="before")
    @classmethod
    def _permission_names(cls, value: Any) -> Any:
        # Older backends list bare permission names
        if isinstance(value, list):
            return [{"name": p} if isinstance(p, str) else p for p in value]
        return value

    def to_config(self, module_id: Optional[str] = None) -> ModuleConfig:
        """Build the immutable module configuration.

        Raises:
            ValueError: If no module id is known
        """
        module_id = module_id or self.id
        if not module_id:
            raise ValueError("Module configuration without module id")

        statuses = {}
        for status_id, status in self.statuses.items():
            statuses[status_id] = ModuleStatus(
                id=status_id,
                name=status.name,
                label=status.label,
                final=status.final,
                metadata=dict(status.model_extra or {}),
            )

        return build_module_config(
            module_id,
            statuses,
            self.transitions,
            self.transition_role_matrix,
        )

    def permission_definitions(self) -> List[PermissionDefinition]:
        """Permissions declared by the module, for the catalog."""
        module = self.id or ""
        return [
            PermissionDefinition(
                name=p.name,
                display_name=p.display_name or p.name,
                type=p.type,
                module=p.module or module,
                description=p.description,
            )
            for p in self.permissions
        ]
