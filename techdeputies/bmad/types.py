"""Value types shared by the BMad command modules."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MODULES = ("core", "bmm", "bmb", "cis")
TYPES = ("workflows", "agents", "tasks")

# Command types are plural in the slash syntax, singular in TOML file names
SINGULAR_TYPES = {"workflows": "workflow", "agents": "agent", "tasks": "task"}
PLURAL_TYPES = {v: k for k, v in SINGULAR_TYPES.items()}


@dataclass
class BMadCommand:
    module: str
    type: str
    name: str
    original_input: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.module}:{self.type}:{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "type": self.type,
            "name": self.name,
            "parameters": dict(self.parameters),
            "originalInput": self.original_input,
        }


@dataclass
class BMadResult:
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    execution_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success, "executionTime": self.execution_time_ms}
        if self.success:
            body["output"] = self.output
        else:
            body["error"] = self.error
        if self.details:
            body["details"] = self.details
        return body


@dataclass
class CommandDefinition:
    """A workflow/agent/task prompt loaded from a TOML file."""

    module: str
    type: str
    name: str
    description: str
    prompt: str
    file_path: str

    @property
    def key(self) -> str:
        return f"{self.module}:{self.type}:{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "filePath": self.file_path,
        }


@dataclass
class AgentDefinition:
    module: str
    name: str
    description: str
    content: str
    file_path: str

    @property
    def key(self) -> str:
        return f"{self.module}:{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "name": self.name,
            "description": self.description,
            "filePath": self.file_path,
        }
