"""
Variable substitution for BMad prompts.

Supported forms:

- ``{project-root}``, ``{installed_path}``, ``{config_source}``
- ``{config_source}:some.key``: value looked up in the YAML config file
- ``{{name}}``: context variables, plus ``date``, ``datetime`` and the
  ``user_*`` fields of the current user

Unresolvable references are left in place so ``validate_variables`` can
report them.
"""

import logging
import os
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

SYSTEM_VAR_RE = re.compile(r"\{(project-root|installed_path|config_source)\}(?!:[A-Za-z_])")
CONFIG_VAR_RE = re.compile(r"\{config_source\}:([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)")
TEMPLATE_VAR_RE = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_]*)\}\}")


@dataclass
class VariableContext:
    project_root: str
    installed_path: Optional[str] = None
    config_source: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    variables: Dict[str, Any] = field(default_factory=dict)


def get_nested_value(data: Any, dotted: str) -> Any:
    current = data
    for part in dotted.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def create_context(
    project_root: str,
    user: Optional[Dict[str, Any]] = None,
    installed_path: Optional[str] = None,
    config_source: Optional[str] = None,
    variables: Optional[Dict[str, Any]] = None,
) -> VariableContext:
    return VariableContext(
        project_root=project_root,
        installed_path=installed_path,
        config_source=config_source,
        user=user,
        variables=dict(variables or {}),
    )


class VariableResolver:
    def __init__(self):
        self._config_cache: Dict[str, Dict[str, Any]] = {}

    def load_config(self, config_source: str, project_root: str) -> Dict[str, Any]:
        path = Path(config_source)
        if not path.is_absolute():
            path = Path(project_root) / path
        key = str(path)
        if key in self._config_cache:
            return self._config_cache[key]
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config file %s: %s", path, e)
            data = {}
        if not isinstance(data, dict):
            data = {}
        self._config_cache[key] = data
        return data

    def _builtin_values(self, context: VariableContext) -> Dict[str, Any]:
        now = datetime.now(UTC)
        values: Dict[str, Any] = {
            "date": now.date().isoformat(),
            "datetime": now.isoformat(),
        }
        if context.user:
            for field_name in ("name", "email", "id", "role"):
                values[f"user_{field_name}"] = context.user.get(field_name) or ""
        return values

    def resolve(self, text: str, context: VariableContext) -> str:
        resolved = text

        if context.config_source:
            def config_value(match: re.Match) -> str:
                config = self.load_config(context.config_source, context.project_root)
                value = get_nested_value(config, match.group(1))
                if value is None:
                    logger.warning("Unresolved config variable %s", match.group(0))
                    return match.group(0)
                return str(value)

            resolved = CONFIG_VAR_RE.sub(config_value, resolved)

        system = {
            "project-root": context.project_root,
            "installed_path": context.installed_path,
            "config_source": context.config_source,
        }
        resolved = SYSTEM_VAR_RE.sub(
            lambda m: system[m.group(1)] if system[m.group(1)] is not None else m.group(0),
            resolved,
        )

        values = self._builtin_values(context)
        values.update(context.variables)
        resolved = TEMPLATE_VAR_RE.sub(
            lambda m: str(values[m.group(1)]) if values.get(m.group(1)) is not None else m.group(0),
            resolved,
        )
        return resolved

    def resolve_path(self, path: str, context: VariableContext) -> str:
        """Resolve variables in a path, anchor relative paths at the project root."""
        starts_with_var = path.startswith("{")
        resolved = self.resolve(path, context).replace("\\", "/")
        if not starts_with_var and not os.path.isabs(resolved) and not resolved.startswith("/"):
            root = context.project_root.replace("\\", "/")
            resolved = posixpath.join(root, resolved)
        return posixpath.normpath(resolved) if resolved else resolved

    def validate_variables(self, text: str, context: VariableContext) -> Dict[str, Any]:
        resolved = self.resolve(text, context)
        unresolved: List[str] = []
        for pattern in (CONFIG_VAR_RE, SYSTEM_VAR_RE, TEMPLATE_VAR_RE):
            for match in pattern.finditer(resolved):
                if match.group(0) not in unresolved:
                    unresolved.append(match.group(0))
        return {"isValid": not unresolved, "unresolvedVariables": unresolved}


def extract_variables(text: str) -> Dict[str, List[str]]:
    def unique(items: List[str]) -> List[str]:
        return list(dict.fromkeys(items))

    return {
        "systemVars": unique([m.group(0) for m in SYSTEM_VAR_RE.finditer(text)]),
        "configVars": unique([m.group(0) for m in CONFIG_VAR_RE.finditer(text)]),
        "templateVars": unique([m.group(0) for m in TEMPLATE_VAR_RE.finditer(text)]),
    }
