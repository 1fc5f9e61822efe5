"""
Parser for ``/bmad:{module}:{type}:{name}[:params]`` commands.

Params are comma separated ``key=value`` pairs; a key with no value parses
as ``True``.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from techdeputies.bmad.types import MODULES, SINGULAR_TYPES, TYPES, BMadCommand

COMMAND_PREFIX = "/bmad:"
COMMAND_RE = re.compile(r"^/bmad:(core|bmm|bmb|cis):(workflows|agents|tasks):([^:]+)(?::(.+))?$")

ERR_PREFIX = "Invalid BMad command format. Must start with /bmad:"
ERR_FORMAT = "Invalid BMad command format. Expected: /bmad:{module}:{type}:{name}"

HELP_TEXT = """BMad Command Help

Syntax: /bmad:{module}:{type}:{name}[:parameters]

Modules:
  core    - Core BMad system commands and utilities
  bmm     - BMad Method (project management, development workflows)
  bmb     - BMad Builder (create agents, workflows, modules)
  cis     - Creative Innovation Suite (brainstorming, design thinking)

Types:
  workflows - Structured workflows for specific tasks
  agents    - AI agents with specialized personas and menus
  tasks     - Individual task execution

Examples:
  /bmad:core:agents:bmad-master          # Load master orchestrator
  /bmad:bmm:workflows:prd               # Create Product Requirements Doc
  /bmad:cis:workflows:brainstorming     # Start brainstorming session
  /bmad:bmm:agents:dev                  # Load developer agent

Parameters (optional):
  /bmad:bmm:workflows:prd:mode=quick,output=docs"""


@dataclass
class ParseResult:
    success: bool
    command: Optional[BMadCommand] = None
    error: Optional[str] = None


def parse_parameters(raw: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for part in raw.split(","):
        key, _, value = part.partition("=")
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        params[key] = value if value else True
    return params


def parse(text: str) -> ParseResult:
    trimmed = (text or "").strip()
    if not trimmed.startswith(COMMAND_PREFIX):
        return ParseResult(success=False, error=ERR_PREFIX)
    match = COMMAND_RE.match(trimmed)
    if not match:
        return ParseResult(success=False, error=ERR_FORMAT)

    module, type_, name, raw_params = match.groups()
    name = name.strip()
    if not name:
        return ParseResult(success=False, error=ERR_FORMAT)
    command = BMadCommand(
        module=module,
        type=type_,
        name=name,
        parameters=parse_parameters(raw_params) if raw_params else {},
        original_input=trimmed,
    )
    return ParseResult(success=True, command=command)


def is_valid_module(module: str) -> bool:
    return module in MODULES


def is_valid_type(type_: str) -> bool:
    return type_ in TYPES


def get_help() -> str:
    return HELP_TEXT


def toml_path(command: BMadCommand) -> str:
    singular = SINGULAR_TYPES[command.type]
    return f".gemini/commands/bmad-{singular}-{command.module}-{command.name}.toml"


def agent_path(command: BMadCommand) -> str:
    return f".github/agents/bmd-custom-{command.module}-{command.name}.agent.md"
