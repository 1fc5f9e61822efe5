"""
BMad execution engine.

Turns a parsed ``/bmad:`` command into a resolved prompt: workflows and tasks
come from the TOML loader, agents from the agent loader. Commands issued by a
known user are recorded in that user's session.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

from techdeputies.bmad import parser
from techdeputies.bmad.fuzzy_matcher import FuzzyMatcher
from techdeputies.bmad.loaders.agent_loader import AgentLoader, activation_content
from techdeputies.bmad.loaders.toml_loader import TomlCommandLoader
from techdeputies.bmad.resolver import VariableResolver, create_context
from techdeputies.bmad.session_manager import SessionManager
from techdeputies.bmad.types import MODULES, BMadCommand, BMadResult

logger = logging.getLogger(__name__)

MODULE_DESCRIPTIONS = {
    "core": "Core BMad system commands and utilities",
    "bmm": "BMad Method (project management, development workflows)",
    "bmb": "BMad Builder (create agents, workflows, modules)",
    "cis": "Creative Innovation Suite (brainstorming, design thinking)",
}


class BMadEngine:
    def __init__(self, project_root: Union[str, Path]):
        self.project_root = str(project_root)
        self.commands = TomlCommandLoader(self.project_root)
        self.agents = AgentLoader(self.project_root)
        self.sessions = SessionManager(self.project_root)
        self.resolver = VariableResolver()
        self.matcher = FuzzyMatcher()

    def initialize(self) -> None:
        self.sessions.initialize()
        self.commands.load_all()
        self.agents.load_all()
        self.matcher.update_index(self.commands.all(), self.agents.all())
        logger.info("BMad system initialized root=%s", self.project_root)

    def execute(self, command_input: str, user: Optional[Dict[str, Any]] = None) -> BMadResult:
        started = time.perf_counter()
        parsed = parser.parse(command_input)
        if not parsed.success:
            return BMadResult(
                success=False,
                error=parsed.error,
                details={"command": (command_input or "").strip(), "phase": "parsing"},
                execution_time_ms=self._elapsed(started),
            )
        command = parsed.command

        user_id = str(user["id"]) if user and user.get("id") is not None else None
        variables: Dict[str, Any] = {}
        if user_id:
            variables.update(self.sessions.get_variables(user_id))
            self.sessions.update_context(
                user_id,
                last_command=command.original_input,
                active_agent=command.name if command.type == "agents" else None,
            )
        variables.update(command.parameters)
        context = create_context(self.project_root, user=user, variables=variables)

        logger.info(
            "Executing BMad command module=%s type=%s name=%s user=%s",
            command.module, command.type, command.name, user_id,
        )
        if command.type == "agents":
            result = self._execute_agent(command, context)
        else:
            result = self._execute_prompt(command, context)

        result.details.setdefault("command", command.original_input)
        result.execution_time_ms = self._elapsed(started)
        if user_id:
            self.sessions.add_command(
                user_id,
                command.original_input,
                result.to_dict(),
                agent=command.name if command.type == "agents" else None,
            )
        return result

    def _execute_prompt(self, command: BMadCommand, context) -> BMadResult:
        label = "Workflow" if command.type == "workflows" else "Task"
        definition = self.commands.get_command(command.module, command.type, command.name)
        if definition is None:
            return BMadResult(
                success=False,
                error=f"{label} not found: {command.module}:{command.name}",
                details={"phase": f"{label.lower()}-loading", "expectedPath": parser.toml_path(command)},
            )
        prompt = self.resolver.resolve(definition.prompt, context)
        logger.info("%s command loaded path=%s prompt_length=%d", label, definition.file_path, len(prompt))
        return BMadResult(
            success=True,
            output=prompt,
            details={"type": label.lower(), "definition": definition.to_dict(), "parameters": command.parameters},
        )

    def _execute_agent(self, command: BMadCommand, context) -> BMadResult:
        agent = self.agents.get_agent(command.module, command.name)
        if agent is None:
            return BMadResult(
                success=False,
                error=f"Agent not found: {command.module}:{command.name}",
                details={"phase": "agent-loading", "expectedPath": parser.agent_path(command)},
            )
        prompt = self.resolver.resolve(activation_content(agent), context)
        logger.info("Agent command loaded path=%s prompt_length=%d", agent.file_path, len(prompt))
        return BMadResult(
            success=True,
            output=prompt,
            details={"type": "agent", "definition": agent.to_dict(), "parameters": command.parameters},
        )

    def help(self) -> str:
        lines = [parser.get_help(), "", "Available Commands:"]
        for module in MODULES:
            lines.append("")
            lines.append(f"{module.upper()}:")
            for definition in self.commands.by_module(module):
                lines.append(f"  /bmad:{module}:{definition.type}:{definition.name} - {definition.description}")
            for agent in self.agents.by_module(module):
                lines.append(f"  /bmad:{module}:agents:{agent.name} - {agent.description}")
        return "\n".join(lines)

    def modules_info(self) -> Dict[str, Any]:
        return {
            "modules": [{"name": m, "description": MODULE_DESCRIPTIONS[m]} for m in MODULES],
            "types": ["workflows", "agents", "tasks"],
            "syntax": "/bmad:{module}:{type}:{name}[:parameters]",
        }

    def search(self, query: str) -> Dict[str, Any]:
        self.matcher.update_index(self.commands.all(), self.agents.all())
        return {
            "commands": [c.to_dict() for c in self.commands.search(query)],
            "agents": [a.to_dict() for a in self.agents.search(query)],
            "matches": [m.to_dict() for m in self.matcher.match(query)],
        }

    def stats(self) -> Dict[str, Any]:
        self.commands.all()
        self.agents.all()
        return {
            "commands": self.commands.cache_stats(),
            "agents": self.agents.cache_stats(),
            "sessions": self.sessions.get_stats(),
        }

    @staticmethod
    def _elapsed(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)


_engine: Optional[BMadEngine] = None


def get_bmad_engine() -> BMadEngine:
    global _engine
    if _engine is None:
        from techdeputies.config import bmad_project_root
        _engine = BMadEngine(bmad_project_root())
        _engine.initialize()
    return _engine


def reset_bmad_engine(engine: Optional[BMadEngine] = None) -> None:
    global _engine
    _engine = engine
