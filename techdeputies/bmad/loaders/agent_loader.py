"""Loads agent personas from ``.github/agents/bmd-custom-*.agent.md``."""

import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from techdeputies.bmad.types import AgentDefinition

logger = logging.getLogger(__name__)

AGENTS_DIR = Path(".github") / "agents"
FILENAME_RE = re.compile(r"^bmd-custom-(core|bmm|bmb|cis)-(.+)\.agent\.md$")
FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)

MAX_DESCRIPTION = 100


def split_frontmatter(content: str):
    """Return ``(frontmatter_dict, body)``; frontmatter is empty when absent or invalid."""
    match = FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, content[match.end():]


def extract_description(content: str) -> Optional[str]:
    meta, body = split_frontmatter(content)
    description = meta.get("description")
    if description:
        return str(description).strip()
    for line in body.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#") and not stripped.startswith("---"):
            if len(stripped) > MAX_DESCRIPTION:
                return stripped[:MAX_DESCRIPTION - 3] + "..."
            return stripped
    return None


def activation_content(agent: AgentDefinition) -> str:
    """The agent body with any frontmatter removed."""
    _, body = split_frontmatter(agent.content)
    return body.strip()


class AgentLoader:
    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root)
        self.agents_dir = self.project_root / AGENTS_DIR
        self._cache: Dict[str, AgentDefinition] = {}
        self._loaded = False

    def load_all(self) -> Dict[str, AgentDefinition]:
        if not self.agents_dir.is_dir():
            logger.warning("BMad agents directory not found: %s", self.agents_dir)
            self._loaded = True
            return {}
        for path in sorted(self.agents_dir.glob("*.agent.md")):
            agent = self._parse_file(path)
            if agent is not None:
                self._cache[agent.key] = agent
        self._loaded = True
        logger.info("BMad agents loaded count=%d", len(self._cache))
        return dict(self._cache)

    def _parse_file(self, path: Path) -> Optional[AgentDefinition]:
        match = FILENAME_RE.match(path.name)
        if not match:
            logger.warning("Invalid agent filename format: %s", path.name)
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read agent file %s: %s", path, e)
            return None
        module, name = match.groups()
        return AgentDefinition(
            module=module,
            name=name,
            description=extract_description(content) or "No description available",
            content=content,
            file_path=str(path),
        )

    def get_agent(self, module: str, name: str) -> Optional[AgentDefinition]:
        key = f"{module}:{name}"
        if key not in self._cache:
            self.load_all()
        return self._cache.get(key)

    def by_module(self, module: str) -> List[AgentDefinition]:
        if not self._loaded:
            self.load_all()
        return sorted((a for a in self._cache.values() if a.module == module), key=lambda a: a.name)

    def search(self, query: str) -> List[AgentDefinition]:
        if not self._loaded:
            self.load_all()
        needle = query.lower()
        hits = [
            a for a in self._cache.values()
            if needle in a.key.lower() or needle in a.name.lower() or needle in a.description.lower()
        ]
        return sorted(hits, key=lambda a: (a.name.lower() != needle, a.name))

    def all(self) -> List[AgentDefinition]:
        if not self._loaded:
            self.load_all()
        return sorted(self._cache.values(), key=lambda a: a.key)

    def reload(self) -> Dict[str, AgentDefinition]:
        self._cache.clear()
        self._loaded = False
        return self.load_all()

    def cache_stats(self) -> Dict[str, object]:
        return {
            "totalAgents": len(self._cache),
            "agentsByModule": dict(Counter(a.module for a in self._cache.values())),
        }
