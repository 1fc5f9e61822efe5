"""Loads workflow/agent/task prompts from ``.gemini/commands/*.toml``."""

import logging
import re
import time
import tomllib
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Union

from techdeputies.bmad.types import PLURAL_TYPES, SINGULAR_TYPES, CommandDefinition

logger = logging.getLogger(__name__)

COMMANDS_DIR = Path(".gemini") / "commands"
FILENAME_RE = re.compile(r"^bmad-(workflow|agent|task)-(core|bmm|bmb|cis)-(.+)$")


class TomlCommandLoader:
    """Cache of command definitions keyed ``module:types:name`` (plural type)."""

    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root)
        self.commands_dir = self.project_root / COMMANDS_DIR
        self._cache: Dict[str, CommandDefinition] = {}
        self._loaded = False

    def load_all(self) -> Dict[str, CommandDefinition]:
        started = time.perf_counter()
        if not self.commands_dir.is_dir():
            logger.warning("BMad commands directory not found: %s", self.commands_dir)
            self._loaded = True
            return {}

        files = sorted(self.commands_dir.glob("*.toml"))
        for path in files:
            definition = self._parse_file(path)
            if definition is not None:
                self._cache[definition.key] = definition
        self._loaded = True
        logger.info(
            "BMad TOML commands loaded count=%d files=%d ms=%.1f",
            len(self._cache), len(files), (time.perf_counter() - started) * 1000,
        )
        return dict(self._cache)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_all()

    def _parse_file(self, path: Path) -> Optional[CommandDefinition]:
        match = FILENAME_RE.match(path.stem)
        if not match:
            logger.warning("Invalid TOML filename format: %s", path.name)
            return None
        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Failed to parse TOML file %s: %s", path, e)
            return None
        singular, module, name = match.groups()
        return CommandDefinition(
            module=module,
            type=PLURAL_TYPES[singular],
            name=name,
            description=str(data.get("description") or "No description available"),
            prompt=str(data.get("prompt") or ""),
            file_path=str(path),
        )

    def get_command(self, module: str, type_: str, name: str) -> Optional[CommandDefinition]:
        plural = PLURAL_TYPES.get(type_, type_)
        key = f"{module}:{plural}:{name}"
        if key not in self._cache:
            # Pick up files added since the last load
            self.load_all()
        return self._cache.get(key)

    def by_module(self, module: str) -> List[CommandDefinition]:
        self._ensure_loaded()
        return sorted((c for c in self._cache.values() if c.module == module), key=lambda c: c.name)

    def by_type(self, type_: str) -> List[CommandDefinition]:
        self._ensure_loaded()
        plural = PLURAL_TYPES.get(type_, type_)
        return sorted((c for c in self._cache.values() if c.type == plural), key=lambda c: c.name)

    def search(self, query: str) -> List[CommandDefinition]:
        self._ensure_loaded()
        needle = query.lower()
        hits = [
            c for c in self._cache.values()
            if needle in c.key.lower() or needle in c.name.lower()
        ]
        return sorted(hits, key=lambda c: (c.name.lower() != needle, c.name))

    def all(self) -> List[CommandDefinition]:
        self._ensure_loaded()
        return sorted(self._cache.values(), key=lambda c: c.key)

    def reload(self) -> Dict[str, CommandDefinition]:
        self._cache.clear()
        self._loaded = False
        logger.info("BMad TOML command cache cleared")
        return self.load_all()

    def cache_stats(self) -> Dict[str, object]:
        return {
            "totalCommands": len(self._cache),
            "commandsByModule": dict(Counter(c.module for c in self._cache.values())),
            "commandsByType": dict(Counter(SINGULAR_TYPES[c.type] for c in self._cache.values())),
        }
