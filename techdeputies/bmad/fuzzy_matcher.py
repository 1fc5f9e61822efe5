"""Command lookup by exact, partial, fuzzy (Levenshtein) and token matches."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Union

from techdeputies.bmad.types import AgentDefinition, CommandDefinition

logger = logging.getLogger(__name__)

Definition = Union[CommandDefinition, AgentDefinition]

MATCH_EXACT = "exact"
MATCH_PARTIAL = "partial"
MATCH_FUZZY = "fuzzy"
MATCH_CONTEXTUAL = "contextual"

_TYPE_RANK = {MATCH_EXACT: 0, MATCH_PARTIAL: 1, MATCH_FUZZY: 2, MATCH_CONTEXTUAL: 3}

FUZZY_THRESHOLD = 0.6
PARTIAL_MIN_QUERY = 3
PARTIAL_MIN_SCORE = 0.3
CONTEXTUAL_SCORE = 50
MAX_RESULTS = 20


@dataclass
class CommandMatch:
    definition: Definition
    type: str
    score: float
    distance: int
    highlighted: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return _qualified_key(self.definition)

    def to_dict(self) -> Dict[str, object]:
        return {
            "command": self.definition.to_dict(),
            "key": self.key,
            "type": self.type,
            "score": round(self.score, 2),
            "distance": self.distance,
            "highlighted": self.highlighted,
        }


def _qualified_key(definition: Definition) -> str:
    if isinstance(definition, AgentDefinition):
        return f"{definition.module}:agents:{definition.name}"
    return definition.key


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein(a, b) / longest


def partial_score(query: str, target: str) -> float:
    score = 0.0
    if target.startswith(query):
        score += 0.5
    ratio = len(query) / len(target) if target else 0
    if ratio > 0.7:
        score += 0.3
    elif ratio > 0.5:
        score += 0.2
    return score


def highlighted_parts(query: str, target: str) -> List[str]:
    """Characters of ``query`` found in order within ``target``."""
    parts: List[str] = []
    pos = 0
    lowered = target.lower()
    for ch in query.lower():
        found = lowered.find(ch, pos)
        if found == -1:
            continue
        parts.append(target[found])
        pos = found + 1
    return parts


def _tokens(definition: Definition) -> List[str]:
    name = definition.name.lower()
    return [_qualified_key(definition).lower(), name, definition.description.lower(), *name.split(" ")]


class FuzzyMatcher:
    def __init__(self, commands: Iterable[CommandDefinition] = (), agents: Iterable[AgentDefinition] = ()):
        self.commands: List[CommandDefinition] = list(commands)
        self.agents: List[AgentDefinition] = list(agents)

    def update_index(self, commands: Iterable[CommandDefinition], agents: Iterable[AgentDefinition]) -> None:
        self.commands = list(commands)
        self.agents = list(agents)
        logger.debug("BMad search index built commands=%d agents=%d", len(self.commands), len(self.agents))

    @property
    def _definitions(self) -> Sequence[Definition]:
        return [*self.commands, *self.agents]

    def match(self, query: str) -> List[CommandMatch]:
        needle = query.strip().lower()
        if not needle:
            return []
        candidates: List[CommandMatch] = []
        for definition in self._definitions:
            name = definition.name.lower()

            if name == needle:
                candidates.append(CommandMatch(definition, MATCH_EXACT, 100, 0, [definition.name]))

            if len(needle) >= PARTIAL_MIN_QUERY and needle in name:
                score = partial_score(needle, name)
                if score > PARTIAL_MIN_SCORE:
                    candidates.append(CommandMatch(
                        definition, MATCH_PARTIAL, score, levenshtein(needle, name),
                        highlighted_parts(needle, definition.name),
                    ))

            sim = similarity(needle, name)
            if sim >= FUZZY_THRESHOLD:
                candidates.append(CommandMatch(
                    definition, MATCH_FUZZY, sim * 100, levenshtein(needle, name),
                    highlighted_parts(needle, definition.name),
                ))

            tokens = _tokens(definition)
            for token in (t for t in needle.split(" ") if len(t) > 2):
                if token in tokens:
                    candidates.append(CommandMatch(definition, MATCH_CONTEXTUAL, CONTEXTUAL_SCORE, 0, [token]))
                    break

        # One entry per definition: best score, then strongest match type
        best: Dict[str, CommandMatch] = {}
        for candidate in candidates:
            current = best.get(candidate.key)
            if current is None or (candidate.score, -_TYPE_RANK[candidate.type]) > (current.score, -_TYPE_RANK[current.type]):
                best[candidate.key] = candidate
        results = sorted(best.values(), key=lambda m: (-m.score, _TYPE_RANK[m.type], m.key))[:MAX_RESULTS]
        logger.debug("BMad match query=%r results=%d", query, len(results))
        return results

    def autocomplete(self, query: str, limit: int = 5) -> Dict[str, object]:
        matches = self.match(query)
        ordered = sorted(matches, key=lambda m: (m.type != MATCH_EXACT, -m.score))
        return {
            "query": query,
            "suggestions": [m.to_dict() for m in ordered[:limit]],
            "totalFound": len(matches),
        }
