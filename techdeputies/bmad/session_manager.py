"""
Per-user BMad session state persisted as JSON under ``_bmad/sessions``.

One file per user (``{user_id}.json``) backed by an in-memory cache. Files are
validated with pydantic on load; unreadable files are treated as missing.
"""

import logging
import re
import threading
import uuid
from collections import Counter
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SESSIONS_DIR = Path("_bmad") / "sessions"
MAX_SESSIONS = 100
ANONYMOUS_USER = "anonymous"

_MODULE_RE = re.compile(r"^/bmad:([^:]+):")
_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _now() -> datetime:
    return datetime.now(UTC)


class SessionSettings(BaseModel):
    max_history_size: int = 100
    session_timeout: int = 60
    enable_context_preservation: bool = True
    auto_save_interval: int = 5
    default_agent: Optional[str] = None
    preferred_techniques: List[str] = Field(default_factory=list)


class SessionContext(BaseModel):
    active_agent: Optional[str] = None
    last_command: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    workflow_state: Dict[str, Any] = Field(default_factory=dict)


class CommandHistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    command: str
    timestamp: datetime = Field(default_factory=_now)
    result: Dict[str, Any] = Field(default_factory=dict)
    execution_time: float = 0
    agent: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


class BMadSession(BaseModel):
    id: str = Field(default_factory=lambda: f"session_{uuid.uuid4().hex[:16]}")
    user_id: str
    created_at: datetime = Field(default_factory=_now)
    last_active_at: datetime = Field(default_factory=_now)
    current_context: SessionContext = Field(default_factory=SessionContext)
    command_history: List[CommandHistoryEntry] = Field(default_factory=list)
    settings: SessionSettings = Field(default_factory=SessionSettings)


class SessionManager:
    def __init__(self, project_root: Union[str, Path], max_sessions: int = MAX_SESSIONS):
        self.sessions_dir = Path(project_root) / SESSIONS_DIR
        self.max_sessions = max_sessions
        self._cache: Dict[str, BMadSession] = {}
        # Engine is a process-wide singleton shared by threadpool workers
        self._lock = threading.RLock()

    def initialize(self) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self.cleanup_old_sessions()

    def _path(self, user_id: str) -> Path:
        return self.sessions_dir / f"{_SAFE_ID_RE.sub('_', str(user_id))}.json"

    def _save(self, session: BMadSession) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._path(session.user_id).write_text(session.model_dump_json(indent=2), encoding="utf-8")
        self._cache[session.user_id] = session

    def _load(self, user_id: str) -> Optional[BMadSession]:
        path = self._path(user_id)
        if not path.exists():
            return None
        try:
            return BMadSession.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to load BMad session %s: %s", path.name, e)
            return None

    def get_session(self, user_id: Union[str, int]) -> BMadSession:
        """Return the user's session, creating one on first use."""
        user_id = str(user_id)
        with self._lock:
            session = self._cache.get(user_id) or self._load(user_id)
            if session is None:
                session = BMadSession(user_id=user_id)
                logger.info("Created new BMad session user=%s session=%s", user_id, session.id)
                self._save(session)
                self.cleanup_old_sessions()
                return session
            session.last_active_at = _now()
            self._save(session)
            return session

    def update_context(self, user_id: Union[str, int], **updates: Any) -> BMadSession:
        with self._lock:
            session = self.get_session(user_id)
            merged = session.current_context.model_dump()
            merged.update({k: v for k, v in updates.items() if k in SessionContext.model_fields})
            session.current_context = SessionContext.model_validate(merged)
            session.last_active_at = _now()
            self._save(session)
            return session

    def add_command(
        self,
        user_id: Union[str, int],
        command: str,
        result: Dict[str, Any],
        agent: Optional[str] = None,
    ) -> CommandHistoryEntry:
        with self._lock:
            session = self.get_session(user_id)
            entry = CommandHistoryEntry(
                command=command,
                result=result,
                execution_time=float(result.get("executionTime") or 0),
                agent=agent,
                variables=dict(session.current_context.variables),
            )
            session.command_history.append(entry)
            limit = session.settings.max_history_size
            if len(session.command_history) > limit:
                session.command_history = session.command_history[-limit:]
            session.last_active_at = _now()
            self._save(session)
            return entry

    def get_history(self, user_id: Union[str, int], limit: Optional[int] = None) -> List[CommandHistoryEntry]:
        """Newest first."""
        history = sorted(self.get_session(user_id).command_history, key=lambda e: e.timestamp, reverse=True)
        return history[:limit] if limit else history

    def set_variable(self, user_id: Union[str, int], name: str, value: Any) -> None:
        with self._lock:
            session = self.get_session(user_id)
            variables = dict(session.current_context.variables)
            variables[name] = value
            self.update_context(user_id, variables=variables)

    def get_variable(self, user_id: Union[str, int], name: str, default: Any = None) -> Any:
        return self.get_session(user_id).current_context.variables.get(name, default)

    def get_variables(self, user_id: Union[str, int]) -> Dict[str, Any]:
        return dict(self.get_session(user_id).current_context.variables)

    def clear_session(self, user_id: Union[str, int]) -> None:
        user_id = str(user_id)
        with self._lock:
            self._cache.pop(user_id, None)
            self._path(user_id).unlink(missing_ok=True)

    def all_sessions(self) -> List[BMadSession]:
        """Every persisted session, most recently active first."""
        sessions: Dict[str, BMadSession] = {}
        if self.sessions_dir.is_dir():
            for path in self.sessions_dir.glob("*.json"):
                try:
                    session = BMadSession.model_validate_json(path.read_text(encoding="utf-8"))
                except (OSError, ValidationError) as e:
                    logger.warning("Skipping unreadable session file %s: %s", path.name, e)
                    continue
                sessions[session.user_id] = session
        sessions.update(self._cache)
        return sorted(sessions.values(), key=lambda s: s.last_active_at, reverse=True)

    def update_settings(self, user_id: Union[str, int], **settings: Any) -> SessionSettings:
        with self._lock:
            session = self.get_session(user_id)
            merged = session.settings.model_dump()
            merged.update({k: v for k, v in settings.items() if k in SessionSettings.model_fields})
            session.settings = SessionSettings.model_validate(merged)
            session.last_active_at = _now()
            self._save(session)
        logger.info("Updated BMad session settings user=%s", user_id)
        return session.settings

    def create_anonymous_session(self) -> BMadSession:
        """An unsaved session for requests without a user."""
        return BMadSession(user_id=ANONYMOUS_USER)

    def cleanup_old_sessions(self) -> int:
        if not self.sessions_dir.is_dir():
            return 0
        with self._lock:
            files = sorted(self.sessions_dir.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
            stale = files[self.max_sessions:]
            for path in stale:
                path.unlink(missing_ok=True)
                self._cache.pop(path.stem, None)
        if stale:
            logger.info("Cleaned up old BMad sessions removed=%d remaining=%d", len(stale), len(files) - len(stale))
        return len(stale)

    def get_user_stats(self, user_id: Union[str, int]) -> Dict[str, Any]:
        return self._history_stats(self.get_session(user_id).command_history)

    def get_stats(self) -> Dict[str, Any]:
        sessions = self.all_sessions()
        history = [entry for s in sessions for entry in s.command_history]
        stats = self._history_stats(history)
        stats["totalSessions"] = len(sessions)
        stats["averageCommandsPerSession"] = round(len(history) / len(sessions), 2) if sessions else 0
        return stats

    @staticmethod
    def _history_stats(history: List[CommandHistoryEntry]) -> Dict[str, Any]:
        agents = Counter(e.agent for e in history if e.agent)
        modules: Counter = Counter()
        for entry in history:
            match = _MODULE_RE.match(entry.command)
            if match:
                modules[match.group(1)] += 1
        average = sum(e.execution_time for e in history) / len(history) if history else 0
        return {
            "totalCommands": len(history),
            "averageExecutionTime": round(average),
            "topAgents": dict(agents.most_common()),
            "topModules": dict(modules.most_common()),
        }
