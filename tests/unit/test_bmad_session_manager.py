import json
import os
from concurrent.futures import ThreadPoolExecutor

from techdeputies.bmad.session_manager import SessionManager


def test_session_created_and_persisted(tmp_path):
    manager = SessionManager(tmp_path)
    manager.initialize()
    session = manager.get_session(42)
    assert session.user_id == "42"
    path = tmp_path / "_bmad" / "sessions" / "42.json"
    assert path.exists()
    assert json.loads(path.read_text())["user_id"] == "42"

    # a fresh manager reads the same file back
    reloaded = SessionManager(tmp_path).get_session("42")
    assert reloaded.id == session.id


def test_context_and_variables(tmp_path):
    manager = SessionManager(tmp_path)
    manager.update_context("7", active_agent="dev", last_command="/bmad:bmm:agents:dev", bogus="x")
    manager.set_variable("7", "mode", "quick")
    context = manager.get_session("7").current_context
    assert context.active_agent == "dev"
    assert context.variables == {"mode": "quick"}
    assert manager.get_variable("7", "missing", "default") == "default"


def test_history_is_capped_and_newest_first(tmp_path):
    manager = SessionManager(tmp_path)
    manager.update_settings("1", max_history_size=3)
    for i in range(5):
        manager.add_command("1", f"/bmad:bmm:workflows:step{i}", {"success": True, "executionTime": 10})
    history = manager.get_history("1")
    assert len(history) == 3
    assert history[0].command == "/bmad:bmm:workflows:step4"
    assert len(manager.get_history("1", limit=2)) == 2


def test_stats_aggregate_across_sessions(tmp_path):
    manager = SessionManager(tmp_path)
    manager.add_command("1", "/bmad:bmm:agents:dev", {"executionTime": 20}, agent="dev")
    manager.add_command("2", "/bmad:cis:workflows:brainstorming", {"executionTime": 40})
    manager.add_command("2", "/bmad:bmm:agents:dev", {"executionTime": 30}, agent="dev")
    stats = manager.get_stats()
    assert stats["totalSessions"] == 2
    assert stats["totalCommands"] == 3
    assert stats["averageExecutionTime"] == 30
    assert stats["topAgents"] == {"dev": 2}
    assert stats["topModules"] == {"bmm": 2, "cis": 1}
    assert stats["averageCommandsPerSession"] == 1.5
    assert manager.get_user_stats("1")["totalCommands"] == 1


def test_clear_and_corrupt_files(tmp_path):
    manager = SessionManager(tmp_path)
    manager.get_session("9")
    manager.clear_session("9")
    assert not (tmp_path / "_bmad" / "sessions" / "9.json").exists()
    manager.clear_session("9")

    (tmp_path / "_bmad" / "sessions" / "bad.json").write_text("{not json", encoding="utf-8")
    assert manager.get_session("bad").command_history == []


def test_cleanup_keeps_most_recent(tmp_path):
    manager = SessionManager(tmp_path)
    for i, user in enumerate(("a", "b", "c")):
        manager.get_session(user)
        os.utime(tmp_path / "_bmad" / "sessions" / f"{user}.json", (1000 + i, 1000 + i))
    assert SessionManager(tmp_path, max_sessions=2).cleanup_old_sessions() == 1
    remaining = sorted(p.stem for p in (tmp_path / "_bmad" / "sessions").glob("*.json"))
    assert remaining == ["b", "c"]


def test_anonymous_session_is_not_saved(tmp_path):
    manager = SessionManager(tmp_path)
    session = manager.create_anonymous_session()
    assert session.user_id == "anonymous"
    assert not (tmp_path / "_bmad" / "sessions").exists()


def test_concurrent_commands_are_all_recorded(tmp_path):
    manager = SessionManager(tmp_path)
    manager.initialize()

    def record(n):
        manager.add_command("9", f"/bmad:core:tasks:t{n}", {"executionTime": 1})
        manager.set_variable("9", f"v{n}", n)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record, range(40)))

    assert len(manager.get_history("9")) == 40
    assert len(manager.get_variables("9")) == 40
    reloaded = SessionManager(tmp_path).get_session("9")
    assert len(reloaded.command_history) == 40
