import pytest

from techdeputies.bmad.engine import BMadEngine, get_bmad_engine, reset_bmad_engine


@pytest.fixture
def engine(bmad_root):
    eng = BMadEngine(bmad_root)
    eng.initialize()
    return eng


def test_workflow_prompt_is_resolved(engine, bmad_root):
    result = engine.execute("/bmad:bmm:workflows:prd:mode=quick", user={"id": 1, "name": "Pat"})
    assert result.success is True
    assert result.output.startswith(f"Write a PRD for {bmad_root} on ")
    assert result.output.endswith("for Pat in quick mode.")
    assert result.details["type"] == "workflow"
    assert result.details["parameters"] == {"mode": "quick"}
    assert result.details["command"] == "/bmad:bmm:workflows:prd:mode=quick"
    assert result.execution_time_ms >= 0


def test_agent_activation_strips_frontmatter(engine, bmad_root):
    result = engine.execute("/bmad:bmm:agents:dev", user={"id": 2})
    assert result.success is True
    assert result.output == f"# Dev\n\nYou are the developer for {bmad_root}."
    assert result.details["definition"]["name"] == "dev"
    session = engine.sessions.get_session(2)
    assert session.current_context.active_agent == "dev"
    assert session.command_history[-1].agent == "dev"


def test_task_command(engine):
    result = engine.execute("/bmad:core:tasks:index-docs")
    assert result.success is True
    assert result.output == "Index the docs folder"
    assert result.details["type"] == "task"


def test_missing_definitions_report_expected_paths(engine):
    workflow = engine.execute("/bmad:bmm:workflows:nope")
    assert workflow.success is False
    assert workflow.error == "Workflow not found: bmm:nope"
    assert workflow.details["phase"] == "workflow-loading"
    assert workflow.details["expectedPath"] == ".gemini/commands/bmad-workflow-bmm-nope.toml"

    agent = engine.execute("/bmad:cis:agents:ghost")
    assert agent.error == "Agent not found: cis:ghost"
    assert agent.details["expectedPath"] == ".github/agents/bmd-custom-cis-ghost.agent.md"


def test_parse_errors_are_tagged(engine):
    result = engine.execute("hello")
    assert result.success is False
    assert result.details == {"command": "hello", "phase": "parsing"}
    assert result.to_dict()["error"].startswith("Invalid BMad command format")


def test_anonymous_commands_are_not_recorded(engine, bmad_root):
    engine.execute("/bmad:bmm:workflows:prd")
    assert list((bmad_root / "_bmad" / "sessions").glob("*.json")) == []


def test_session_variables_feed_prompts(engine):
    engine.sessions.set_variable("3", "mode", "thorough")
    assert engine.execute("/bmad:bmm:workflows:prd", user={"id": 3}).output.endswith("in thorough mode.")
    # explicit parameters win over stored variables
    assert engine.execute("/bmad:bmm:workflows:prd:mode=quick", user={"id": 3}).output.endswith("in quick mode.")


def test_help_search_and_stats(engine):
    text = engine.help()
    assert "/bmad:bmm:workflows:prd - Create a Product Requirements Document" in text
    assert "/bmad:bmm:agents:dev - Senior developer persona" in text

    found = engine.search("prd")
    assert [c["name"] for c in found["commands"]] == ["prd"]
    assert found["matches"][0]["type"] == "exact"

    engine.execute("/bmad:bmm:agents:dev", user={"id": 4})
    stats = engine.stats()
    assert stats["commands"]["totalCommands"] == 3
    assert stats["agents"]["totalAgents"] == 2
    assert stats["sessions"]["totalSessions"] == 1
    assert [m["name"] for m in engine.modules_info()["modules"]] == ["core", "bmm", "bmb", "cis"]


def test_singleton_uses_configured_root(bmad_root, monkeypatch):
    monkeypatch.setenv("BMAD_PROJECT_ROOT", str(bmad_root))
    reset_bmad_engine()
    try:
        engine = get_bmad_engine()
        assert engine is get_bmad_engine()
        assert engine.commands.get_command("bmm", "workflows", "prd") is not None
    finally:
        reset_bmad_engine()
