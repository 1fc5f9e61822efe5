import pytest


@pytest.fixture
def bmad_root(tmp_path):
    """A project tree with a few BMad commands and agents."""
    commands = tmp_path / ".gemini" / "commands"
    commands.mkdir(parents=True)
    (commands / "bmad-workflow-bmm-prd.toml").write_text(
        'description = "Create a Product Requirements Document"\n'
        'prompt = """Write a PRD for {project-root} on {{date}} for {{user_name}} in {{mode}} mode."""\n',
        encoding="utf-8",
    )
    (commands / "bmad-workflow-cis-brainstorming.toml").write_text(
        'description = "Facilitate a brainstorming session"\n'
        'prompt = "Brainstorm with {config_source}:project.name"\n',
        encoding="utf-8",
    )
    (commands / "bmad-task-core-index-docs.toml").write_text(
        'prompt = "Index the docs folder"\n',
        encoding="utf-8",
    )
    (commands / "notes.toml").write_text('prompt = "ignored"\n', encoding="utf-8")
    (commands / "bmad-workflow-bmm-broken.toml").write_text("prompt = [unterminated\n", encoding="utf-8")

    agents = tmp_path / ".github" / "agents"
    agents.mkdir(parents=True)
    (agents / "bmd-custom-bmm-dev.agent.md").write_text(
        "---\ndescription: Senior developer persona\n---\n# Dev\n\nYou are the developer for {project-root}.\n",
        encoding="utf-8",
    )
    (agents / "bmd-custom-core-bmad-master.agent.md").write_text(
        "# BMad Master\n\nOrchestrates every other BMad agent and workflow.\n",
        encoding="utf-8",
    )
    (agents / "random.agent.md").write_text("nope", encoding="utf-8")

    (tmp_path / "bmad.yaml").write_text("project:\n  name: Tech Deputies Portal\n", encoding="utf-8")
    return tmp_path
