from techdeputies.bmad.fuzzy_matcher import (
    FuzzyMatcher,
    highlighted_parts,
    levenshtein,
    partial_score,
    similarity,
)
from techdeputies.bmad.types import AgentDefinition, CommandDefinition


def _cmd(module, type_, name, description="desc"):
    return CommandDefinition(module, type_, name, description, "prompt", f"/x/{name}.toml")


def _matcher():
    return FuzzyMatcher(
        commands=[_cmd("bmm", "workflows", "prd"), _cmd("cis", "workflows", "brainstorming")],
        agents=[AgentDefinition("bmm", "dev", "Developer", "# Dev", "/x/dev.agent.md")],
    )


def test_levenshtein_distances():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "abc") == 0
    assert levenshtein("flaw", "lawn") == 2
    assert similarity("", "") == 1.0
    assert similarity("abcd", "abce") == 0.75


def test_partial_score_and_highlights():
    assert partial_score("prd", "prd") == 0.8
    assert partial_score("storm", "brainstorming") == 0
    assert highlighted_parts("BRS", "brainstorming") == ["b", "r", "s"]


def test_exact_match_wins_and_is_deduplicated():
    results = _matcher().match("PRD")
    assert len(results) == 1
    assert results[0].type == "exact"
    assert results[0].score == 100
    assert results[0].key == "bmm:workflows:prd"


def test_fuzzy_match_reports_distance():
    (result,) = _matcher().match("brainstormin")
    assert result.type == "fuzzy"
    assert result.distance == 1
    assert round(result.score, 2) == 92.31


def test_contextual_token_match():
    (result,) = _matcher().match("prd docs")
    assert result.type == "contextual"
    assert result.score == 50


def test_agents_are_keyed_with_agents_type():
    (result,) = _matcher().match("dev")
    assert result.key == "bmm:agents:dev"
    assert result.to_dict()["command"]["name"] == "dev"


def test_empty_query_and_autocomplete():
    matcher = _matcher()
    assert matcher.match("   ") == []
    completion = matcher.autocomplete("prd", limit=1)
    assert completion["totalFound"] == 1
    assert completion["suggestions"][0]["type"] == "exact"
