"""
Tests for registered agents: prompts and deterministic defaults.
"""

from jsonschema import Draft202012Validator

from modules.agents import AGENTS, get_agent
from modules.agents.fallbacks import default_beat_prompts, default_storyboard

BEATS = [
    {"beatId": "beat1", "beatName": "Reveal", "beatDescription": "Bottle rises from water"},
    {"beatId": "beat2", "beatName": "Detail", "beatDescription": "Macro of the dropper"},
]


def test_every_schema_is_valid():
    for agent in AGENTS.values():
        Draft202012Validator.check_schema(agent.schema)


def test_prompts_include_user_inputs():
    payload = {
        "stepData": {"step1": {"productTitle": "Aqua Serum", "targetAudience": "gen-z", "duration": 24}},
        "creativeSpark": "Water meets glass",
        "visualBeats": BEATS,
    }

    assert "Aqua Serum" in get_agent("strategic_context").build_prompt(payload)
    narrative_prompt = get_agent("narrative").build_prompt(payload)
    assert "Water meets glass" in narrative_prompt
    assert "beat1..beat2" in narrative_prompt


def test_default_storyboard_matches_schema():
    output = default_storyboard({"visualBeats": BEATS})

    assert not list(Draft202012Validator(get_agent("storyboard").schema).iter_errors(output))
    assert [scene["id"] for scene in output["scenes"]] == ["beat1", "beat2"]
    assert output["scenes"][0]["shots"][0]["duration"] == 12


def test_default_storyboard_from_vlog_scenes():
    payload = {"stepData": {"step3": {"scenes": {"scenes": [{"id": "s1", "name": "Dawn", "duration": 30}]}}}}

    output = default_storyboard(payload)

    assert output["scenes"][0]["shots"][0]["duration"] == 30


def test_default_beat_prompts_match_schema():
    output = default_beat_prompts({"visualBeats": BEATS})

    assert not list(Draft202012Validator(get_agent("beat_prompts").schema).iter_errors(output))
    assert [p["beatId"] for p in output["beat_prompts"]] == ["beat1", "beat2"]
