"""
Agent registry.

Each agent is an opaque (input JSON) -> (output JSON) function described by
a system prompt, a prompt builder, a response schema and an optional
deterministic fallback.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from modules.agents import fallbacks, schemas
from shared.errors import NotFoundError

Payload = Dict[str, Any]


@dataclass(frozen=True)
class AgentDefinition:
    agent_id: str
    system_prompt: str
    schema: Dict[str, Any]
    build_prompt: Callable[[Payload], str]
    fallback: Optional[Callable[[Payload], Dict[str, Any]]] = None

    @property
    def has_fallback(self) -> bool:
        return self.fallback is not None


def _step(payload: Payload, number: int) -> Dict[str, Any]:
    return (payload.get("stepData") or {}).get(f"step{number}") or {}


def _section(title: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        value = json.dumps(value, indent=2, default=str)
    return f"## {title}\n{value}\n"


def _strategic_context_prompt(payload: Payload) -> str:
    setup = _step(payload, 1)
    return "".join([
        _section("Product", {
            "title": setup.get("productTitle"),
            "description": setup.get("productDescription"),
        }),
        _section("Target audience", setup.get("targetAudience")),
        _section("Duration (seconds)", setup.get("duration")),
        _section("Motion instructions", setup.get("customMotionInstructions")),
        _section("Image instructions", setup.get("customImageInstructions") or "none"),
    ])


def _narrative_prompt(payload: Payload) -> str:
    setup = _step(payload, 1)
    duration = setup.get("duration")
    beat_count = max(1, min(3, duration // 12)) if isinstance(duration, int) else 1
    return "".join([
        _section("Creative spark", payload.get("creativeSpark")),
        _section("Strategic context", setup.get("strategicContext") or {}),
        _section("Beats required", f"{beat_count} beats of 12 seconds, ids beat1..beat{beat_count}"),
        _section("User beat notes", payload.get("visualBeats") or []),
    ])


def _beat_prompts_prompt(payload: Payload) -> str:
    setup = _step(payload, 1)
    return "".join([
        _section("Visual beats", payload.get("visualBeats") or []),
        _section("Strategic context", setup.get("strategicContext") or {}),
        _section("Aspect ratio", setup.get("aspectRatio")),
    ])


def _storyboard_prompt(payload: Payload) -> str:
    if payload.get("mode") == "character-vlog":
        return "".join([
            _section("Script", _step(payload, 1).get("script") or _step(payload, 1).get("generatedScript")),
            _section("Characters", _step(payload, 2).get("characters") or []),
            _section("Scenes", (_step(payload, 3).get("scenes") or {}).get("scenes") or []),
        ])
    return "".join([
        _section("Visual beats", payload.get("visualBeats") or []),
        _section("Beat prompts", (_step(payload, 3).get("beatPrompts") or {}).get("beat_prompts") or []),
    ])


def _vlog_script_prompt(payload: Payload) -> str:
    script = _step(payload, 1)
    return "".join([
        _section("Idea", script.get("userPrompt")),
        _section("Genre", script.get("genre") or "any"),
        _section("Narration", script.get("narrationStyle")),
        _section("Duration (seconds)", script.get("duration")),
    ])


def _scene_breakdown_prompt(payload: Payload) -> str:
    script = _step(payload, 1)
    elements = _step(payload, 2)
    return "".join([
        _section("Script", script.get("script") or (script.get("generatedScript") or {}).get("script")),
        _section("Characters", elements.get("characters") or []),
        _section("Locations", elements.get("locations") or []),
        _section("Theme", _step(payload, 3).get("theme")),
        _section("Number of scenes", _step(payload, 3).get("numberOfScenes") or 3),
    ])


_JSON_ONLY = "Respond with a single JSON object that matches the requested fields and nothing else."

AGENTS: Dict[str, AgentDefinition] = {
    agent.agent_id: agent
    for agent in (
        AgentDefinition(
            agent_id="strategic_context",
            system_prompt=(
                "You are a commerce creative strategist. Produce strategic_directives, a "
                f"pacing_profile (one of {', '.join(schemas.PACING_PROFILES)}), "
                "optimized_motion_dna and optimized_image_instruction. " + _JSON_ONLY
            ),
            schema=schemas.STRATEGIC_CONTEXT_SCHEMA,
            build_prompt=_strategic_context_prompt,
            fallback=fallbacks.default_strategic_context,
        ),
        AgentDefinition(
            agent_id="narrative",
            system_prompt=(
                "You are a short-form video scriptwriter. Produce visual_beats, each with "
                "beatId, beatName, a 50-300 character beatDescription and duration 12. " + _JSON_ONLY
            ),
            schema=schemas.NARRATIVE_SCHEMA,
            build_prompt=_narrative_prompt,
        ),
        AgentDefinition(
            agent_id="beat_prompts",
            system_prompt=(
                "You write generation prompts. For every visual beat produce beatId, "
                "image_prompt and video_prompt under beat_prompts. " + _JSON_ONLY
            ),
            schema=schemas.BEAT_PROMPTS_SCHEMA,
            build_prompt=_beat_prompts_prompt,
            fallback=fallbacks.default_beat_prompts,
        ),
        AgentDefinition(
            agent_id="storyboard",
            system_prompt=(
                "You are a storyboard artist. Produce scenes, each with id, name and shots; "
                "every shot has id, description, duration and isLinkedToPrevious. " + _JSON_ONLY
            ),
            schema=schemas.STORYBOARD_SCHEMA,
            build_prompt=_storyboard_prompt,
            fallback=fallbacks.default_storyboard,
        ),
        AgentDefinition(
            agent_id="vlog_script",
            system_prompt="You write character vlog scripts. Produce title and script. " + _JSON_ONLY,
            schema=schemas.VLOG_SCRIPT_SCHEMA,
            build_prompt=_vlog_script_prompt,
        ),
        AgentDefinition(
            agent_id="scene_breakdown",
            system_prompt=(
                "You break a vlog script into scenes with id, name, description and duration. " + _JSON_ONLY
            ),
            schema=schemas.SCENE_BREAKDOWN_SCHEMA,
            build_prompt=_scene_breakdown_prompt,
        ),
    )
}


def get_agent(agent_id: str) -> AgentDefinition:
    """
    Raises:
        NotFoundError: If no agent is registered under agent_id
    """
    try:
        return AGENTS[agent_id]
    except KeyError:
        raise NotFoundError(f"Unknown agent: {agent_id}")
