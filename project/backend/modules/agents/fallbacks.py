"""
Deterministic fallback outputs.

Rule-based defaults a caller may accept when an agent cannot produce a
valid response, so the user can proceed without the AI enrichment.
"""

from typing import Any, Dict, List

from shared.models import BEAT_DURATION_SECONDS

DEFAULT_MOTION_DNA = (
    "Smooth camera movements with controlled dolly and orbital motion. Focus on product "
    "details with rack focus transitions. Maintain professional stabilization throughout."
)
DEFAULT_IMAGE_INSTRUCTION = (
    "High-quality cinematic render with photorealistic materials and professional lighting. "
    "Clean composition with shallow depth of field. Premium color grading."
)


def _step(payload: Dict[str, Any], number: int) -> Dict[str, Any]:
    return (payload.get("stepData") or {}).get(f"step{number}") or {}


def pacing_profile_for(duration: Any) -> str:
    """Pacing profile from the video duration in seconds."""
    try:
        seconds = float(duration)
    except (TypeError, ValueError):
        return "STEADY_CINEMATIC"
    if seconds <= 15:
        return "FAST_CUT"
    if seconds <= 30:
        return "KINETIC_RAMP"
    return "STEADY_CINEMATIC"


def default_strategic_context(payload: Dict[str, Any]) -> Dict[str, Any]:
    setup = _step(payload, 1)
    audience = (setup.get("targetAudience") or "the target").strip()
    region = (setup.get("region") or "").strip()
    market = f" for {region} market" if region else ""
    return {
        "strategic_directives": (
            f"Create visually compelling content for {audience} audience. Focus on premium "
            "product presentation with attention to lighting and composition. Maintain brand "
            f"consistency and cultural relevance{market}. Ensure every frame communicates "
            "quality and aspiration."
        ),
        "pacing_profile": pacing_profile_for(setup.get("duration")),
        "optimized_motion_dna": (setup.get("customMotionInstructions") or "").strip() or DEFAULT_MOTION_DNA,
        "optimized_image_instruction": (setup.get("customImageInstructions") or "").strip() or DEFAULT_IMAGE_INSTRUCTION,
    }


def default_beat_prompts(payload: Dict[str, Any]) -> Dict[str, Any]:
    motion = (_step(payload, 1).get("strategicContext") or {}).get("optimized_motion_dna") or DEFAULT_MOTION_DNA
    prompts = []
    for index, beat in enumerate(payload.get("visualBeats") or [], start=1):
        description = beat.get("beatDescription") or beat.get("beatName") or ""
        prompts.append({
            "beatId": beat.get("beatId") or f"beat{index}",
            "image_prompt": f"{description} {DEFAULT_IMAGE_INSTRUCTION}".strip(),
            "video_prompt": f"{description} {motion}".strip(),
        })
    return {"beat_prompts": prompts}


def _scenes_from_beats(beats: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    scenes = []
    for index, beat in enumerate(beats, start=1):
        beat_id = beat.get("beatId") or f"beat{index}"
        scenes.append({
            "id": beat_id,
            "name": beat.get("beatName") or f"Beat {index}",
            "shots": [{
                "id": f"{beat_id}-shot1",
                "description": beat.get("beatDescription") or "",
                "duration": beat.get("duration") or BEAT_DURATION_SECONDS,
                "isLinkedToPrevious": False,
            }],
        })
    return scenes


def default_storyboard(payload: Dict[str, Any]) -> Dict[str, Any]:
    """One scene per beat (commerce) or per broken-down scene (vlog), one shot each."""
    beats = payload.get("visualBeats") or []
    if beats:
        return {"scenes": _scenes_from_beats(beats)}

    breakdown = (_step(payload, 3).get("scenes") or {}).get("scenes") or []
    scenes = []
    for index, scene in enumerate(breakdown, start=1):
        scene_id = scene.get("id") or f"scene{index}"
        scenes.append({
            "id": scene_id,
            "name": scene.get("name") or f"Scene {index}",
            "shots": [{
                "id": f"{scene_id}-shot1",
                "description": scene.get("description") or "",
                "duration": scene.get("duration") or BEAT_DURATION_SECONDS,
                "isLinkedToPrevious": False,
            }],
        })
    return {"scenes": scenes}
