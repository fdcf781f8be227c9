"""
Step validators.

Pure functions of the accumulated step data. Each returns the list of
missing requirements; an empty list means the step may advance.
"""

from typing import Any, Callable, Dict, List

from modules.step_pipeline.versioned import Accumulated, read_field, resolve_visual_beats

Validator = Callable[[Accumulated], List[str]]

COMMERCE_DURATIONS = (12, 24, 36)
VLOG_DURATIONS = (30, 60, 90, 120, 180)
NARRATION_STYLES = ("first-person", "third-person")
MIN_SPARK_LENGTH = 10


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _step(accumulated: Accumulated, number: int) -> Dict[str, Any]:
    return accumulated.get(number) or {}


def _in_enum(value: Any, allowed: tuple) -> bool:
    # bool is an int subclass; True must not pass as 1
    return not isinstance(value, bool) and value in allowed


def commerce_setup(accumulated: Accumulated) -> List[str]:
    data = _step(accumulated, 1)
    missing = []
    if not _text(data.get("customMotionInstructions")):
        missing.append("customMotionInstructions")
    if not _text(data.get("targetAudience")):
        missing.append("targetAudience")
    if not _in_enum(data.get("duration"), COMMERCE_DURATIONS):
        missing.append("duration")
    return missing


def commerce_script(accumulated: Accumulated) -> List[str]:
    missing = []
    if len(_text(read_field(accumulated, "creativeSpark", ""))) < MIN_SPARK_LENGTH:
        missing.append("creativeSpark")
    if not resolve_visual_beats(accumulated):
        missing.append("visualBeats")
    return missing


def commerce_prompts(accumulated: Accumulated) -> List[str]:
    return [] if resolve_visual_beats(accumulated) else ["visualBeats"]


def storyboard_requirements(step_number: int) -> Validator:
    """Require at least one scene, each with at least one shot."""

    def validate(accumulated: Accumulated) -> List[str]:
        storyboard = _step(accumulated, step_number).get("storyboard")
        scenes = storyboard.get("scenes") if isinstance(storyboard, dict) else None
        if not isinstance(scenes, list) or not scenes:
            return ["storyboard.scenes"]
        return [
            f"storyboard.scenes[{index}].shots"
            for index, scene in enumerate(scenes)
            if not isinstance(scene, dict) or not scene.get("shots")
        ]

    return validate


def export_requirements(storyboard_step: int) -> Validator:
    check_storyboard = storyboard_requirements(storyboard_step)

    def validate(accumulated: Accumulated) -> List[str]:
        return ["storyboard"] if check_storyboard(accumulated) else []

    return validate


def vlog_script(accumulated: Accumulated) -> List[str]:
    data = _step(accumulated, 1)
    missing = []
    if not (_text(data.get("userPrompt")) or _text(data.get("script"))):
        missing.append("userPrompt")
    if not _in_enum(data.get("duration"), VLOG_DURATIONS):
        missing.append("duration")
    if data.get("narrationStyle") not in NARRATION_STYLES:
        missing.append("narrationStyle")
    return missing


def vlog_elements(accumulated: Accumulated) -> List[str]:
    characters = _step(accumulated, 2).get("characters")
    if isinstance(characters, list) and any(
        isinstance(c, dict) and _text(c.get("name")) for c in characters
    ):
        return []
    return ["characters"]


def vlog_scenes(accumulated: Accumulated) -> List[str]:
    return [] if _text(_step(accumulated, 3).get("theme")) else ["theme"]


def always_valid(accumulated: Accumulated) -> List[str]:
    return []


def missing_requirements(definition: Any, step_id: str, accumulated: Accumulated) -> List[str]:
    """
    Requirements a step still lacks.

    Args:
        definition: PipelineDefinition the step belongs to
        step_id: Step identifier (e.g. "setup")
        accumulated: Step number -> merged step data

    Raises:
        NotFoundError: If the step is not part of the pipeline
    """
    return list(definition.get(step_id).validator(accumulated))


def can_advance(definition: Any, step_id: str, accumulated: Accumulated) -> bool:
    """True when the step has every requirement it needs to advance."""
    return not missing_requirements(definition, step_id, accumulated)
