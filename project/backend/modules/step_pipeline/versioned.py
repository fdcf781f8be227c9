"""
Versioned reads for fields that moved between step slots.

Older projects stored the creative spark and the generated narrative in
step 3; current projects keep them in step 2. Each logical field lists its
candidate locations newest first, and the first non-empty value wins.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

Accumulated = Dict[int, Dict[str, Any]]


@dataclass(frozen=True)
class FieldLocation:
    step: int
    path: Tuple[str, ...]

    def read(self, accumulated: Accumulated) -> Any:
        value: Any = accumulated.get(self.step) or {}
        for key in self.path:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value


def _loc(step: int, *path: str) -> FieldLocation:
    return FieldLocation(step, tuple(path))


VERSIONED_FIELDS: Dict[str, Tuple[FieldLocation, ...]] = {
    "creativeSpark": (
        _loc(2, "uiInputs", "campaignSpark"),
        _loc(2, "creativeSpark"),
        _loc(3, "creativeSpark"),
    ),
    "narrative": (
        _loc(2, "narrative"),
        _loc(3, "narrative"),
    ),
    "userBeats": (
        _loc(2, "uiInputs", "visualBeats"),
        _loc(3, "uiInputs", "visualBeats"),
    ),
}


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def read_field(accumulated: Accumulated, name: str, default: Any = None) -> Any:
    """
    Read a logical field from the first candidate location holding a value.

    Raises:
        KeyError: If the field has no registered locations
    """
    for location in VERSIONED_FIELDS[name]:
        value = location.read(accumulated)
        if not is_empty(value):
            return value
    return default


def resolve_visual_beats(accumulated: Accumulated) -> List[Dict[str, Any]]:
    """
    Visual beats for the commerce pipeline.

    Generated beats from the narrative take precedence; otherwise beats the
    user typed in the script step (beat id -> text) are used.
    """
    narrative = read_field(accumulated, "narrative")
    if isinstance(narrative, dict):
        beats = narrative.get("visual_beats")
        if isinstance(beats, list) and beats:
            return [beat for beat in beats if isinstance(beat, dict)]

    user_beats = read_field(accumulated, "userBeats")
    if isinstance(user_beats, dict):
        return [
            {"beatId": beat_id, "beatDescription": text.strip()}
            for beat_id, text in sorted(user_beats.items())
            if isinstance(text, str) and text.strip()
        ]
    return []


def read_artifact(step: Any, accumulated: Accumulated) -> Optional[Any]:
    """
    Stored output of a step's agent, or None when it has not been produced.

    Args:
        step: StepDefinition with number and artifact_key
        accumulated: Step number -> merged step data
    """
    if not step.artifact_key:
        return None
    if step.artifact_key in VERSIONED_FIELDS:
        value = read_field(accumulated, step.artifact_key)
    else:
        value = (accumulated.get(step.number) or {}).get(step.artifact_key)
    return None if is_empty(value) else value
