"""
Storyboard models: beats, scenes, shots and continuity groups.

These live inside step data blobs and are never stored on their own.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BEAT_DURATION_SECONDS = 12


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Beat(_CamelModel):
    """A fixed-duration narrative segment."""
    beat_id: str
    beat_name: str = Field(min_length=2, max_length=50)
    beat_description: str
    duration: int = BEAT_DURATION_SECONDS


class Shot(_CamelModel):
    id: str
    description: str = ""
    duration: float = 0
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    is_linked_to_previous: bool = False


class Scene(_CamelModel):
    id: str
    name: str = ""
    shots: List[Shot] = Field(default_factory=list)


class ContinuityGroup(_CamelModel):
    """A maximal run of two or more linked shots within one scene."""
    id: str
    scene_id: str
    shot_ids: List[str]


def continuity_groups(shots: List[Shot], scene_id: str = "") -> List[ContinuityGroup]:
    """
    Compute continuity groups for an ordered list of shots.

    A shot flagged is_linked_to_previous joins the run of the shot before it.
    A linked flag on the first shot has nothing to join and is ignored.

    Args:
        shots: Shots in playback order
        scene_id: Scene the shots belong to

    Returns:
        Every maximal run of at least two linked shots
    """
    runs: List[List[str]] = []
    current: List[str] = []
    for index, shot in enumerate(shots):
        if index > 0 and shot.is_linked_to_previous:
            current.append(shot.id)
            continue
        if len(current) >= 2:
            runs.append(current)
        current = [shot.id]
    if len(current) >= 2:
        runs.append(current)

    return [
        ContinuityGroup(id=f"{scene_id or 'scene'}-group-{n}", scene_id=scene_id, shot_ids=run)
        for n, run in enumerate(runs, start=1)
    ]


def parse_scenes(raw: Any) -> List[Scene]:
    """Parse a list of scene dicts, skipping anything that is not a dict."""
    if not isinstance(raw, list):
        return []
    return [Scene.model_validate(item) for item in raw if isinstance(item, dict)]


def storyboard_groups(scenes: List[Scene]) -> Dict[str, List[Dict[str, Any]]]:
    """Scene id -> serialized continuity groups for every scene that has any."""
    result = {}
    for scene in scenes:
        groups = continuity_groups(scene.shots, scene.id)
        if groups:
            result[scene.id] = [g.model_dump(by_alias=True) for g in groups]
    return result
