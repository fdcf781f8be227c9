"""
Timeline builder.

Turns a project's storyboard into a Shotstack edit: one clip per shot in
scene order, with a fade between shots that are not linked.
"""

from typing import Any, Dict, List

from modules.step_pipeline.steps import get_pipeline
from shared.errors import ValidationError
from shared.models import Scene, VideoProject, parse_scenes

RESOLUTIONS = {"720": "hd", "1080": "1080", "4k": "4k"}


def _storyboard_scenes(project: VideoProject) -> List[Scene]:
    step = get_pipeline(project.mode).get("storyboard")
    storyboard = (project.step_data(step.number) or {}).get("storyboard") or {}
    return parse_scenes(storyboard.get("scenes"))


def build_clips(scenes: List[Scene]) -> List[Dict[str, Any]]:
    clips = []
    start = 0.0
    for scene in scenes:
        for shot in scene.shots:
            src = shot.video_url or shot.image_url
            if not src or shot.duration <= 0:
                continue
            clip: Dict[str, Any] = {
                "asset": {"type": "video" if shot.video_url else "image", "src": src},
                "start": round(start, 3),
                "length": shot.duration,
            }
            if clips and not shot.is_linked_to_previous:
                clip["transition"] = {"in": "fade"}
            clips.append(clip)
            start += shot.duration
    return clips


def build_edit(project: VideoProject) -> Dict[str, Any]:
    """
    Build the Shotstack edit for a project.

    Raises:
        ValidationError: If no shot has rendered media
    """
    clips = build_clips(_storyboard_scenes(project))
    if not clips:
        raise ValidationError(
            "Nothing to render: no storyboard shot has a video or image",
            video_id=project.id,
            code="NOTHING_TO_RENDER"
        )

    setup = project.step_data(1) or {}
    export = project.step_data(get_pipeline(project.mode).get("export").number) or {}
    return {
        "timeline": {
            "background": "#000000",
            "tracks": [{"clips": clips}],
        },
        "output": {
            "format": export.get("format") or "mp4",
            "resolution": RESOLUTIONS.get(str(export.get("resolution") or "1080"), "1080"),
            "aspectRatio": setup.get("aspectRatio") or "9:16",
        },
    }
