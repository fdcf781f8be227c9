"""
Data models for the video studio pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .video import MAX_STEPS, STEP_COLUMNS, VideoMode, VideoProject, VideoStatus, step_column
from .storyboard import (
    BEAT_DURATION_SECONDS,
    Beat,
    ContinuityGroup,
    Scene,
    Shot,
    continuity_groups,
    parse_scenes,
    storyboard_groups,
)

__all__ = [
    # Project models
    "MAX_STEPS",
    "STEP_COLUMNS",
    "VideoMode",
    "VideoProject",
    "VideoStatus",
    "step_column",
    # Storyboard models
    "BEAT_DURATION_SECONDS",
    "Beat",
    "ContinuityGroup",
    "Scene",
    "Shot",
    "continuity_groups",
    "parse_scenes",
    "storyboard_groups",
]
