"""
Step Pipeline Module.

Multi-step video project state machine: step data store, validators, dirty
tracking, cascade resets and the step transition controller.
"""

from modules.step_pipeline.controller import AdvanceResult, EnterResult, StepTransitionController
from modules.step_pipeline.dirty import DirtyTracker
from modules.step_pipeline.merge import deep_merge
from modules.step_pipeline.reset import CascadeResetEngine
from modules.step_pipeline.state import AutoInvocationState, PipelineState, TransitionPhase
from modules.step_pipeline.steps import (
    CHARACTER_VLOG,
    SOCIAL_COMMERCE,
    PipelineDefinition,
    StepDefinition,
    get_pipeline,
    resolve_disabled_flags,
)
from modules.step_pipeline.store import StepDataStore, VideoRepository
from modules.step_pipeline.validators import can_advance, missing_requirements

__all__ = [
    "AdvanceResult",
    "AutoInvocationState",
    "CHARACTER_VLOG",
    "CascadeResetEngine",
    "DirtyTracker",
    "EnterResult",
    "PipelineDefinition",
    "PipelineState",
    "SOCIAL_COMMERCE",
    "StepDataStore",
    "StepDefinition",
    "StepTransitionController",
    "TransitionPhase",
    "VideoRepository",
    "can_advance",
    "deep_merge",
    "get_pipeline",
    "missing_requirements",
    "resolve_disabled_flags",
]
