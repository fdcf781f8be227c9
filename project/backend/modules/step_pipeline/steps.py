"""
Step definitions.

Ordered step lists for each video mode, with their validators, bound
agents, tracked fields and documented field defaults.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from modules.step_pipeline import validators
from shared.errors import NotFoundError
from shared.models import VideoMode


@dataclass(frozen=True)
class StepDefinition:
    """
    One stage of a pipeline.

    Attributes:
        number: 1-based position in the pipeline
        step_id: Stable identifier (e.g. "setup")
        title: Display name
        validator: Accumulated data -> missing requirements
        field_defaults: Documented default for every tracked field
        agent_id: Agent producing this step's artifact, if any
        artifact_key: Key under which the artifact is stored in the step data
        auto_generate: Invoke the agent on first entry instead of on Continue
        optional_flag: Feature flag that can disable (skip) this step
    """
    number: int
    step_id: str
    title: str
    validator: validators.Validator
    field_defaults: Mapping[str, Any] = field(default_factory=dict)
    agent_id: Optional[str] = None
    artifact_key: Optional[str] = None
    auto_generate: bool = False
    optional_flag: Optional[str] = None

    @property
    def tracked_fields(self) -> Tuple[str, ...]:
        return tuple(self.field_defaults)

    def defaults(self) -> Dict[str, Any]:
        """Fresh copy of the documented field defaults."""
        return copy.deepcopy(dict(self.field_defaults))

    def tracked_values(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Tracked fields read from a step data blob, defaults where absent."""
        data = data or {}
        return {
            name: copy.deepcopy(data[name]) if name in data else copy.deepcopy(default)
            for name, default in self.field_defaults.items()
        }

    def describe(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "id": self.step_id,
            "title": self.title,
            "agent": self.agent_id,
            "artifactKey": self.artifact_key,
            "autoGenerate": self.auto_generate,
            "optionalFlag": self.optional_flag,
            "trackedFields": list(self.tracked_fields),
            "defaults": self.defaults(),
        }


@dataclass(frozen=True)
class PipelineDefinition:
    mode: VideoMode
    steps: Tuple[StepDefinition, ...]
    duration_options: Tuple[int, ...] = ()

    def __post_init__(self):
        numbers = [step.number for step in self.steps]
        if numbers != list(range(1, len(self.steps) + 1)):
            raise ValueError(f"Steps for {self.mode} must be numbered 1..{len(self.steps)}")

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def get(self, step_id: str) -> StepDefinition:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        raise NotFoundError(f"Unknown step '{step_id}' for mode {self.mode_value}")

    def by_number(self, number: int) -> StepDefinition:
        if not 1 <= number <= self.total_steps:
            raise NotFoundError(f"Unknown step {number} for mode {self.mode_value}")
        return self.steps[number - 1]

    def steps_from(self, number: int) -> List[StepDefinition]:
        """Steps number..total_steps in order."""
        return [step for step in self.steps if step.number >= number]

    def next_step(self, after: int, disabled_flags: Iterable[str] = ()) -> int:
        """
        Number of the step that follows `after`.

        Every disabled optional step is skipped, however many are disabled
        in a row; past the last step this is total_steps + 1.
        """
        disabled = set(disabled_flags)
        for step in self.steps_from(after + 1):
            if step.optional_flag and step.optional_flag in disabled:
                continue
            return step.number
        return self.total_steps + 1

    @property
    def mode_value(self) -> str:
        return getattr(self.mode, "value", self.mode)

    def describe(self, disabled_flags: Iterable[str] = ()) -> Dict[str, Any]:
        disabled = set(disabled_flags)
        return {
            "mode": self.mode_value,
            "totalSteps": self.total_steps,
            "durationOptions": list(self.duration_options),
            "steps": [
                {**step.describe(), "enabled": not (step.optional_flag and step.optional_flag in disabled)}
                for step in self.steps
            ],
        }


SOCIAL_COMMERCE = PipelineDefinition(
    mode=VideoMode.SOCIAL_COMMERCE,
    duration_options=validators.COMMERCE_DURATIONS,
    steps=(
        StepDefinition(
            number=1,
            step_id="setup",
            title="Product & Strategy",
            validator=validators.commerce_setup,
            field_defaults={
                "productTitle": "",
                "productDescription": "",
                "targetAudience": "",
                "duration": None,
                "aspectRatio": "9:16",
                "customMotionInstructions": "",
                "customImageInstructions": "",
                "productImages": {},
            },
            agent_id="strategic_context",
            artifact_key="strategicContext",
        ),
        StepDefinition(
            number=2,
            step_id="script",
            title="Creative Spark & Beats",
            validator=validators.commerce_script,
            field_defaults={
                "uiInputs": {"campaignSpark": "", "visualBeats": {}},
            },
            agent_id="narrative",
            artifact_key="narrative",
        ),
        StepDefinition(
            number=3,
            step_id="prompts",
            title="Beat Prompts",
            validator=validators.commerce_prompts,
            field_defaults={"beatOverrides": {}},
            agent_id="beat_prompts",
            artifact_key="beatPrompts",
        ),
        StepDefinition(
            number=4,
            step_id="storyboard",
            title="Storyboard",
            validator=validators.storyboard_requirements(4),
            field_defaults={"shotEdits": {}},
            agent_id="storyboard",
            artifact_key="storyboard",
            auto_generate=True,
        ),
        StepDefinition(
            number=5,
            step_id="animatic",
            title="Animatic",
            validator=validators.always_valid,
            field_defaults={"musicStyle": "", "voiceoverEnabled": False},
            optional_flag="animatic",
        ),
        StepDefinition(
            number=6,
            step_id="export",
            title="Export",
            validator=validators.export_requirements(4),
            field_defaults={"format": "mp4", "resolution": "1080"},
        ),
    ),
)

CHARACTER_VLOG = PipelineDefinition(
    mode=VideoMode.CHARACTER_VLOG,
    duration_options=validators.VLOG_DURATIONS,
    steps=(
        StepDefinition(
            number=1,
            step_id="script",
            title="Script",
            validator=validators.vlog_script,
            field_defaults={
                "userPrompt": "",
                "script": "",
                "duration": None,
                "narrationStyle": "first-person",
                "genre": "",
                "aspectRatio": "9:16",
            },
            agent_id="vlog_script",
            artifact_key="generatedScript",
        ),
        StepDefinition(
            number=2,
            step_id="elements",
            title="Characters & Locations",
            validator=validators.vlog_elements,
            field_defaults={"characters": [], "locations": []},
        ),
        StepDefinition(
            number=3,
            step_id="scenes",
            title="Scenes",
            validator=validators.vlog_scenes,
            field_defaults={"theme": "", "numberOfScenes": 3},
            agent_id="scene_breakdown",
            artifact_key="scenes",
        ),
        StepDefinition(
            number=4,
            step_id="storyboard",
            title="Storyboard",
            validator=validators.storyboard_requirements(4),
            field_defaults={"shotEdits": {}},
            agent_id="storyboard",
            artifact_key="storyboard",
            auto_generate=True,
        ),
        StepDefinition(
            number=5,
            step_id="sound",
            title="Sound",
            validator=validators.always_valid,
            field_defaults={"voiceId": "", "musicStyle": ""},
            optional_flag="sound",
        ),
        StepDefinition(
            number=6,
            step_id="export",
            title="Export",
            validator=validators.export_requirements(4),
            field_defaults={"format": "mp4", "resolution": "1080"},
        ),
    ),
)

PIPELINES: Dict[str, PipelineDefinition] = {
    VideoMode.SOCIAL_COMMERCE.value: SOCIAL_COMMERCE,
    VideoMode.CHARACTER_VLOG.value: CHARACTER_VLOG,
}


def get_pipeline(mode: Any) -> PipelineDefinition:
    """
    Look up the pipeline for a video mode.

    Raises:
        NotFoundError: If the mode has no pipeline
    """
    key = getattr(mode, "value", mode)
    try:
        return PIPELINES[key]
    except KeyError:
        raise NotFoundError(f"Unknown video mode: {key}")


def resolve_disabled_flags(
    global_disabled: Iterable[str],
    project_flags: Optional[Mapping[str, Any]] = None
) -> Set[str]:
    """
    Optional-step flags that are disabled for one project.

    Args:
        global_disabled: Flags disabled for every project (settings)
        project_flags: featureFlags from the project's first step; True
            enables a flag, False disables it, and these win over the global set

    Returns:
        Set of disabled flags
    """
    disabled = set(global_disabled)
    for flag, enabled in (project_flags or {}).items():
        if enabled is True:
            disabled.discard(flag)
        elif enabled is False:
            disabled.add(flag)
    return disabled
