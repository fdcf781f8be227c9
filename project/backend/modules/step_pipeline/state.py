"""
Pipeline state.

Explicit per-project session state: field overrides not yet persisted,
dirty snapshots, auto-invocation guards and the current transition phase.
Every mutation goes through the transition controller, the cascade reset
engine or the pipeline service.

Field values are never cached here: a step's current values are its
persisted data with the pending overrides laid over it, so a save that
lands in the database is always visible to the next read.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from modules.step_pipeline.dirty import DirtyTracker
from modules.step_pipeline.steps import PipelineDefinition, StepDefinition, get_pipeline
from modules.step_pipeline.versioned import Accumulated, read_artifact
from shared.models import VideoProject

STATE_VERSION = 2


class AutoInvocationState(str, Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


class TransitionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    VALIDATING = "validating"
    INVOKING = "invoking"
    PERSISTING = "persisting"


def _tracked_map(definition: PipelineDefinition) -> Dict[str, tuple]:
    return {step.step_id: step.tracked_fields for step in definition.steps}


@dataclass
class PipelineState:
    video_id: str
    mode: str
    current_step: int = 1
    completed_steps: List[int] = field(default_factory=list)
    # Step id -> top-level values the user set that are not persisted yet
    fields: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    tracker: Optional[DirtyTracker] = None
    auto_invocation: Dict[str, AutoInvocationState] = field(default_factory=dict)
    phase: TransitionPhase = TransitionPhase.IDLE

    def __post_init__(self):
        self.mode = getattr(self.mode, "value", self.mode)
        if self.tracker is None:
            self.tracker = DirtyTracker(_tracked_map(self.definition))

    @property
    def definition(self) -> PipelineDefinition:
        return get_pipeline(self.mode)

    def is_completed(self, step_number: int) -> bool:
        return step_number in self.completed_steps

    def pending_fields(self, step_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self.fields.get(step_id, {}))

    def apply_fields(self, step_id: str, values: Optional[Mapping[str, Any]]) -> None:
        """Override the given top-level fields of a step until they are persisted."""
        self.definition.get(step_id)
        if not values:
            return
        current = self.fields.setdefault(step_id, {})
        for name, value in values.items():
            current[name] = copy.deepcopy(value)

    def discard_fields(self, step_id: str, names: Optional[Iterable[str]] = None) -> None:
        """Drop overrides, all of a step's or only the named ones."""
        if names is None:
            self.fields.pop(step_id, None)
            return
        current = self.fields.get(step_id)
        if current is None:
            return
        for name in names:
            current.pop(name, None)
        if not current:
            self.fields.pop(step_id, None)

    def step_view(self, step: StepDefinition, project: VideoProject) -> Dict[str, Any]:
        """
        A step's data as the user currently sees it.

        Documented defaults fill fields absent from the persisted data, and
        pending overrides replace persisted values key by key.
        """
        return {
            **step.defaults(),
            **copy.deepcopy(project.step_data(step.number) or {}),
            **self.pending_fields(step.step_id),
        }

    def current_fields(self, step: StepDefinition, project: VideoProject) -> Dict[str, Any]:
        return step.tracked_values(self.step_view(step, project))

    def auto_state(self, step_id: str) -> AutoInvocationState:
        return self.auto_invocation.get(step_id, AutoInvocationState.NOT_STARTED)

    def is_dirty(self, step: StepDefinition, project: VideoProject) -> bool:
        return self.tracker.is_dirty(
            step.step_id, self.current_fields(step, project), self.is_completed(step.number)
        )

    def dirty_steps(self, project: VideoProject) -> List[int]:
        return [step.number for step in self.definition.steps if self.is_dirty(step, project)]

    def accumulated(self, project: VideoProject) -> Accumulated:
        """Step number -> current view of that step's data."""
        return {step.number: self.step_view(step, project) for step in self.definition.steps}

    def reconcile(self, project: VideoProject) -> None:
        """
        Align with the persisted project.

        Pointer and completed steps always come from the project. Snapshots
        stored with the project replace cached ones; steps the project no
        longer counts as completed lose theirs. Completed steps saved before
        snapshots were stored get one from their persisted data.
        """
        self.current_step = project.current_step
        self.completed_steps = list(project.completed_steps)
        for step in self.definition.steps:
            if not self.is_completed(step.number):
                self.tracker.clear(step.step_id)
                continue
            stored = project.completion_snapshot(step.number)
            if stored is not None:
                self.tracker.restore(step.step_id, step.tracked_values(stored))
            elif not self.tracker.has_snapshot(step.step_id):
                self.tracker.capture_snapshot(
                    step.step_id, step.tracked_values(project.step_data(step.number))
                )

    @classmethod
    def from_project(cls, project: VideoProject) -> "PipelineState":
        """Rebuild session state from the persisted project alone."""
        definition = get_pipeline(project.mode)
        state = cls(
            video_id=project.id,
            mode=project.mode,
            current_step=project.current_step,
            completed_steps=list(project.completed_steps),
        )
        persisted = {n: data or {} for n, data in project.all_step_data().items()}
        for step in definition.steps:
            if step.auto_generate and read_artifact(step, persisted) is not None:
                state.auto_invocation[step.step_id] = AutoInvocationState.COMPLETED
        state.reconcile(project)
        return state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "videoId": self.video_id,
            "mode": self.mode,
            "currentStep": self.current_step,
            "completedSteps": list(self.completed_steps),
            "fields": copy.deepcopy(self.fields),
            "snapshots": self.tracker.to_dict(),
            "autoInvocation": {k: v.value for k, v in self.auto_invocation.items()},
            "phase": self.phase.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineState":
        definition = get_pipeline(data["mode"])
        return cls(
            video_id=data["videoId"],
            mode=data["mode"],
            current_step=data.get("currentStep", 1),
            completed_steps=list(data.get("completedSteps", [])),
            fields=copy.deepcopy(data.get("fields") or {}),
            tracker=DirtyTracker.from_dict(data.get("snapshots"), _tracked_map(definition)),
            auto_invocation={
                k: AutoInvocationState(v) for k, v in (data.get("autoInvocation") or {}).items()
            },
            phase=TransitionPhase(data.get("phase", TransitionPhase.IDLE.value)),
        )
