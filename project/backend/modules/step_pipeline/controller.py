"""
Step transition controller.

Drives one step through dirty check -> validation -> agent invocation ->
persistence, and owns the auto-generation guard of deferred steps.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from modules.step_pipeline.reset import CascadeResetEngine
from modules.step_pipeline.state import AutoInvocationState, PipelineState, TransitionPhase
from modules.step_pipeline.steps import StepDefinition, resolve_disabled_flags
from modules.step_pipeline.store import StepDataStore
from modules.step_pipeline.validators import missing_requirements
from modules.step_pipeline.versioned import Accumulated, read_artifact, read_field, resolve_visual_beats
from shared.config import settings
from shared.errors import ValidationError
from shared.logging import get_logger, set_video_id
from shared.models import VideoProject

logger = get_logger("step_pipeline.controller")

Checkpoint = Callable[[PipelineState], Awaitable[None]]


class AgentInvoker(Protocol):
    async def invoke(
        self, agent_id: str, payload: Dict[str, Any], allow_fallback: bool = False
    ) -> Dict[str, Any]:
        ...


@dataclass
class AdvanceResult:
    """Outcome of a Continue action."""
    phase: TransitionPhase
    step_number: int
    step_id: str
    next_step: Optional[int] = None
    next_step_id: Optional[str] = None
    dirty_step: Optional[int] = None
    dirty_step_id: Optional[str] = None
    invoked_agent: bool = False
    project: Optional[VideoProject] = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self.phase == TransitionPhase.AWAITING_CONFIRMATION

    def to_response(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            "phase": self.phase.value,
            "stepNumber": self.step_number,
            "stepId": self.step_id,
            "nextStep": self.next_step,
            "nextStepId": self.next_step_id,
            "invokedAgent": self.invoked_agent,
        }
        if self.awaiting_confirmation:
            response["dirtyStep"] = self.dirty_step
            response["dirtyStepId"] = self.dirty_step_id
        if self.project is not None:
            response["project"] = self.project.to_response()
        return response


@dataclass
class EnterResult:
    step_id: str
    auto_state: AutoInvocationState
    invoked_agent: bool = False
    artifact: Optional[Any] = None
    missing: List[str] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "stepId": self.step_id,
            "autoInvocation": self.auto_state.value,
            "invokedAgent": self.invoked_agent,
            "artifact": self.artifact,
            "missing": self.missing,
        }


class StepTransitionController:
    """Orchestrates step transitions for one project's PipelineState."""

    def __init__(
        self,
        store: StepDataStore,
        agents: AgentInvoker,
        reset_engine: Optional[CascadeResetEngine] = None,
        disabled_flags: Optional[Iterable[str]] = None,
        checkpoint: Optional[Checkpoint] = None
    ):
        """
        Args:
            store: Step data store
            agents: Agent invocation adapter
            reset_engine: Cascade reset engine (built over store by default)
            disabled_flags: Optional-step flags disabled for every project
                (defaults to settings.disabled_steps)
            checkpoint: Called with the state before a paid agent call, so
                concurrent requests observe the in-flight guard
        """
        self.store = store
        self.agents = agents
        self.reset_engine = reset_engine or CascadeResetEngine(store)
        self.disabled_flags = set(
            settings.disabled_step_flags if disabled_flags is None else disabled_flags
        )
        self.checkpoint = checkpoint

    def disabled_for(self, accumulated: Accumulated) -> set:
        return resolve_disabled_flags(
            self.disabled_flags, (accumulated.get(1) or {}).get("featureFlags")
        )

    def find_dirty_step(
        self, state: PipelineState, project: VideoProject, up_to: int
    ) -> Optional[StepDefinition]:
        """Earliest completed step at or before up_to whose tracked fields changed."""
        for step in state.definition.steps:
            if step.number > up_to:
                break
            if state.is_dirty(step, project):
                return step
        return None

    def agent_payload(
        self, state: PipelineState, step: StepDefinition, accumulated: Accumulated
    ) -> Dict[str, Any]:
        return {
            "videoId": state.video_id,
            "mode": state.mode,
            "step": step.step_id,
            "stepData": {f"step{n}": data for n, data in accumulated.items()},
            "creativeSpark": read_field(accumulated, "creativeSpark", ""),
            "visualBeats": resolve_visual_beats(accumulated),
        }

    async def _checkpoint(self, state: PipelineState) -> None:
        if self.checkpoint is not None:
            await self.checkpoint(state)

    def _require_reachable(self, step: StepDefinition, project: VideoProject) -> None:
        if step.number > project.current_step:
            raise ValidationError(
                f"Step {step.number} ({step.step_id}) is not available until earlier steps are completed",
                video_id=project.id,
                code="STEP_NOT_REACHED"
            )

    async def advance(
        self,
        state: PipelineState,
        step_id: str,
        field_values: Optional[Dict[str, Any]] = None,
        confirm_reset: bool = False,
        allow_fallback: bool = False
    ) -> AdvanceResult:
        """
        Continue from a step.

        Args:
            state: Session state (mutated in place)
            step_id: Step the user is continuing from
            field_values: Field values of that step not yet saved
            confirm_reset: User confirmed clearing a dirty step and everything after it
            allow_fallback: Accept a deterministic default if the agent fails

        Returns:
            AdvanceResult; phase awaiting_confirmation means nothing was persisted

        Raises:
            ValidationError: If the step lacks required data
            AgentInvocationFailedError: If the bound agent failed and no fallback was used
            ConcurrencyExhaustedError: If the write kept conflicting
        """
        set_video_id(state.video_id)
        definition = state.definition
        step = definition.get(step_id)
        state.apply_fields(step_id, field_values)

        project = await self.store.get(state.video_id)
        self._require_reachable(step, project)

        dirty = self.find_dirty_step(state, project, step.number)
        if dirty is not None and not confirm_reset:
            state.phase = TransitionPhase.AWAITING_CONFIRMATION
            logger.info(
                "Continue blocked by edited completed step",
                extra={"step": step.step_id, "dirty_step": dirty.step_id}
            )
            return AdvanceResult(
                phase=TransitionPhase.AWAITING_CONFIRMATION,
                step_number=step.number,
                step_id=step.step_id,
                dirty_step=dirty.number,
                dirty_step_id=dirty.step_id
            )

        if dirty is not None:
            edited = state.current_fields(dirty, project)
            project = await self.reset_engine.reset_from(state, dirty.number)
            state.apply_fields(dirty.step_id, edited)
            step = dirty

        state.phase = TransitionPhase.VALIDATING
        accumulated = state.accumulated(project)
        missing = missing_requirements(definition, step.step_id, accumulated)
        if missing:
            state.phase = TransitionPhase.IDLE
            raise ValidationError(
                f"Step '{step.step_id}' is missing: {', '.join(missing)}",
                missing=missing,
                video_id=state.video_id,
                code="STEP_INCOMPLETE"
            )

        # Overrides and tracked values replace their stored keys wholesale
        patch = {**state.pending_fields(step.step_id), **state.current_fields(step, project)}
        replace_keys: List[str] = list(patch)
        invoked = False
        if step.agent_id and read_artifact(step, accumulated) is None:
            state.phase = TransitionPhase.INVOKING
            try:
                patch[step.artifact_key] = await self.agents.invoke(
                    step.agent_id,
                    self.agent_payload(state, step, accumulated),
                    allow_fallback=allow_fallback
                )
            finally:
                state.phase = TransitionPhase.IDLE
            replace_keys.append(step.artifact_key)
            invoked = True

        state.phase = TransitionPhase.PERSISTING
        next_number = definition.next_step(step.number, self.disabled_for(accumulated))
        try:
            project = await self.store.commit_step(
                state.video_id,
                step.number,
                patch,
                next_number,
                definition.total_steps,
                replace_keys=replace_keys,
                snapshot_of=step.tracked_values
            )
        finally:
            state.phase = TransitionPhase.IDLE

        state.discard_fields(step.step_id)
        state.reconcile(project)

        next_id = definition.by_number(next_number).step_id if next_number <= definition.total_steps else None
        return AdvanceResult(
            phase=TransitionPhase.IDLE,
            step_number=step.number,
            step_id=step.step_id,
            next_step=next_number,
            next_step_id=next_id,
            invoked_agent=invoked,
            project=project
        )

    async def enter_step(
        self,
        state: PipelineState,
        step_id: str,
        allow_fallback: bool = False
    ) -> EnterResult:
        """
        Arrive at a step, auto-generating its artifact at most once per visit.

        The agent runs only when the step defers generation, no artifact is
        stored and the guard is not_started. A produced artifact trips the
        guard for good.

        Raises:
            AgentInvocationFailedError: If generation failed (guard becomes failed)
        """
        set_video_id(state.video_id)
        step = state.definition.get(step_id)
        if not step.auto_generate:
            return EnterResult(step_id=step_id, auto_state=state.auto_state(step_id))

        project = await self.store.get(state.video_id)
        self._require_reachable(step, project)
        accumulated = state.accumulated(project)

        existing = read_artifact(step, accumulated)
        if existing is not None:
            state.auto_invocation[step_id] = AutoInvocationState.COMPLETED
            return EnterResult(step_id=step_id, auto_state=AutoInvocationState.COMPLETED, artifact=existing)

        if state.auto_state(step_id) != AutoInvocationState.NOT_STARTED:
            return EnterResult(step_id=step_id, auto_state=state.auto_state(step_id))

        state.auto_invocation[step_id] = AutoInvocationState.IN_FLIGHT
        state.phase = TransitionPhase.INVOKING
        await self._checkpoint(state)
        try:
            artifact = await self.agents.invoke(
                step.agent_id,
                self.agent_payload(state, step, accumulated),
                allow_fallback=allow_fallback
            )
            await self.store.patch_step_data(
                state.video_id, step.number, {step.artifact_key: artifact}, replace_keys=[step.artifact_key]
            )
        except Exception:
            state.auto_invocation[step_id] = AutoInvocationState.FAILED
            raise
        finally:
            state.phase = TransitionPhase.IDLE

        state.auto_invocation[step_id] = AutoInvocationState.COMPLETED
        logger.info("Auto-generated step artifact", extra={"step": step_id, "agent": step.agent_id})
        return EnterResult(
            step_id=step_id,
            auto_state=AutoInvocationState.COMPLETED,
            invoked_agent=True,
            artifact=artifact
        )

    def leave_step(self, state: PipelineState, step_id: str) -> AutoInvocationState:
        """
        Leave a step. Re-arms the auto-generation guard unless an artifact was produced.

        An in-flight generation keeps its guard; the request running it settles it.
        """
        state.definition.get(step_id)
        current = state.auto_state(step_id)
        if current in (AutoInvocationState.NOT_STARTED, AutoInvocationState.FAILED):
            state.auto_invocation[step_id] = AutoInvocationState.NOT_STARTED
        return state.auto_state(step_id)

    async def generate(
        self,
        state: PipelineState,
        step_id: str,
        allow_fallback: bool = False
    ) -> Dict[str, Any]:
        """
        Run a step's agent on demand and store the artifact without advancing.

        Returns:
            The generated artifact

        Raises:
            ValidationError: If the step has no agent or is not reachable
            AgentInvocationFailedError: If generation failed
        """
        set_video_id(state.video_id)
        step = state.definition.get(step_id)
        if not step.agent_id:
            raise ValidationError(f"Step '{step_id}' has nothing to generate", video_id=state.video_id)

        project = await self.store.get(state.video_id)
        self._require_reachable(step, project)
        accumulated = state.accumulated(project)

        state.phase = TransitionPhase.INVOKING
        try:
            artifact = await self.agents.invoke(
                step.agent_id,
                self.agent_payload(state, step, accumulated),
                allow_fallback=allow_fallback
            )
            await self.store.patch_step_data(
                state.video_id, step.number, {step.artifact_key: artifact}, replace_keys=[step.artifact_key]
            )
        finally:
            state.phase = TransitionPhase.IDLE

        state.discard_fields(step_id, [step.artifact_key])
        if step.auto_generate:
            state.auto_invocation[step_id] = AutoInvocationState.COMPLETED
        return artifact
