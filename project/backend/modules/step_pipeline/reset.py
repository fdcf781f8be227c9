"""
Cascade reset.

Clears a step and everything after it, persisted first and applied to
the local pipeline state only once the write has succeeded.
"""

from modules.step_pipeline.state import PipelineState
from modules.step_pipeline.store import StepDataStore
from shared.logging import get_logger
from shared.models import VideoProject

logger = get_logger("step_pipeline.reset")


class CascadeResetEngine:
    """Invalidate downstream steps after an upstream edit."""

    def __init__(self, store: StepDataStore):
        self.store = store

    async def reset_from(self, state: PipelineState, step_number: int) -> VideoProject:
        """
        Clear step_number..total_steps.

        The caller is responsible for having obtained the user's confirmation.
        If the write fails the exception propagates and state is untouched.

        Args:
            state: Session state of the project
            step_number: First step to clear

        Returns:
            The project as persisted after the reset
        """
        definition = state.definition
        definition.by_number(step_number)

        project = await self.store.clear_steps(state.video_id, step_number, definition.total_steps)

        for step in definition.steps_from(step_number):
            state.tracker.clear(step.step_id)
            state.auto_invocation.pop(step.step_id, None)
            state.discard_fields(step.step_id)
        state.completed_steps = list(project.completed_steps)
        state.current_step = project.current_step

        logger.info(
            "Cascade reset applied",
            extra={
                "video_id": state.video_id,
                "from_step": step_number,
                "completed_steps": state.completed_steps,
            }
        )
        return project
