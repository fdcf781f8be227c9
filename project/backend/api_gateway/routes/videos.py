"""
Video endpoints.

Project CRUD and the step pipeline: save-as-you-go patches, Continue,
step entry/exit, on-demand generation and cascade resets.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from api_gateway.dependencies import get_current_user, verify_video_access, verify_workspace_access
from api_gateway.services.pipeline_service import PipelineService, get_pipeline_service
from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models import MAX_STEPS, VideoMode, VideoProject

logger = get_logger(__name__)

router = APIRouter()


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CreateVideoRequest(_Request):
    workspace_id: str = Field(..., min_length=1)
    mode: VideoMode
    title: Optional[str] = Field(None, max_length=200)


class ContinueRequest(_Request):
    field_values: Dict[str, Any] = Field(default_factory=dict)
    confirm_reset: bool = False
    allow_fallback: bool = False


class StepActionRequest(_Request):
    allow_fallback: bool = False


class UpdateVideoRequest(_Request):
    """
    Generic update. A cascade reset is requested either with resetFromStep or
    with stepNData: null for every N from the reset point on.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    reset_from_step: Optional[int] = Field(None, ge=1, le=MAX_STEPS)
    completed_steps: Optional[list] = None
    step1_data: Optional[Dict[str, Any]] = None
    step2_data: Optional[Dict[str, Any]] = None
    step3_data: Optional[Dict[str, Any]] = None
    step4_data: Optional[Dict[str, Any]] = None
    step5_data: Optional[Dict[str, Any]] = None
    step6_data: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def only_tombstones(self):
        for n in range(1, MAX_STEPS + 1):
            if getattr(self, f"step{n}_data") is not None:
                raise ValueError(f"step{n}Data can only be set to null here; use the step data endpoint")
        return self

    def reset_point(self) -> Optional[int]:
        cleared = [
            n for n in range(1, MAX_STEPS + 1) if f"step{n}_data" in self.model_fields_set
        ]
        candidates = [n for n in [self.reset_from_step, min(cleared) if cleared else None] if n]
        return min(candidates) if candidates else None


@router.post("/videos", status_code=status.HTTP_201_CREATED)
async def create_video(
    body: CreateVideoRequest,
    current_user: dict = Depends(get_current_user),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Create a video project.

    Returns:
        Project with currentStep=1 and no completed steps
    """
    await verify_workspace_access(body.workspace_id, current_user, service)
    project = await service.create_video(body.workspace_id, body.mode, body.title)
    return project.to_response()


@router.get("/videos/{video_id}")
async def get_video(
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Fetch a project including all step data."""
    project = await service.get_video(project)
    return project.to_response()


@router.get("/videos/{video_id}/pipeline")
async def get_pipeline_status(
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Per-step completion, dirtiness and Continue availability."""
    return await service.pipeline_status(project)


@router.patch("/videos/{video_id}/step/{step_number}/data")
async def patch_step_data(
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    partial: Dict[str, Any] = Body(...),
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Deep-merge a partial update into a step's data without advancing.

    A null value deletes its key.

    Returns:
        Merged data with the step's current Continue availability
    """
    return await service.patch_step_data(project, step_number, partial)


@router.patch("/videos/{video_id}/step/{step_number}/continue")
async def continue_step(
    request: Request,
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    body: Optional[ContinueRequest] = None,
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Validate, generate if needed, persist and advance.

    Returns:
        200 with nextStep, or 409 AWAITING_CONFIRMATION when an edited
        completed step must be reset first (resend with confirmReset)
    """
    body = body or ContinueRequest()
    result = await service.continue_step(
        project,
        step_number,
        body.field_values,
        confirm_reset=body.confirm_reset,
        allow_fallback=body.allow_fallback
    )
    if result.awaiting_confirmation:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "error": (
                    f"Step {result.dirty_step} ({result.dirty_step_id}) was edited after completion; "
                    "continuing will clear it and every later step"
                ),
                "code": "AWAITING_CONFIRMATION",
                "retryable": False,
                "request_id": getattr(request.state, "request_id", None),
                **result.to_response(),
            }
        )
    return result.to_response()


@router.post("/videos/{video_id}/step/{step_number}/enter")
async def enter_step(
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    body: Optional[StepActionRequest] = None,
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Arrive at a step; deferred generation runs at most once per visit."""
    body = body or StepActionRequest()
    result = await service.enter_step(project, step_number, allow_fallback=body.allow_fallback)
    return result.to_response()


@router.post("/videos/{video_id}/step/{step_number}/leave")
async def leave_step(
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    return await service.leave_step(project, step_number)


@router.post("/videos/{video_id}/step/{step_number}/generate")
async def generate_step_artifact(
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    body: Optional[StepActionRequest] = None,
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Run the step's agent on demand and store the result."""
    body = body or StepActionRequest()
    return await service.generate(project, step_number, allow_fallback=body.allow_fallback)


@router.patch("/videos/{video_id}")
async def update_video(
    body: UpdateVideoRequest,
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Rename and/or cascade-reset a project.

    The reset clears the reset step and everything after it in one write.
    """
    reset_from = body.reset_point()
    if reset_from is None and body.title is None:
        raise ValidationError("Nothing to update: provide title, resetFromStep or stepNData: null")
    project = await service.update_video(project, reset_from_step=reset_from, title=body.title)
    return project.to_response()


@router.delete("/videos/{video_id}")
async def delete_video(
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Delete the project and the CDN media its step data references."""
    return await service.delete_video(project)


@router.get("/config/{mode}")
async def get_pipeline_config(
    mode: VideoMode,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Step list, field defaults and duration options for a mode."""
    return service.config(mode.value)
