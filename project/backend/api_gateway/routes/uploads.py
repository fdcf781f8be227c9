"""
Upload endpoints.

Stage images in memory, then attach them to a project step via the CDN.
"""

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api_gateway.dependencies import get_current_user, verify_video_access
from api_gateway.services.pipeline_service import PipelineService, get_pipeline_service
from shared.logging import get_logger
from shared.models import MAX_STEPS, VideoProject

logger = get_logger(__name__)

router = APIRouter()


class AttachUploadRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_key: str = Field(..., min_length=1, description="Dotted key in the step data, e.g. productImages.hero")


@router.post("/uploads/temp", status_code=status.HTTP_201_CREATED)
async def stage_upload(
    file: UploadFile = File(...),
    category: str = Form("product"),
    current_user: dict = Depends(get_current_user),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Stage an image (PNG/JPEG/WEBP/GIF) until it is attached or expires.

    Returns:
        Temporary upload metadata including tempId
    """
    data = await file.read()
    upload = service.uploads.add(file.filename or "upload", data, category)
    logger.info("Upload staged", extra={"temp_id": upload.temp_id, "user_id": current_user["user_id"]})
    return upload.to_response()


@router.delete("/uploads/temp/{temp_id}")
async def discard_upload(
    temp_id: str = Path(...),
    current_user: dict = Depends(get_current_user),
    service: PipelineService = Depends(get_pipeline_service)
):
    return {"tempId": temp_id, "deleted": service.uploads.remove(temp_id)}


@router.post("/videos/{video_id}/step/{step_number}/uploads/{temp_id}")
async def attach_upload(
    body: AttachUploadRequest,
    step_number: int = Path(..., ge=1, le=MAX_STEPS),
    temp_id: str = Path(...),
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Upload a staged image to the CDN and store its URL in the step data.

    Returns:
        CDN URL and the merged step data
    """
    return await service.attach_upload(project, step_number, temp_id, body.target_key)
