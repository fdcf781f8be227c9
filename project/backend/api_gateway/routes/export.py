"""
Export endpoints.

Render submission returns immediately; status is observed by polling.
"""

from fastapi import APIRouter, Depends, status

from api_gateway.dependencies import verify_video_access
from api_gateway.services.pipeline_service import PipelineService, get_pipeline_service
from shared.models import VideoProject

router = APIRouter()


@router.post("/videos/{video_id}/export/render", status_code=status.HTTP_202_ACCEPTED)
async def start_render(
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Submit the storyboard for rendering; returns the render id."""
    return await service.exports.start_render(project.id)


@router.get("/videos/{video_id}/export/status")
async def render_status(
    project: VideoProject = Depends(verify_video_access),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Poll the render; progress and final URL are saved on the export step."""
    return await service.exports.poll(project.id)
