"""
Export service.

Submits renders without waiting for them; progress is observed only by
polling, and every observation is written back to the export step data.
"""

from typing import Any, Dict, Optional

from modules.render.shotstack import ShotstackClient
from modules.render.timeline import build_edit
from modules.step_pipeline.steps import get_pipeline
from modules.step_pipeline.store import StepDataStore
from shared.errors import NotFoundError
from shared.logging import get_logger, set_video_id

logger = get_logger("render.export")

STATUS_PROGRESS = {
    "queued": 10,
    "fetching": 30,
    "rendering": 60,
    "saving": 85,
    "done": 100,
    "failed": 0,
}

ACTIVE_STATUSES = {"queued", "fetching", "rendering", "saving"}


def render_state(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "renderId": data.get("renderId"),
        "status": data.get("renderStatus"),
        "progress": data.get("renderProgress", 0),
        "url": data.get("renderUrl"),
        "error": data.get("renderError"),
    }


class ExportService:
    def __init__(self, store: StepDataStore, client: Optional[ShotstackClient] = None):
        self.store = store
        self.client = client or ShotstackClient()

    async def _export_step(self, video_id: str):
        project = await self.store.get(video_id)
        step = get_pipeline(project.mode).get("export")
        return project, step.number, project.step_data(step.number) or {}

    async def start_render(self, video_id: str) -> Dict[str, Any]:
        """
        Submit the project's timeline for rendering and return immediately.

        A render that is still active is returned as-is instead of resubmitted.

        Raises:
            ValidationError: If there is nothing to render
            ServiceNotConfiguredError: If the render service has no credentials
        """
        set_video_id(video_id)
        project, step_number, data = await self._export_step(video_id)
        if data.get("renderId") and data.get("renderStatus") in ACTIVE_STATUSES:
            return render_state(data)

        render_id = await self.client.submit(build_edit(project))
        data = await self.store.patch_step_data(video_id, step_number, {
            "renderId": render_id,
            "renderStatus": "queued",
            "renderProgress": STATUS_PROGRESS["queued"],
            "renderUrl": None,
            "renderError": None,
        })
        logger.info("Render submitted", extra={"render_id": render_id})
        return render_state(data)

    async def poll(self, video_id: str) -> Dict[str, Any]:
        """
        Check the render and record its status.

        Raises:
            NotFoundError: If no render was started
        """
        set_video_id(video_id)
        _, step_number, data = await self._export_step(video_id)
        render_id = data.get("renderId")
        if not render_id:
            raise NotFoundError("No render has been started", video_id=video_id)
        if data.get("renderStatus") not in ACTIVE_STATUSES:
            return render_state(data)

        status = await self.client.get_status(render_id)
        patch: Dict[str, Any] = {
            "renderStatus": status["status"],
            "renderProgress": STATUS_PROGRESS.get(status["status"], data.get("renderProgress", 0)),
        }
        if status["status"] == "done":
            patch["renderUrl"] = status["url"]
        elif status["status"] == "failed":
            patch["renderError"] = status.get("error") or "Render failed"

        data = await self.store.patch_step_data(video_id, step_number, patch)
        if status["status"] in ("done", "failed"):
            logger.info(
                f"Render {status['status']}",
                extra={"render_id": render_id, "url": status.get("url")}
            )
        return render_state(data)
