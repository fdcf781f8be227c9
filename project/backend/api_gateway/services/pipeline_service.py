"""
Pipeline service.

Wires the step pipeline to persistence, the Redis-held session state,
agents, storage and rendering for the HTTP layer.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from api_gateway.services.media_cleanup import delete_project_media
from api_gateway.services.upload_staging import TempUploadStore, temp_uploads
from modules.agents import AgentInvocationAdapter
from modules.render import ExportService
from modules.step_pipeline import (
    AdvanceResult,
    EnterResult,
    PipelineState,
    StepDataStore,
    StepTransitionController,
    VideoRepository,
    get_pipeline,
    missing_requirements,
)
from modules.step_pipeline.state import STATE_VERSION
from shared.config import settings
from shared.errors import ValidationError
from shared.logging import get_logger, set_video_id
from shared.models import VideoMode, VideoProject, parse_scenes, storyboard_groups
from shared.redis_client import RedisClient, redis_client
from shared.storage import StorageClient, safe_filename, safe_segment, storage

logger = get_logger("pipeline_service")


class PipelineSessionStore:
    """PipelineState persisted in Redis with a TTL, guarded by a per-video lock."""

    def __init__(
        self,
        redis: Optional[RedisClient] = None,
        ttl: Optional[int] = None,
        lock_timeout: Optional[float] = None,
        lock_wait: Optional[float] = None
    ):
        self.redis = redis or redis_client
        self.ttl = ttl or settings.pipeline_state_ttl
        self.lock_timeout = lock_timeout or settings.session_lock_timeout
        self.lock_wait = lock_wait or settings.session_lock_wait

    @staticmethod
    def key(video_id: str) -> str:
        return f"pipeline_state:{video_id}"

    @staticmethod
    def lock_key(video_id: str) -> str:
        return f"pipeline_lock:{video_id}"

    def locked(self, video_id: str):
        """Serialize read-modify-write of one video's session across requests and workers."""
        return self.redis.lock(
            self.lock_key(video_id), timeout=self.lock_timeout, blocking_timeout=self.lock_wait
        )

    async def load(self, video_id: str) -> Optional[PipelineState]:
        data = await self.redis.get_json(self.key(video_id))
        if not data or data.get("version") != STATE_VERSION:
            return None
        return PipelineState.from_dict(data)

    async def save(self, state: PipelineState) -> None:
        await self.redis.set_json(self.key(state.video_id), state.to_dict(), ttl=self.ttl)

    async def delete(self, video_id: str) -> None:
        await self.redis.delete(self.key(video_id))


def continuity_migration(project: VideoProject) -> Optional[Dict[str, Any]]:
    """
    Patch that adds continuityGroups to a vlog storyboard saved before groups existed.

    Returns:
        Step data patch, or None when nothing needs migrating
    """
    if project.mode != VideoMode.CHARACTER_VLOG.value:
        return None
    step = get_pipeline(project.mode).get("storyboard")
    data = project.step_data(step.number) or {}
    if "continuityGroups" in data:
        return None
    scenes = parse_scenes((data.get("storyboard") or {}).get("scenes"))
    groups = storyboard_groups(scenes)
    return {"continuityGroups": groups} if groups else None


def nested_patch(dotted_key: str, value: Any) -> Dict[str, Any]:
    """'a.b.c' -> {'a': {'b': {'c': value}}}."""
    parts = [part for part in dotted_key.split(".") if part]
    if not parts:
        raise ValidationError("targetKey is required", missing=["targetKey"])
    patch: Dict[str, Any] = {parts[-1]: value}
    for part in reversed(parts[:-1]):
        patch = {part: patch}
    return patch


class PipelineService:
    """Operations behind the video routes."""

    def __init__(
        self,
        repository: Optional[VideoRepository] = None,
        store: Optional[StepDataStore] = None,
        agents: Optional[AgentInvocationAdapter] = None,
        sessions: Optional[PipelineSessionStore] = None,
        storage_client: Optional[StorageClient] = None,
        exports: Optional[ExportService] = None,
        uploads: Optional[TempUploadStore] = None
    ):
        self.repository = repository or VideoRepository()
        self.store = store or StepDataStore(self.repository)
        self.agents = agents or AgentInvocationAdapter()
        self.sessions = sessions or PipelineSessionStore()
        self.storage = storage_client or storage
        self.exports = exports or ExportService(self.store)
        self.uploads = uploads or temp_uploads
        self.controller = StepTransitionController(
            self.store, self.agents, checkpoint=self.sessions.save
        )

    async def create_video(
        self,
        workspace_id: str,
        mode: VideoMode,
        title: Optional[str] = None
    ) -> VideoProject:
        project = VideoProject(workspace_id=workspace_id, mode=mode, title=title or "Untitled Video")
        project = await self.repository.create(project)
        logger.info(
            "Video created",
            extra={"video_id": project.id, "workspace_id": workspace_id, "mode": project.mode}
        )
        return project

    async def get_video(self, project: VideoProject) -> VideoProject:
        """Return the project, migrating legacy continuity flags first."""
        patch = continuity_migration(project)
        if patch is None:
            return project
        step = get_pipeline(project.mode).get("storyboard")
        await self.store.patch_step_data(project.id, step.number, patch)
        logger.info("Migrated continuity groups", extra={"video_id": project.id})
        return await self.store.get(project.id)

    async def load_state(self, project: VideoProject) -> PipelineState:
        state = await self.sessions.load(project.id)
        if state is None or state.mode != project.mode:
            return PipelineState.from_project(project)
        state.reconcile(project)
        return state

    @asynccontextmanager
    async def session(self, project: VideoProject) -> AsyncIterator[PipelineState]:
        """
        Lock the video's session state for one operation.

        The state is loaded against a fresh read of the project taken under
        the lock and saved back even when the operation fails.
        """
        set_video_id(project.id)
        async with self.sessions.locked(project.id):
            current = await self.store.get(project.id)
            state = await self.load_state(current)
            try:
                yield state
            finally:
                await self.sessions.save(state)

    async def patch_step_data(
        self,
        project: VideoProject,
        step_number: int,
        partial: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Save-as-you-go update of one step.

        Pending overrides of the patched fields are dropped so the persisted
        values are what a later Continue sees.
        """
        definition = get_pipeline(project.mode)
        step = definition.by_number(step_number)

        async with self.session(project) as state:
            merged = await self.store.patch_step_data(project.id, step_number, partial)
            state.discard_fields(step.step_id, partial)
            current = await self.store.get(project.id)
            missing = missing_requirements(definition, step.step_id, state.accumulated(current))
            dirty = state.is_dirty(step, current)

        return {
            "data": merged,
            "canAdvance": not missing,
            "missing": missing,
            "dirty": dirty,
        }

    async def continue_step(
        self,
        project: VideoProject,
        step_number: int,
        field_values: Optional[Dict[str, Any]] = None,
        confirm_reset: bool = False,
        allow_fallback: bool = False
    ) -> AdvanceResult:
        step = get_pipeline(project.mode).by_number(step_number)
        async with self.session(project) as state:
            return await self.controller.advance(
                state,
                step.step_id,
                field_values,
                confirm_reset=confirm_reset,
                allow_fallback=allow_fallback
            )

    async def enter_step(
        self, project: VideoProject, step_number: int, allow_fallback: bool = False
    ) -> EnterResult:
        step = get_pipeline(project.mode).by_number(step_number)
        async with self.session(project) as state:
            return await self.controller.enter_step(state, step.step_id, allow_fallback=allow_fallback)

    async def leave_step(self, project: VideoProject, step_number: int) -> Dict[str, Any]:
        step = get_pipeline(project.mode).by_number(step_number)
        async with self.session(project) as state:
            auto_state = self.controller.leave_step(state, step.step_id)
        return {"stepId": step.step_id, "autoInvocation": auto_state.value}

    async def generate(
        self, project: VideoProject, step_number: int, allow_fallback: bool = False
    ) -> Dict[str, Any]:
        step = get_pipeline(project.mode).by_number(step_number)
        async with self.session(project) as state:
            artifact = await self.controller.generate(state, step.step_id, allow_fallback=allow_fallback)
        return {"stepId": step.step_id, "artifactKey": step.artifact_key, "artifact": artifact}

    async def update_video(
        self,
        project: VideoProject,
        reset_from_step: Optional[int] = None,
        title: Optional[str] = None
    ) -> VideoProject:
        """Cascade-reset from a step and/or rename the project."""
        if reset_from_step is not None:
            async with self.session(project) as state:
                project = await self.controller.reset_engine.reset_from(state, reset_from_step)
        if title is not None:
            project = await self.store.update_fields(project.id, {"title": title})
        return project

    async def delete_video(self, project: VideoProject) -> Dict[str, Any]:
        deleted_media = await delete_project_media(project, self.storage)
        await self.repository.delete(project.id)
        await self.sessions.delete(project.id)
        logger.info("Video deleted", extra={"video_id": project.id, "media_deleted": len(deleted_media)})
        return {"id": project.id, "deleted": True, "mediaDeleted": len(deleted_media)}

    async def attach_upload(
        self,
        project: VideoProject,
        step_number: int,
        temp_id: str,
        target_key: str
    ) -> Dict[str, Any]:
        """
        Move a staged upload to the CDN and store its URL under target_key.

        The staged entry is dropped only after the URL has been persisted.
        """
        get_pipeline(project.mode).by_number(step_number)
        upload = self.uploads.get(temp_id)
        path = "/".join([
            safe_segment(project.workspace_id),
            safe_segment(project.id),
            f"step{step_number}",
            upload.category,
            f"{uuid.uuid4().hex[:8]}_{safe_filename(upload.filename)}",
        ])
        url = await self.storage.put(path, upload.data, upload.content_type)
        result = await self.patch_step_data(project, step_number, nested_patch(target_key, url))
        self.uploads.remove(temp_id)
        return {"url": url, **result}

    async def pipeline_status(self, project: VideoProject) -> Dict[str, Any]:
        """Read-only view of the session; does not wait for a running operation."""
        definition = get_pipeline(project.mode)
        current = await self.store.get(project.id)
        state = await self.load_state(current)
        accumulated = state.accumulated(current)
        disabled = self.controller.disabled_for(accumulated)
        steps = []
        for step in definition.steps:
            missing = missing_requirements(definition, step.step_id, accumulated)
            steps.append({
                "number": step.number,
                "id": step.step_id,
                "completed": state.is_completed(step.number),
                "dirty": state.is_dirty(step, current),
                "canAdvance": not missing,
                "missing": missing,
                "enabled": not (step.optional_flag and step.optional_flag in disabled),
                "autoInvocation": state.auto_state(step.step_id).value,
            })
        return {
            "videoId": project.id,
            "mode": project.mode,
            "currentStep": state.current_step,
            "completedSteps": state.completed_steps,
            "phase": state.phase.value,
            "steps": steps,
        }

    def config(self, mode: str) -> Dict[str, Any]:
        return get_pipeline(mode).describe(settings.disabled_step_flags)


_service: Optional[PipelineService] = None


def get_pipeline_service() -> PipelineService:
    """FastAPI dependency returning the process-wide service."""
    global _service
    if _service is None:
        _service = PipelineService()
    return _service
