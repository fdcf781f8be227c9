"""
Step data store.

All writes to a video project go through a compare-and-swap on the row's
revision counter, retried with exponential backoff on conflict.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from modules.step_pipeline.merge import deep_merge
from shared.config import settings
from shared.database import DatabaseClient, db
from shared.errors import (
    ConcurrencyExhaustedError,
    NotFoundError,
    WriteConflictError,
)
from shared.logging import get_logger
from shared.models import MAX_STEPS, VideoProject, VideoStatus, step_column
from shared.retry import retry_with_backoff

logger = get_logger("step_pipeline.store")

VIDEOS_TABLE = "videos"
WORKSPACES_TABLE = "workspaces"


class VideoRepository:
    """Row-level access to the videos table."""

    def __init__(self, db_client: Optional[DatabaseClient] = None):
        self.db = db_client or db

    async def create(self, project: VideoProject) -> VideoProject:
        result = await self.db.table(VIDEOS_TABLE).insert(project.to_row()).execute()
        row = result.data[0] if result.data else project.to_row()
        return VideoProject.from_row(row)

    async def get(self, video_id: str) -> VideoProject:
        """
        Load a project.

        Raises:
            NotFoundError: If no row has this id
        """
        result = await self.db.table(VIDEOS_TABLE).select("*").eq("id", video_id).execute()
        if not result.data:
            raise NotFoundError("Video not found", video_id=video_id)
        return VideoProject.from_row(result.data[0])

    async def compare_and_set(
        self,
        video_id: str,
        expected_revision: int,
        fields: Dict[str, Any]
    ) -> VideoProject:
        """
        Write fields only if the row still has the expected revision.

        The revision is bumped and updated_at refreshed on every write.

        Raises:
            WriteConflictError: If another writer got there first
        """
        update = {
            **fields,
            "revision": expected_revision + 1,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        result = await (
            self.db.table(VIDEOS_TABLE)
            .update(update)
            .eq("id", video_id)
            .eq("revision", expected_revision)
            .execute()
        )
        if not result.data:
            raise WriteConflictError(
                f"Revision {expected_revision} is stale", video_id=video_id, code="WRITE_CONFLICT"
            )
        return VideoProject.from_row(result.data[0])

    async def delete(self, video_id: str) -> None:
        await self.db.table(VIDEOS_TABLE).delete().eq("id", video_id).execute()

    async def is_workspace_member(self, workspace_id: str, user_id: str) -> bool:
        result = await (
            self.db.table(WORKSPACES_TABLE)
            .select("id")
            .eq("id", workspace_id)
            .eq("user_id", user_id)
            .execute()
        )
        return bool(result.data)


Mutation = Callable[[VideoProject], Dict[str, Any]]


def merge_step_data(
    stored: Optional[Dict[str, Any]],
    patch: Dict[str, Any],
    replace_keys: Iterable[str] = ()
) -> Dict[str, Any]:
    """Deep-merge patch, first dropping keys that must be replaced wholesale."""
    tombstones = {key: None for key in replace_keys}
    base = deep_merge(stored, tombstones) if tombstones else stored
    return deep_merge(base, patch)


class StepDataStore:
    """Patch, commit and clear step data with optimistic concurrency."""

    def __init__(
        self,
        repository: Optional[VideoRepository] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None
    ):
        self.repository = repository or VideoRepository()
        self.max_attempts = max_attempts or settings.store_max_attempts
        self.base_delay = settings.store_base_delay if base_delay is None else base_delay

    async def get(self, video_id: str) -> VideoProject:
        return await self.repository.get(video_id)

    async def _write(self, video_id: str, mutate: Mutation, operation: str) -> VideoProject:
        """
        Re-read, compute the update and compare-and-set until it sticks.

        Raises:
            ConcurrencyExhaustedError: If every attempt lost a conflict
            NotFoundError: If the project disappeared
        """

        @retry_with_backoff(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            retry_on=(WriteConflictError,)
        )
        async def attempt() -> VideoProject:
            project = await self.repository.get(video_id)
            return await self.repository.compare_and_set(video_id, project.revision, mutate(project))

        try:
            return await attempt()
        except WriteConflictError as e:
            logger.error(
                f"{operation} gave up after {self.max_attempts} conflicting writes",
                extra={"video_id": video_id, "operation": operation, "attempts": self.max_attempts}
            )
            raise ConcurrencyExhaustedError(
                f"Could not save changes after {self.max_attempts} attempts, please retry",
                attempts=self.max_attempts,
                video_id=video_id
            ) from e

    async def patch_step_data(
        self,
        video_id: str,
        step_number: int,
        partial: Dict[str, Any],
        replace_keys: Iterable[str] = ()
    ) -> Dict[str, Any]:
        """
        Deep-merge a partial update into one step's data.

        Returns:
            The merged step data as persisted
        """
        column = step_column(step_number)

        def mutate(project: VideoProject) -> Dict[str, Any]:
            return {column: merge_step_data(project.step_data(step_number), partial, replace_keys)}

        project = await self._write(video_id, mutate, "patch_step_data")
        logger.debug(
            "Patched step data",
            extra={"video_id": video_id, "step": step_number, "keys": sorted(partial)}
        )
        return project.step_data(step_number) or {}

    async def commit_step(
        self,
        video_id: str,
        step_number: int,
        patch: Dict[str, Any],
        next_step: int,
        total_steps: int = MAX_STEPS,
        replace_keys: Iterable[str] = (),
        snapshot_of: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    ) -> VideoProject:
        """
        Persist a completed step in one write.

        Merges the step data, adds the step to completed_steps, moves the
        pointer forward to next_step (never backwards) and marks the project
        completed once the pointer passes the last step.

        Args:
            snapshot_of: Merged step data -> tracked values; when given, the
                result is stored in step_snapshots unless the step already
                has a snapshot there
        """
        column = step_column(step_number)
        key = str(step_number)

        def mutate(project: VideoProject) -> Dict[str, Any]:
            current_step = max(project.current_step, next_step)
            merged = merge_step_data(project.step_data(step_number), patch, replace_keys)
            fields = {
                column: merged,
                "completed_steps": sorted(set(project.completed_steps) | {step_number}),
                "current_step": current_step,
            }
            if snapshot_of is not None and key not in project.step_snapshots:
                fields["step_snapshots"] = {**project.step_snapshots, key: snapshot_of(merged)}
            if current_step > total_steps:
                fields["status"] = VideoStatus.COMPLETED.value
            return fields

        project = await self._write(video_id, mutate, "commit_step")
        logger.info(
            "Step completed",
            extra={"video_id": video_id, "step": step_number, "current_step": project.current_step}
        )
        return project

    async def clear_steps(
        self,
        video_id: str,
        from_step: int,
        total_steps: int = MAX_STEPS
    ) -> VideoProject:
        """
        Clear from_step..total_steps in a single write.

        Step data is set to None, completed_steps truncated along with their
        snapshots, the pointer pulled back to from_step at most, and the
        status returned to draft.
        """
        cleared: List[int] = list(range(from_step, total_steps + 1))

        def mutate(project: VideoProject) -> Dict[str, Any]:
            fields: Dict[str, Any] = {step_column(n): None for n in cleared}
            fields["completed_steps"] = [n for n in project.completed_steps if n < from_step]
            fields["step_snapshots"] = {
                key: values for key, values in project.step_snapshots.items() if int(key) < from_step
            }
            fields["current_step"] = min(project.current_step, from_step)
            fields["status"] = VideoStatus.DRAFT.value
            return fields

        project = await self._write(video_id, mutate, "clear_steps")
        logger.info(
            "Cleared steps",
            extra={"video_id": video_id, "from_step": from_step, "cleared": cleared}
        )
        return project

    async def update_fields(self, video_id: str, fields: Dict[str, Any]) -> VideoProject:
        """Compare-and-set arbitrary non-step columns (title, status)."""
        return await self._write(video_id, lambda project: dict(fields), "update_fields")
