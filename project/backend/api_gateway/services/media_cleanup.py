"""
Media cleanup.

Deletes CDN objects referenced by URL anywhere inside a project's step data.
"""

from typing import Any, List, Optional, Set

from shared.errors import PipelineError
from shared.logging import get_logger
from shared.models import VideoProject
from shared.storage import StorageClient

logger = get_logger("media_cleanup")


def collect_media_paths(value: Any, storage: StorageClient, found: Optional[Set[str]] = None) -> Set[str]:
    """Storage paths of every CDN URL nested in value."""
    found = set() if found is None else found
    if isinstance(value, str):
        path = storage.path_from_url(value)
        if path:
            found.add(path)
    elif isinstance(value, dict):
        for item in value.values():
            collect_media_paths(item, storage, found)
    elif isinstance(value, list):
        for item in value:
            collect_media_paths(item, storage, found)
    return found


async def delete_project_media(project: VideoProject, storage: StorageClient) -> List[str]:
    """
    Delete every CDN object a project references.

    Failures are logged and skipped so the project itself can still be deleted.

    Returns:
        Paths that were deleted
    """
    if not storage.is_configured:
        logger.warning("Storage not configured, skipping media cleanup", extra={"video_id": project.id})
        return []

    paths = sorted(collect_media_paths(list(project.all_step_data().values()), storage))
    deleted = []
    for path in paths:
        try:
            await storage.delete(path)
            deleted.append(path)
        except PipelineError as e:
            logger.warning(
                f"Failed to delete media {path}: {e.message}",
                extra={"video_id": project.id, "path": path}
            )
    logger.info("Project media cleaned up", extra={"video_id": project.id, "deleted": len(deleted)})
    return deleted
