"""
FastAPI dependencies.

Authentication, workspace authorization, and request utilities.
"""

import hashlib
import json

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from api_gateway.services.pipeline_service import PipelineService, get_pipeline_service
from shared.config import settings
from shared.errors import AccessDeniedError
from shared.logging import get_logger, set_video_id
from shared.models import VideoProject
from shared.redis_client import redis_client

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        Dictionary with user_id

    Raises:
        HTTPException: If token is invalid or missing
    """
    token = credentials.credentials

    # Check Redis cache first
    token_hash = hashlib.sha256(token.encode()).hexdigest()
    cache_key = f"jwt_valid:{token_hash}"

    try:
        cached = await redis_client.get(cache_key)
        if cached:
            user_data = json.loads(cached)
            logger.debug("JWT validated from cache", extra={"user_id": user_data.get("user_id")})
            return user_data
    except Exception as e:
        logger.warning("Failed to check JWT cache", exc_info=e)

    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            options={"verify_aud": False}
        )
    except JWTError as e:
        logger.warning("JWT validation failed", exc_info=e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_id = payload.get("sub")  # Supabase uses "sub" for user_id
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user_id"
        )

    user_data = {"user_id": user_id}

    # Cache valid token for 5 minutes
    try:
        await redis_client.set(cache_key, json.dumps(user_data), ex=300)
    except Exception as e:
        logger.warning("Failed to cache JWT", exc_info=e)

    logger.debug("JWT validated successfully", extra={"user_id": user_id})
    return user_data


async def verify_workspace_access(
    workspace_id: str,
    current_user: dict,
    service: PipelineService
) -> None:
    """
    Raises:
        AccessDeniedError: If the user is not a member of the workspace
    """
    if not await service.repository.is_workspace_member(workspace_id, current_user["user_id"]):
        logger.warning(
            "Workspace access denied",
            extra={"workspace_id": workspace_id, "user_id": current_user["user_id"]}
        )
        raise AccessDeniedError("You do not have access to this workspace", code="ACCESS_DENIED")


async def verify_video_access(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    service: PipelineService = Depends(get_pipeline_service)
) -> VideoProject:
    """
    Load a video and verify the current user belongs to its workspace.

    Returns:
        The video project

    Raises:
        NotFoundError: If the video does not exist
        AccessDeniedError: If the user is not a member of the owning workspace
    """
    set_video_id(video_id)
    project = await service.repository.get(video_id)
    await verify_workspace_access(project.workspace_id, current_user, service)
    return project
