"""
Tests for authentication and authorization dependencies.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from api_gateway.dependencies import get_current_user, verify_video_access, verify_workspace_access
from shared.config import settings
from shared.errors import AccessDeniedError, NotFoundError
from shared.models import VideoProject

USER_ID = "550e8400-e29b-41d4-a716-446655440000"


@pytest.mark.asyncio
async def test_get_current_user_valid_token():
    """Test JWT validation with valid token."""
    with patch("api_gateway.dependencies.redis_client") as mock_redis_wrapper:
        mock_redis_wrapper.get = AsyncMock(return_value=None)  # Cache miss
        mock_redis_wrapper.set = AsyncMock(return_value=True)

        token = jwt.encode({"sub": USER_ID, "exp": 9999999999}, settings.supabase_jwt_secret, algorithm="HS256")
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

        user_data = await get_current_user(credentials)

        assert user_data["user_id"] == USER_ID
        mock_redis_wrapper.set.assert_awaited_once()
        assert mock_redis_wrapper.set.await_args.kwargs["ex"] == 300


@pytest.mark.asyncio
async def test_get_current_user_cached_token():
    """Test JWT validation uses cached token."""
    with patch("api_gateway.dependencies.redis_client") as mock_redis_wrapper:
        mock_redis_wrapper.get = AsyncMock(return_value=json.dumps({"user_id": USER_ID}))
        mock_redis_wrapper.set = AsyncMock()

        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="cached_token")
        user_data = await get_current_user(credentials)

        assert user_data["user_id"] == USER_ID
        mock_redis_wrapper.set.assert_not_called()


@pytest.mark.asyncio
async def test_get_current_user_invalid_token():
    """Test JWT validation with invalid token."""
    with patch("api_gateway.dependencies.redis_client") as mock_redis_wrapper:
        mock_redis_wrapper.get = AsyncMock(return_value=None)

        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="invalid_token")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials)

        assert exc_info.value.status_code == 401
        assert "Invalid or expired token" in exc_info.value.detail


@pytest.mark.asyncio
async def test_get_current_user_missing_user_id():
    """Test JWT validation with token missing user_id."""
    with patch("api_gateway.dependencies.redis_client") as mock_redis_wrapper:
        mock_redis_wrapper.get = AsyncMock(return_value=None)

        token = jwt.encode({"exp": 9999999999}, settings.supabase_jwt_secret, algorithm="HS256")
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials)

        assert exc_info.value.status_code == 401
        assert "missing user_id" in exc_info.value.detail


@pytest.mark.asyncio
async def test_cache_failure_does_not_block_login():
    with patch("api_gateway.dependencies.redis_client") as mock_redis_wrapper:
        mock_redis_wrapper.get = AsyncMock(side_effect=Exception("redis down"))
        mock_redis_wrapper.set = AsyncMock(side_effect=Exception("redis down"))

        token = jwt.encode({"sub": USER_ID}, settings.supabase_jwt_secret, algorithm="HS256")
        user_data = await get_current_user(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token))

        assert user_data == {"user_id": USER_ID}


@pytest.mark.asyncio
async def test_verify_video_access_member(pipeline_service, fake_db):
    fake_db.add_project(VideoProject(id="video-1", workspace_id="ws-1", mode="social-commerce"))

    project = await verify_video_access("video-1", {"user_id": USER_ID}, pipeline_service)

    assert project.id == "video-1"


@pytest.mark.asyncio
async def test_verify_video_access_non_member(pipeline_service, fake_db):
    """Membership is checked against the video's own workspace."""
    fake_db.add_project(VideoProject(id="video-2", workspace_id="ws-other", mode="social-commerce"))

    with pytest.raises(AccessDeniedError):
        await verify_video_access("video-2", {"user_id": USER_ID}, pipeline_service)


@pytest.mark.asyncio
async def test_verify_video_access_missing(pipeline_service):
    with pytest.raises(NotFoundError):
        await verify_video_access("missing", {"user_id": USER_ID}, pipeline_service)


@pytest.mark.asyncio
async def test_verify_workspace_access_other_user(pipeline_service):
    with pytest.raises(AccessDeniedError):
        await verify_workspace_access("ws-1", {"user_id": "someone-else"}, pipeline_service)
