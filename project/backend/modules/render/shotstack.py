"""
Shotstack render client.

submit(edit) -> render id; get_status(render id) -> status and URL.
"""

from typing import Any, Dict, Optional

import httpx

from shared.config import settings
from shared.errors import RetryableError, ServiceNotConfiguredError
from shared.logging import get_logger
from shared.retry import retry_with_backoff

logger = get_logger("render.shotstack")

SHOTSTACK_BASE_URL = "https://api.shotstack.io/edit"


class ShotstackClient:
    """Thin async client for the Shotstack Edit API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        env: Optional[str] = None,
        timeout: float = 30.0
    ):
        self.api_key = api_key if api_key is not None else settings.shotstack_api_key
        self.base_url = f"{SHOTSTACK_BASE_URL}/{env or settings.shotstack_env}"
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.is_configured:
            raise ServiceNotConfiguredError(
                "Render service not configured: set SHOTSTACK_API_KEY", code="RENDER_NOT_CONFIGURED"
            )
        headers = {"x-api-key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                response = await client.request(method, path, json=json, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise RetryableError(
                f"Shotstack API error: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RetryableError(f"Shotstack request failed: {str(e)}") from e

    async def submit(self, edit: Dict[str, Any]) -> str:
        """
        Queue a render.

        Returns:
            Render ID
        """
        tracks = edit.get("timeline", {}).get("tracks", [])
        logger.info(
            "Submitting render",
            extra={"track_count": len(tracks), "clip_count": sum(len(t.get("clips", [])) for t in tracks)}
        )
        body = await self._request("POST", "/render", json=edit)
        render_id = (body.get("response") or {}).get("id")
        if not render_id:
            raise RetryableError(f"Shotstack did not return a render id: {body.get('message')}")
        return render_id

    @retry_with_backoff(max_attempts=3, base_delay=1)
    async def get_status(self, render_id: str) -> Dict[str, Any]:
        """
        Fetch render status.

        Returns:
            Dict with status, url (when done) and error (when failed)
        """
        body = await self._request("GET", f"/render/{render_id}")
        response = body.get("response") or {}
        return {
            "id": response.get("id", render_id),
            "status": response.get("status", "queued"),
            "url": response.get("url"),
            "error": response.get("error"),
        }
