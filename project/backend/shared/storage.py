"""
Storage utilities.

Bunny CDN storage client: put(path, bytes) -> public URL, delete(path).
"""

import re
from typing import Optional
from urllib.parse import urlparse

import httpx

from shared.config import settings
from shared.errors import RetryableError, ServiceNotConfiguredError
from shared.logging import get_logger

logger = get_logger("storage")


def normalize_path(path: str) -> str:
    """Use forward slashes and strip leading slashes."""
    return path.replace("\\", "/").lstrip("/")


def safe_segment(value: str) -> str:
    """Reduce a path segment to letters, digits, dash and underscore."""
    cleaned = re.sub(r"[^a-zA-Z0-9\-_ ]", "", value).strip()
    return re.sub(r"\s+", "_", cleaned)


def safe_filename(filename: str) -> str:
    """Replace characters that are unsafe in storage object names."""
    return re.sub(r"[^a-zA-Z0-9\-_.]", "_", filename)


class StorageClient:
    """Bunny CDN storage client."""

    def __init__(
        self,
        storage_zone: Optional[str] = None,
        api_key: Optional[str] = None,
        cdn_url: Optional[str] = None,
        region: Optional[str] = None,
        timeout: float = 60.0
    ):
        self.storage_zone = storage_zone if storage_zone is not None else settings.bunny_storage_zone
        self.api_key = api_key if api_key is not None else settings.bunny_storage_api_key
        self.cdn_url = (cdn_url if cdn_url is not None else settings.bunny_cdn_url or "").rstrip("/")
        region = region if region is not None else settings.bunny_storage_region
        self.api_url = (
            f"https://{region}.storage.bunnycdn.com" if region else "https://storage.bunnycdn.com"
        )
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.storage_zone and self.api_key and self.cdn_url)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ServiceNotConfiguredError(
                "Storage not configured: set BUNNY_STORAGE_ZONE, BUNNY_STORAGE_API_KEY and BUNNY_CDN_URL",
                code="STORAGE_NOT_CONFIGURED"
            )

    def _object_url(self, path: str) -> str:
        return f"{self.api_url}/{self.storage_zone}/{normalize_path(path)}"

    def public_url(self, path: str) -> str:
        """CDN URL for a stored object."""
        return f"{self.cdn_url}/{normalize_path(path)}"

    def path_from_url(self, url: str) -> Optional[str]:
        """
        Recover the storage path from a CDN URL.

        Returns:
            The object path, or None if the URL is not served by this CDN
        """
        if not self.cdn_url or not isinstance(url, str) or not url.startswith(self.cdn_url + "/"):
            return None
        path = urlparse(url[len(self.cdn_url):]).path
        return normalize_path(path) or None

    async def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Upload bytes to storage.

        Args:
            path: Destination path inside the storage zone
            data: File content
            content_type: Optional MIME type

        Returns:
            Public CDN URL of the uploaded object

        Raises:
            ServiceNotConfiguredError: If storage credentials are missing
            RetryableError: If the upload fails
        """
        self._require_configured()
        headers = {"AccessKey": self.api_key}
        if content_type:
            headers["Content-Type"] = content_type

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.put(self._object_url(path), content=data, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to upload {path}: {str(e)}", extra={"path": path})
            raise RetryableError(f"Failed to upload file to storage: {str(e)}") from e

        logger.info(
            "Uploaded file to storage",
            extra={"path": normalize_path(path), "size_kb": round(len(data) / 1024, 2)}
        )
        return self.public_url(path)

    async def delete(self, path: str) -> None:
        """
        Delete an object. Missing objects are ignored.

        Raises:
            ServiceNotConfiguredError: If storage credentials are missing
            RetryableError: If the delete fails
        """
        self._require_configured()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.delete(
                    self._object_url(path), headers={"AccessKey": self.api_key}
                )
                if response.status_code != 404:
                    response.raise_for_status()
        except httpx.HTTPError as e:
            raise RetryableError(f"Failed to delete file from storage: {str(e)}") from e


# Singleton instance
storage = StorageClient()
