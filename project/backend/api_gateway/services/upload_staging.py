"""
Temporary upload staging.

Images uploaded before they are attached to a project are held in memory
and evicted by age from a periodic sweep, whether or not they were used.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from shared.config import settings
from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger
from shared.validation import validate_image_file

logger = get_logger("upload_staging")

UPLOAD_CATEGORIES = ("product", "character", "logo", "style")


@dataclass
class TempUpload:
    temp_id: str
    filename: str
    content_type: str
    data: bytes
    category: str
    created_at: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)

    def to_response(self) -> Dict[str, object]:
        return {
            "tempId": self.temp_id,
            "filename": self.filename,
            "contentType": self.content_type,
            "size": self.size,
            "category": self.category,
        }


class TempUploadStore:
    """Time-bounded in-memory map of staged uploads."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        sweep_interval_seconds: Optional[int] = None,
        max_size_mb: Optional[int] = None,
        clock=time.time
    ):
        self.ttl_seconds = ttl_seconds or settings.upload_ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds or settings.upload_sweep_interval_seconds
        self.max_size_mb = max_size_mb or settings.upload_max_size_mb
        self._clock = clock
        self._uploads: Dict[str, TempUpload] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._uploads)

    def add(self, filename: str, data: bytes, category: str = "product") -> TempUpload:
        """
        Validate and stage an image.

        Raises:
            ValidationError: If the category is unknown or the file is not an acceptable image
        """
        if category not in UPLOAD_CATEGORIES:
            raise ValidationError(
                f"Unknown upload category '{category}'. Expected one of: {', '.join(UPLOAD_CATEGORIES)}"
            )
        content_type = validate_image_file(data, filename, max_size_mb=self.max_size_mb)
        upload = TempUpload(
            temp_id=str(uuid.uuid4()),
            filename=filename or "upload",
            content_type=content_type,
            data=data,
            category=category,
            created_at=self._clock(),
        )
        self._uploads[upload.temp_id] = upload
        logger.info(
            "Staged upload",
            extra={"temp_id": upload.temp_id, "category": category, "size": upload.size}
        )
        return upload

    def get(self, temp_id: str) -> TempUpload:
        """
        Raises:
            NotFoundError: If the upload does not exist or has expired
        """
        upload = self._uploads.get(temp_id)
        if upload is None:
            raise NotFoundError(f"Temporary upload {temp_id} not found or expired")
        return upload

    def remove(self, temp_id: str) -> bool:
        return self._uploads.pop(temp_id, None) is not None

    def sweep(self) -> int:
        """Evict entries older than the TTL. Returns how many were removed."""
        cutoff = self._clock() - self.ttl_seconds
        expired = [temp_id for temp_id, upload in self._uploads.items() if upload.created_at < cutoff]
        for temp_id in expired:
            del self._uploads[temp_id]
        if expired:
            logger.info("Swept expired uploads", extra={"removed": len(expired), "remaining": len(self._uploads)})
        return len(expired)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None


# Singleton instance
temp_uploads = TempUploadStore()
