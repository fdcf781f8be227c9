"""
Validation utilities.

Shared validation utilities for request input (uploads, free text).
"""

import mimetypes
from typing import Optional

from shared.errors import ValidationError

IMAGE_SIGNATURES = {
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"\xff\xd8\xff": "image/jpeg",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
}

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}


def detect_image_type(header: bytes) -> Optional[str]:
    """
    Detect an image MIME type from its leading bytes.

    Args:
        header: First bytes of the file (12 are enough)

    Returns:
        MIME type, or None if the bytes are not a supported image
    """
    for signature, mime_type in IMAGE_SIGNATURES.items():
        if header.startswith(signature):
            return mime_type
    # WebP: RIFF....WEBP
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    return None


def validate_image_file(
    data: bytes,
    filename: Optional[str] = None,
    max_size_mb: int = 10
) -> str:
    """
    Validate an uploaded image.

    Args:
        data: File content
        filename: Original filename (used when the signature is inconclusive)
        max_size_mb: Maximum file size in MB (default: 10)

    Returns:
        The detected MIME type

    Raises:
        ValidationError: If the file is empty, too large, or not an image
    """
    if data is None or len(data) == 0:
        raise ValidationError("File is empty")

    validate_file_size(len(data), max_size_mb * 1024 * 1024)

    mime_type = detect_image_type(data[:12])
    if mime_type is None and filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed in ALLOWED_IMAGE_TYPES:
            mime_type = guessed

    if mime_type is None:
        raise ValidationError("Invalid image format. Supported formats: PNG, JPEG, WEBP, GIF")
    return mime_type


def validate_text(
    value: Optional[str],
    field: str,
    min_length: int = 1,
    max_length: Optional[int] = None
) -> str:
    """
    Validate a free-text field and return it stripped.

    Raises:
        ValidationError: If the value is missing or outside the length bounds
    """
    if value is None or not isinstance(value, str):
        raise ValidationError(f"{field} is required", missing=[field])

    length = len(value.strip())
    if length < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters long (current: {length})",
            missing=[field]
        )
    if max_length is not None and length > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters long (current: {length})"
        )
    return value.strip()


def validate_file_size(
    file_size_bytes: int,
    max_size_bytes: int
) -> None:
    """
    Validate file size.

    Args:
        file_size_bytes: File size in bytes
        max_size_bytes: Maximum allowed size in bytes

    Raises:
        ValidationError: If file size exceeds maximum
    """
    if file_size_bytes < 0:
        raise ValidationError("File size cannot be negative")

    if file_size_bytes > max_size_bytes:
        max_size_mb = max_size_bytes / (1024 * 1024)
        file_size_mb = file_size_bytes / (1024 * 1024)
        raise ValidationError(
            f"File size ({file_size_mb:.2f} MB) exceeds maximum "
            f"of {max_size_mb:.2f} MB"
        )
