"""Uploaded image storage.

Images are written to the uploads directory under a random name that keeps
the original suffix, and served back from ``/uploads/<filename>``.
"""

import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

UPLOADS_URL_PATH = "/uploads"

# Suffixes kept on stored files; anything else is stored without one
_ALLOWED_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp", ".ico", ".avif"}


class UploadError(ValueError):
    """Rejected upload."""


class UploadTooLargeError(UploadError):
    """Upload exceeds the configured size limit."""

    def __init__(self, limit: int):
        super().__init__(f"File too large (limit is {limit // (1024 * 1024)}MB)")
        self.limit = limit


class ImageStore:
    """Writes uploaded images to disk and builds their public URLs."""

    def __init__(self, directory: Path, base_url: str, max_bytes: int):
        self.directory = Path(directory)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def ensure_directory(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def url_for(self, filename: str) -> str:
        return f"{self.base_url}{UPLOADS_URL_PATH}/{filename}"

    def save(self, data: bytes, original_name: str | None, content_type: str | None) -> str:
        """Validate and store an image. Returns the stored filename.

        Raises:
            UploadError: If the upload is empty or not an image
            UploadTooLargeError: If the upload exceeds ``max_bytes``
        """
        if not data:
            raise UploadError("No file uploaded")
        if len(data) > self.max_bytes:
            raise UploadTooLargeError(self.max_bytes)
        if not content_type or not content_type.startswith("image/"):
            raise UploadError(f"Only image uploads are accepted (got {content_type or 'unknown'})")

        suffix = Path(original_name or "").suffix.lower()
        if suffix not in _ALLOWED_SUFFIXES:
            suffix = ""
        filename = f"{uuid.uuid4().hex}{suffix}"

        path = self.ensure_directory() / filename
        path.write_bytes(data)
        logger.info(f"Stored upload {filename} ({len(data)} bytes)")
        return filename
