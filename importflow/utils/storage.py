"""
Screenshot uploads to Google Cloud Storage.

Object paths are derived from the delivery id, so a redelivered event that
re-uploads the same group overwrites its own objects.
"""

import logging
import re

from google.cloud import storage

from importflow import config
from importflow.intake.errors import StorageUploadError
from importflow.utils.media import file_extension

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^\w\-]+")


def screenshot_path(
    organization_id: str,
    delivery_id: str,
    index: int,
    customer_name: str,
    content_type: str,
) -> str:
    """Object path: screenshots/<org>/<delivery>_<index>_<customer>.<ext>"""
    slug = _UNSAFE.sub("_", customer_name.strip()).strip("_") or "customer"
    ext = file_extension(content_type)
    return f"screenshots/{organization_id}/{delivery_id}_{index}_{slug}.{ext}"


class ScreenshotStorage:
    """Uploads screenshot bytes and returns durable URLs."""

    def __init__(self, bucket_name: str | None = None, client: storage.Client | None = None):
        self.bucket_name = bucket_name or config.STORAGE_BUCKET
        self._client = client

    def _bucket(self) -> storage.Bucket:
        if not self.bucket_name:
            raise StorageUploadError("STORAGE_BUCKET is not configured")
        if self._client is None:
            self._client = storage.Client()
        return self._client.bucket(self.bucket_name)

    def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """
        Upload bytes to ``path`` and return the public object URL.

        Raises:
            StorageUploadError: If the bucket is not configured or the upload fails
        """
        bucket = self._bucket()
        blob = bucket.blob(path)
        if metadata:
            blob.metadata = metadata
        try:
            blob.upload_from_string(content, content_type=content_type)
        except Exception as e:
            logger.error(f"Screenshot upload to {path} failed: {e}")
            raise StorageUploadError(f"Failed to upload {path}: {e}") from e

        return f"https://storage.googleapis.com/{self.bucket_name}/{path}"
