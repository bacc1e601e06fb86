"""
Carrier media download.

Twilio media URLs are signed and expire quickly, so the dispatcher calls
``MediaFetcher.fetch`` for every reference as soon as an event arrives,
before any correlation decision.
"""

import logging
from dataclasses import dataclass

import requests

from importflow import config
from importflow.intake.errors import MediaFetchError
from importflow.models.webhook import MediaRef

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class FetchedMedia:
    """Downloaded media bytes with their MIME type."""

    content: bytes
    content_type: str


def detect_image_mime_type(image_bytes: bytes) -> str | None:
    """MIME type from image magic bytes, or None if unrecognized."""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    elif image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    elif image_bytes.startswith(b"GIF87a") or image_bytes.startswith(b"GIF89a"):
        return "image/gif"
    elif image_bytes.startswith(b"RIFF") and b"WEBP" in image_bytes[:20]:
        return "image/webp"
    return None


def file_extension(content_type: str) -> str:
    """File extension for a MIME type (jpg when unknown)."""
    base = content_type.split(";", 1)[0].strip().lower()
    return _EXTENSIONS.get(base, "jpg")


class MediaFetcher:
    """Downloads carrier media with account credentials and a timeout."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.account_sid = account_sid if account_sid is not None else config.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else config.TWILIO_AUTH_TOKEN
        self.timeout = timeout if timeout is not None else config.MEDIA_FETCH_TIMEOUT_SECONDS
        self._http = session or requests.Session()

    def fetch(self, media: MediaRef) -> FetchedMedia:
        """
        Download one media reference.

        Args:
            media: Media URL and declared content type

        Returns:
            FetchedMedia with raw bytes and the served content type

        Raises:
            MediaFetchError: On missing credentials, network errors,
                non-2xx responses or empty bodies
        """
        if not self.account_sid or not self.auth_token:
            raise MediaFetchError(media.url, "carrier credentials not configured")

        try:
            response = self._http.get(
                media.url,
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise MediaFetchError(media.url, str(e)) from e

        if not response.ok:
            logger.warning(
                f"Media download failed with status {response.status_code}",
                extra={"json_fields": {"body": response.text[:200]}},
            )
            raise MediaFetchError(
                media.url, f"HTTP {response.status_code} {response.reason}"
            )

        if not response.content:
            raise MediaFetchError(media.url, "empty response body")

        served_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip()
        if served_type.startswith("image/"):
            content_type = served_type
        else:
            content_type = detect_image_mime_type(response.content) or media.content_type

        return FetchedMedia(content=response.content, content_type=content_type)
