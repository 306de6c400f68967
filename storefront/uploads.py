"""Image uploads to the hosted file service (Cloudinary unsigned upload)."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import Settings, settings as default_settings
from .exceptions import UploadError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

ALLOWED_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
})

@dataclass
class ImageBlob:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

def validate_image(blob: ImageBlob) -> None:
    if blob.size > MAX_UPLOAD_BYTES:
        raise UploadError(UploadError.SIZE, "File size must be less than 10MB")
    if blob.content_type not in ALLOWED_IMAGE_TYPES:
        raise UploadError(UploadError.TYPE, "Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed")

def _json_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

def _error_message(response: httpx.Response) -> Optional[str]:
    error = _json_body(response).get("error")
    return error.get("message") if isinstance(error, dict) else None

class ImageUploader:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.transport = transport

    @property
    def upload_path(self) -> str:
        return f"/{self.settings.CLOUDINARY_CLOUD_NAME}/image/upload"

    def _get_async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.UPLOAD_BASE_URL,
            timeout=self.settings.UPLOAD_TIMEOUT,
            transport=self.transport,
        )

    async def upload(self, blob: ImageBlob) -> str:
        """Upload an image and return its public URL.

        Raises:
            UploadError: reason "size" or "type" before any request is made,
                "transport" when the request fails or no URL comes back.
        """
        validate_image(blob)

        try:
            async with self._get_async_client() as client:
                response = await client.post(
                    self.upload_path,
                    data={"upload_preset": self.settings.CLOUDINARY_UPLOAD_PRESET},
                    files={"file": (blob.filename, blob.data, blob.content_type)},
                )
        except httpx.RequestError as e:
            logger.error("Upload of %s failed: %s", blob.filename, e)
            raise UploadError(UploadError.TRANSPORT, f"Upload failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.error("Upload of %s rejected with status %s: %s", blob.filename, response.status_code, message)
            raise UploadError(
                UploadError.TRANSPORT,
                message or f"Upload failed with status {response.status_code}",
            )

        url = _json_body(response).get("secure_url")
        if not url:
            raise UploadError(UploadError.TRANSPORT, "No secure URL returned from upload service")
        return url
