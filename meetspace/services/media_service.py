"""
Image uploads to Cloudinary.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict

import cloudinary
import cloudinary.uploader
from tenacity import retry, stop_after_attempt, wait_exponential

from ..core.config import config
from ..core.exceptions import ConfigurationError, ProviderError, ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp", "image/gif"}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_FOLDERS = {"event_covers", "speakers", "avatars", "sponsors", "general"}
UPLOAD_TRANSFORMATION = [
    {"width": 1200, "crop": "limit"},
    {"quality": "auto:good"},
]
UPLOAD_TIMEOUT_SECONDS = 60


class MediaService:
    """
    Validates images and stores them in Cloudinary.
    The Cloudinary SDK is blocking, so calls run in the default executor.
    """

    def __init__(self):
        self._configured = False

    async def _ensure_configured(self):
        if self._configured:
            return
        settings = await config.get_cloudinary_config()
        if not all(settings.values()):
            raise ConfigurationError("Image storage is not configured", code="CLOUDINARY_CONFIG_MISSING")
        cloudinary.config(
            cloud_name=settings["cloud_name"],
            api_key=settings["api_key"],
            api_secret=settings["api_secret"],
            secure=True
        )
        self._configured = True

    def validate(self, content_type: str, size: int, folder: str):
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationFailed(
                "Invalid file type. Only JPEG, PNG, WebP and GIF images are allowed.",
                code="INVALID_FILE_TYPE"
            )
        if size > MAX_UPLOAD_BYTES:
            raise ValidationFailed("File is too large. Maximum size is 5MB.", code="FILE_TOO_LARGE")
        if folder not in ALLOWED_FOLDERS:
            raise ValidationFailed(
                f"Invalid folder '{folder}'",
                code="INVALID_FOLDER",
                details={"allowed": sorted(ALLOWED_FOLDERS)}
            )

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=2, min=2, max=8), reraise=True)
    async def _upload(self, data: bytes, folder: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(
            cloudinary.uploader.upload,
            data,
            folder=f"meetspace/{folder}",
            resource_type="image",
            transformation=UPLOAD_TRANSFORMATION,
            timeout=UPLOAD_TIMEOUT_SECONDS
        ))

    async def upload_image(self, data: bytes, content_type: str, folder: str = "general") -> Dict[str, Any]:
        """
        Validate and upload an image.

        Returns:
            Dict with url, public_id, width, height and format

        Raises:
            ValidationFailed: wrong type, too large or unknown folder
            ConfigurationError: Cloudinary credentials missing
            ProviderError: upload failed after retries
        """
        self.validate(content_type, len(data), folder)
        await self._ensure_configured()

        try:
            result = await self._upload(data, folder)
        except Exception as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise ProviderError(f"Image upload failed: {e}", code="UPLOAD_FAILED")

        logger.info(f"Uploaded image {result.get('public_id')} to folder {folder}")
        return {
            "url": result.get("secure_url"),
            "public_id": result.get("public_id"),
            "width": result.get("width"),
            "height": result.get("height"),
            "format": result.get("format"),
        }

    async def delete_image(self, public_id: str) -> bool:
        """Remove an uploaded image; True when Cloudinary reports it deleted."""
        await self._ensure_configured()
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, cloudinary.uploader.destroy, public_id)
        except Exception as e:
            logger.error(f"Cloudinary delete failed for {public_id}: {e}")
            raise ProviderError(f"Image delete failed: {e}", code="DELETE_FAILED")
        return result.get("result") == "ok"


# Global media service instance
media_service = MediaService()
