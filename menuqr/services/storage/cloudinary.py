"""
Cloudinary Image Host

Production implementation using the official Cloudinary Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET
"""

import asyncio
import io
import logging

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from menuqr.core.config import get_settings
from menuqr.services.storage.base import BaseImageHost, UploadResult

logger = logging.getLogger(__name__)


class CloudinaryImageHost(BaseImageHost):
    """
    Production image host backed by Cloudinary.

    The SDK is synchronous, so every call runs in a worker thread.
    """

    def __init__(self):
        settings = get_settings()

        if not all([
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        ]):
            raise ValueError(
                "CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET "
                "are required for production mode."
            )

        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )
        logger.info(f"CloudinaryImageHost initialized (cloud={settings.cloudinary_cloud_name})")

    @property
    def provider_name(self) -> str:
        return "cloudinary"

    async def upload(self, data: bytes, filename: str, folder: str) -> UploadResult:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                folder=folder,
                resource_type="image",
            )
            logger.info(f"Uploaded {filename} to Cloudinary: {result['public_id']}")
            return UploadResult(
                success=True,
                secure_url=result["secure_url"],
                public_id=result["public_id"],
            )

        except CloudinaryError as e:
            logger.error(f"Cloudinary upload error for {filename}: {e}")
            return UploadResult(success=False, error_message=str(e))

    async def destroy(self, public_id: str) -> bool:
        try:
            result = await asyncio.to_thread(cloudinary.uploader.destroy, public_id)
        except CloudinaryError as e:
            logger.error(f"Cloudinary destroy error for {public_id}: {e}")
            return False

        removed = result.get("result") == "ok"
        if not removed:
            logger.warning(f"Cloudinary did not remove {public_id}: {result}")
        return removed

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(cloudinary.api.ping)
            return True
        except Exception as e:
            logger.error(f"Cloudinary health check failed: {e}")
            return False
