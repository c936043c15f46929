"""
Mock Image Host

Simulates an image CDN for development.
Nothing leaves the machine; uploads get a fake CDN URL and are kept in memory.
"""

import uuid
import logging
from pathlib import Path

from menuqr.services.storage.base import BaseImageHost, UploadResult

logger = logging.getLogger(__name__)

MOCK_CDN_URL = "https://mock-cdn.menuqr.local"


class MockImageHost(BaseImageHost):
    """Mock image host for development."""

    def __init__(self, fail_uploads: bool = False):
        self.fail_uploads = fail_uploads
        self.hosted: dict[str, int] = {}  # public_id -> size in bytes
        self.destroyed: list[str] = []
        logger.info("MockImageHost initialized")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def upload(self, data: bytes, filename: str, folder: str) -> UploadResult:
        if self.fail_uploads:
            logger.warning(f"Mock upload failed (simulated) for {filename}")
            return UploadResult(success=False, error_message="Simulated upload failure")

        extension = Path(filename).suffix.lstrip(".").lower() or "jpg"
        public_id = f"{folder}/{uuid.uuid4().hex[:16]}"
        self.hosted[public_id] = len(data)

        secure_url = f"{MOCK_CDN_URL}/image/upload/{public_id}.{extension}"
        logger.info(f"Mock upload: {filename} ({len(data)} bytes) -> {public_id}")

        return UploadResult(success=True, secure_url=secure_url, public_id=public_id)

    async def destroy(self, public_id: str) -> bool:
        self.destroyed.append(public_id)
        removed = self.hosted.pop(public_id, None) is not None
        logger.info(f"Mock destroy: {public_id} (found={removed})")
        return removed

    async def health_check(self) -> bool:
        return True
