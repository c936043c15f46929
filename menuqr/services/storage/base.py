"""
Image Host Abstract Base Class

Defines the interface for hosting dish images and restaurant logos.
Supports both Mock (development) and Cloudinary (production) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class UploadResult:
    """
    Result from an image upload.

    Attributes:
        success: Whether the host accepted the file
        secure_url: Public HTTPS URL of the hosted image
        public_id: Host identifier, needed to destroy the image later
        error_message: Human-readable error if failed
    """
    success: bool
    secure_url: Optional[str] = None
    public_id: Optional[str] = None
    error_message: Optional[str] = None


class BaseImageHost(ABC):
    """Abstract base class for image hosts."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def upload(self, data: bytes, filename: str, folder: str) -> UploadResult:
        """
        Upload raw image bytes.

        Args:
            data: File contents
            filename: Original client filename (used for the extension)
            folder: Host folder, e.g. "dish_images" or "restaurant_logos"
        """
        pass

    @abstractmethod
    async def destroy(self, public_id: str) -> bool:
        """Delete a hosted image. Returns True if the host removed it."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
