"""
Image Host Factory

Returns Mock or Cloudinary image host based on ENV_MODE.
"""

import logging
from functools import lru_cache

from menuqr.core.config import get_settings
from menuqr.services.storage.base import BaseImageHost, UploadResult
from menuqr.services.storage.mock import MockImageHost
from menuqr.services.storage.cloudinary import CloudinaryImageHost
from menuqr.services.storage.local import save_local_copy, remove_local_copy

logger = logging.getLogger(__name__)


@lru_cache()
def get_image_host() -> BaseImageHost:
    """Get the configured image host."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Image Host: Using MockImageHost (development mode)")
        return MockImageHost()
    else:
        logger.info(f"Image Host: Using CloudinaryImageHost ({settings.env_mode.value} mode)")
        return CloudinaryImageHost()


def reset_image_host() -> None:
    """Clear the cached host instance."""
    get_image_host.cache_clear()


__all__ = [
    "get_image_host",
    "reset_image_host",
    "BaseImageHost",
    "UploadResult",
    "MockImageHost",
    "save_local_copy",
    "remove_local_copy",
]
