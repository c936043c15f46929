"""
Local mirror of uploaded images.

Every upload is written to UPLOAD_DIRECTORY before it is sent to the
image host, and removed from disk when the hosted copy is destroyed.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from menuqr.core.config import get_settings

logger = logging.getLogger(__name__)


def _upload_dir() -> Path:
    directory = Path(get_settings().upload_directory)
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created upload directory: {directory}")
    return directory


def save_local_copy(data: bytes, prefix: str, original_filename: str) -> str:
    """
    Write bytes as ``<prefix>_<epoch ms>.<ext>`` and return the path.

    Example:
        >>> save_local_copy(b"...", "dish_12", "pasta.png")
        'uploads/dish_12_1736071200000.png'
    """
    extension = Path(original_filename or "").suffix.lstrip(".").lower() or "jpg"
    filename = f"{prefix}_{int(time.time() * 1000)}.{extension}"
    path = _upload_dir() / filename
    path.write_bytes(data)
    logger.debug(f"Saved local copy: {path}")
    return str(path)


def remove_local_copy(path: Optional[str]) -> bool:
    """Delete a mirrored file if it still exists."""
    if not path:
        return False
    file_path = Path(path)
    if not file_path.exists():
        return False
    try:
        file_path.unlink()
    except OSError as e:
        logger.warning(f"Could not remove {file_path}: {e}")
        return False
    logger.debug(f"Removed local copy: {file_path}")
    return True
