"""
Dish image lifecycle: upload (local mirror + image host + DB row) and
removal in the reverse order.
"""

import logging
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.models import Dish, DishImage, DishRating, OrderItem
from menuqr.services.storage import (
    BaseImageHost,
    remove_local_copy,
    save_local_copy,
)

logger = logging.getLogger(__name__)

DISH_IMAGE_FOLDER = "dish_images"


class ImageUploadError(RuntimeError):
    """The image host rejected an upload."""


async def attach_image(
    db: AsyncSession,
    image_host: BaseImageHost,
    dish_id: int,
    data: bytes,
    filename: str,
) -> DishImage:
    """
    Mirror the file locally, push it to the image host and record it.

    The local copy is removed again if the host rejects the upload.
    Caller commits, and calls `discard_upload` if that commit fails.
    """
    local_path = save_local_copy(data, f"dish_{dish_id}", filename)

    uploaded = await image_host.upload(data, filename, DISH_IMAGE_FOLDER)
    if not uploaded.success:
        remove_local_copy(local_path)
        raise ImageUploadError(uploaded.error_message or "Image host rejected the upload")

    image = DishImage(
        dish_id=dish_id,
        image_url=uploaded.secure_url,
        public_id=uploaded.public_id,
        local_path=local_path,
    )
    try:
        db.add(image)
        await db.flush()
    except Exception:
        await discard_upload(image_host, uploaded.public_id, local_path)
        raise

    logger.info(f"Image {uploaded.public_id} attached to dish #{dish_id}")
    return image


async def discard_upload(image_host: BaseImageHost, public_id: str, local_path: str) -> None:
    """Undo an upload whose DB row never made it."""
    await image_host.destroy(public_id)
    remove_local_copy(local_path)
    logger.warning(f"Discarded upload {public_id}")


async def release_image(image_host: BaseImageHost, image: DishImage) -> None:
    """Destroy the hosted copy and the local mirror of one image row."""
    if image.public_id:
        await image_host.destroy(image.public_id)
    remove_local_copy(image.local_path)


async def delete_dishes(
    db: AsyncSession,
    image_host: BaseImageHost,
    dish_ids: Iterable[int],
) -> int:
    """
    Delete dishes together with their images, ratings and order lines.

    Hosted images and local copies go first. Caller commits.

    Returns:
        Number of dishes deleted
    """
    dish_ids = list(dish_ids)
    if not dish_ids:
        return 0

    result = await db.execute(select(DishImage).where(DishImage.dish_id.in_(dish_ids)))
    for image in result.scalars().all():
        await release_image(image_host, image)

    await db.execute(delete(DishImage).where(DishImage.dish_id.in_(dish_ids)))
    await db.execute(delete(DishRating).where(DishRating.dish_id.in_(dish_ids)))
    await db.execute(delete(OrderItem).where(OrderItem.dish_id.in_(dish_ids)))
    result = await db.execute(delete(Dish).where(Dish.id.in_(dish_ids)))

    logger.info(f"Deleted {result.rowcount} dish(es): {dish_ids}")
    return result.rowcount
