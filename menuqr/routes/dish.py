"""
Dish routes: CRUD, search, bulk insert and image management.

Literal paths are declared before /{dish_id}.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.config import get_settings
from menuqr.core.errors import server_error
from menuqr.database import get_db
from menuqr.dependencies import get_current_restaurant, get_image_host
from menuqr.models import Dish, DishImage, Menu, Section
from menuqr.schemas import (
    BulkDishCreateRequest,
    DishCreateRequest,
    DishDeleteRequest,
    DishImageRemoveRequest,
    DishUpdateRequest,
)
from menuqr.services.dish_images import (
    ImageUploadError,
    attach_image,
    delete_dishes,
    discard_upload,
    release_image,
)
from menuqr.services.storage import BaseImageHost

logger = logging.getLogger(__name__)

router = APIRouter()


def dish_to_dict(dish: Dish, **extra: Any) -> dict[str, Any]:
    return {
        "id": dish.id,
        "name": dish.name,
        "description": dish.description,
        "price": dish.price,
        "section_id": dish.section_id,
        "menu_id": dish.menu_id,
        **extra,
    }


async def _require(db: AsyncSession, model, obj_id: int, error: str):
    obj = await db.get(model, obj_id)
    if obj is None:
        raise HTTPException(status_code=404, detail=error)
    return obj


async def read_image_upload(upload: UploadFile) -> bytes:
    """Read a multipart image, enforcing type and the configured size limit."""
    settings = get_settings()

    if upload.content_type and not upload.content_type.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail={"error": "Image upload failed", "details": "Only image files are accepted"},
        )

    data = await upload.read()
    if not data:
        raise HTTPException(
            status_code=400,
            detail={"error": "Image upload failed", "details": "Empty file"},
        )
    if len(data) > settings.max_upload_size_bytes:
        limit_mb = settings.max_upload_size_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=400,
            detail={"error": "Image upload failed", "details": f"File too large (max {limit_mb} MB)"},
        )
    return data


@router.get("/search")
async def search_dishes(
    query: Optional[str] = Query(None),
    section_id: Optional[int] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Search dishes across all menus by text, section and price range."""
    stmt = (
        select(Dish, Section.name, Menu.name, Menu.date)
        .join(Section, Dish.section_id == Section.id)
        .join(Menu, Dish.menu_id == Menu.id)
    )

    if query:
        pattern = f"%{query}%"
        stmt = stmt.where(or_(Dish.name.ilike(pattern), Dish.description.ilike(pattern)))
    if section_id is not None:
        stmt = stmt.where(Dish.section_id == section_id)
    if min_price is not None:
        stmt = stmt.where(Dish.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(Dish.price <= max_price)

    result = await db.execute(stmt.order_by(Dish.name, Dish.id))
    return [
        dish_to_dict(
            dish,
            section_name=section_name,
            menu_name=menu_name,
            menu_date=menu_date.isoformat(),
        )
        for dish, section_name, menu_name, menu_date in result.all()
    ]


@router.post("/add", status_code=status.HTTP_201_CREATED)
async def add_dish(
    body: DishCreateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    await _require(db, Menu, body.menu_id, "Menu not found")
    await _require(db, Section, body.section_id, "Section not found")

    dish = Dish(**body.model_dump())
    try:
        db.add(dish)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating dish: {e}")
        raise server_error("Failed to create dish", e)

    return {"message": "Dish created successfully", "dish_id": dish.id}


@router.get("/menus/{menu_id}/dishes")
async def dishes_by_menu(menu_id: int, db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    result = await db.execute(
        select(Dish, Section.name)
        .join(Section, Dish.section_id == Section.id)
        .where(Dish.menu_id == menu_id)
        .order_by(Section.name, Dish.name, Dish.id)
    )
    return [dish_to_dict(dish, section_name=name) for dish, name in result.all()]


@router.post("/modify")
async def modify_dish(
    body: DishUpdateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    dish = await _require(db, Dish, body.dish_id, "Dish not found")
    await _require(db, Section, body.section_id, "Section not found")

    dish.name = body.name
    dish.description = body.description
    dish.price = body.price
    dish.section_id = body.section_id
    await db.commit()

    return {"message": "Dish updated successfully"}


@router.post("/delete")
async def delete_dish(
    body: DishDeleteRequest,
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Delete a dish; hosted images and local copies are destroyed first."""
    await _require(db, Dish, body.dish_id, "Dish not found")

    try:
        await delete_dishes(db, image_host, [body.dish_id])
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error deleting dish #{body.dish_id}: {e}")
        raise server_error("Failed to delete dish", e)

    return {"message": "Dish deleted successfully"}


@router.post("/image/upload", status_code=status.HTTP_201_CREATED)
async def upload_dish_image(
    dish_id: int = Form(...),
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    data = await read_image_upload(image)
    await _require(db, Dish, dish_id, "Dish not found")

    stored = None
    try:
        stored = await attach_image(db, image_host, dish_id, data, image.filename or "image")
        public_id, local_path = stored.public_id, stored.local_path
        await db.commit()
    except ImageUploadError as e:
        await db.rollback()
        logger.error(f"Image host rejected upload for dish #{dish_id}: {e}")
        raise server_error("Failed to upload dish image", e)
    except Exception as e:
        await db.rollback()
        if stored is not None:
            await discard_upload(image_host, public_id, local_path)
        logger.exception(f"Error uploading image for dish #{dish_id}: {e}")
        raise server_error("Failed to upload dish image", e)

    return {
        "message": "Dish image uploaded successfully",
        "cloudinary_url": stored.image_url,
        "local_path": stored.local_path,
    }


@router.post("/image/remove")
async def remove_dish_image(
    body: DishImageRemoveRequest,
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    result = await db.execute(
        select(DishImage).where(
            DishImage.dish_id == body.dish_id,
            DishImage.image_url == body.image_url,
        )
    )
    images = result.scalars().all()
    if not images:
        raise HTTPException(status_code=404, detail="Image not found")

    try:
        for stored in images:
            await release_image(image_host, stored)
            await db.delete(stored)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error removing image from dish #{body.dish_id}: {e}")
        raise server_error("Failed to remove dish image", e)

    return {"message": "Dish image removed successfully"}


@router.post("/bulk_add", status_code=status.HTTP_201_CREATED)
async def bulk_add_dishes(
    body: BulkDishCreateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Insert several dishes on one menu in a single transaction."""
    await _require(db, Menu, body.menu_id, "Menu not found")

    try:
        for item in body.dishes:
            db.add(Dish(menu_id=body.menu_id, **item.model_dump()))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error bulk adding dishes to menu #{body.menu_id}: {e}")
        raise server_error("Failed to bulk add dishes", e)

    return {"message": f"{len(body.dishes)} dishes added successfully"}


@router.get("/{dish_id}/images")
async def dish_images(dish_id: int, db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    result = await db.execute(
        select(DishImage.image_url).where(DishImage.dish_id == dish_id).order_by(DishImage.id)
    )
    return [{"image_url": url} for url in result.scalars().all()]


@router.get("/{dish_id}")
async def get_dish(dish_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    result = await db.execute(
        select(Dish, Section.name)
        .join(Section, Dish.section_id == Section.id)
        .where(Dish.id == dish_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Dish not found")

    dish, section_name = row
    return dish_to_dict(dish, section_name=section_name)
