"""Section routes. Sections are shared by every menu."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.database import get_db
from menuqr.dependencies import get_current_restaurant, get_image_host
from menuqr.models import Dish, Section
from menuqr.schemas import SectionCreateRequest, SectionDeleteRequest, SectionUpdateRequest
from menuqr.services.dish_images import delete_dishes
from menuqr.services.storage import BaseImageHost

logger = logging.getLogger(__name__)

router = APIRouter()


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(func.count(Section.id)).where(Section.name == name)
    if exclude_id is not None:
        query = query.where(Section.id != exclude_id)
    return bool((await db.execute(query)).scalar())


@router.post("/add", status_code=status.HTTP_201_CREATED)
async def add_section(
    body: SectionCreateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    name = body.name
    if await _name_taken(db, name):
        raise HTTPException(status_code=409, detail="Section name already exists")

    section = Section(name=name)
    try:
        db.add(section)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Section name already exists")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating section {name!r}: {e}")
        raise server_error("Failed to create section", e)

    return {"message": "Section created successfully", "section_id": section.id}


@router.get("/allSections")
async def all_sections(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    result = await db.execute(select(Section).order_by(Section.name, Section.id))
    return [{"id": s.id, "name": s.name} for s in result.scalars().all()]


@router.post("/modify")
async def modify_section(
    body: SectionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    section = await db.get(Section, body.section_id)
    if section is None:
        raise HTTPException(status_code=404, detail="Section not found")

    name = body.name
    if await _name_taken(db, name, exclude_id=section.id):
        raise HTTPException(status_code=409, detail="Section name already exists")

    section.name = name
    await db.commit()
    return {"message": "Section updated successfully"}


@router.post("/delete")
async def delete_section(
    body: SectionDeleteRequest,
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Delete a section and every dish filed under it, on every menu."""
    section = await db.get(Section, body.section_id)
    if section is None:
        raise HTTPException(status_code=404, detail="Section not found")

    try:
        dish_ids = (await db.execute(
            select(Dish.id).where(Dish.section_id == section.id)
        )).scalars().all()
        await delete_dishes(db, image_host, dish_ids)
        await db.delete(section)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error deleting section #{body.section_id}: {e}")
        raise server_error("Failed to delete section", e)

    return {"message": "Section deleted successfully"}
