"""
Menu routes.

Literal paths are declared before /{menu_id} so they are not captured
by the path parameter.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.database import get_db
from menuqr.dependencies import (
    get_current_restaurant,
    get_image_host,
    get_optional_restaurant,
    get_today,
)
from menuqr.models import Dish, Menu, Order, OrderItem, OrderStatus, Section
from menuqr.schemas import (
    CurrentMenuResponse,
    MenuCopyRequest,
    MenuCreateRequest,
    MenuDeleteRequest,
    MenuUpdateRequest,
)
from menuqr.services.dish_images import delete_dishes
from menuqr.services.menu_service import (
    MenuDateTakenError,
    MenuNotFoundError,
    copy_menu,
    ensure_date_free,
    fetch_menu_tree,
    get_menu_or_raise,
    menu_to_dict,
    resolve_current_menu,
)
from menuqr.services.storage import BaseImageHost

logger = logging.getLogger(__name__)

router = APIRouter()

SUGGESTION_WINDOW_DAYS = 30
SUGGESTION_MIN_ORDERS = 5
SUGGESTION_LIMIT = 20


@router.get("/current", response_model=CurrentMenuResponse)
async def get_current_menu(
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
    viewer: Optional[dict] = Depends(get_optional_restaurant),
) -> dict[str, Any]:
    """
    Today's menu, or the most recent one when none is dated today.

    The `meta` block tells the client which case applied.
    """
    if viewer:
        logger.debug(f"Current menu requested by restaurant #{viewer['restaurant_id']}")

    try:
        return await resolve_current_menu(db, today)
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")
    except Exception as e:
        logger.exception(f"Error resolving current menu: {e}")
        raise server_error("Failed to fetch current menu", e)


@router.get("/menuSuggestions")
async def menu_suggestions(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Dishes of served orders ordered at least 5 times in the last 30 days."""
    since = datetime.now() - timedelta(days=SUGGESTION_WINDOW_DAYS)
    order_frequency = func.count(OrderItem.dish_id).label("order_frequency")

    query = (
        select(
            Dish.id,
            Dish.name,
            Dish.description,
            Dish.price,
            Section.id.label("section_id"),
            Section.name.label("section_name"),
            order_frequency,
        )
        .join(Section, Dish.section_id == Section.id)
        .join(OrderItem, OrderItem.dish_id == Dish.id)
        .join(Order, OrderItem.order_id == Order.id)
        .where(Order.status == OrderStatus.SERVED, Order.created_at >= since)
        .group_by(Dish.id, Dish.name, Dish.description, Dish.price, Section.id, Section.name)
        .having(func.count(OrderItem.dish_id) >= SUGGESTION_MIN_ORDERS)
        .order_by(func.count(OrderItem.dish_id).desc(), Section.name)
        .limit(SUGGESTION_LIMIT)
    )

    try:
        rows = (await db.execute(query)).mappings().all()
    except Exception as e:
        logger.exception(f"Error fetching menu suggestions: {e}")
        raise server_error("Failed to fetch menu suggestions", e)

    # Average price among the suggested dishes of each section
    section_prices = defaultdict(list)
    for row in rows:
        if row["price"] is not None:
            section_prices[row["section_id"]].append(row["price"])

    suggestions = []
    for row in rows:
        prices = section_prices.get(row["section_id"])
        suggestions.append({
            **dict(row),
            "avg_section_price": round(sum(prices) / len(prices), 2) if prices else None,
        })

    return {
        "message": f"Menu suggestions based on last {SUGGESTION_WINDOW_DAYS} days",
        "suggestions": suggestions,
    }


@router.post("/add", status_code=status.HTTP_201_CREATED)
async def add_menu(
    body: MenuCreateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    try:
        await ensure_date_free(db, body.date)
        menu = Menu(name=body.name, date=body.date)
        db.add(menu)
        await db.commit()
    except MenuDateTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating menu: {e}")
        raise server_error("Failed to create menu", e)

    logger.info(f"Menu #{menu.id} created for {body.date} by restaurant #{restaurant['restaurant_id']}")
    return {"message": "Menu created successfully", "menu_id": menu.id}


@router.get("/allMenus")
async def all_menus(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    result = await db.execute(select(Menu).order_by(Menu.date.desc(), Menu.id.desc()))
    return [menu_to_dict(menu) for menu in result.scalars().all()]


@router.post("/modify")
async def modify_menu(
    body: MenuUpdateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    try:
        menu = await get_menu_or_raise(db, body.menu_id)
        await ensure_date_free(db, body.date, exclude_id=menu.id)
        menu.name = body.name
        menu.date = body.date
        await db.commit()
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")
    except MenuDateTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error updating menu #{body.menu_id}: {e}")
        raise server_error("Failed to update menu", e)

    return {"message": "Menu updated successfully"}


@router.post("/delete")
async def delete_menu(
    body: MenuDeleteRequest,
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Delete a menu, its dishes (with images) and the orders placed on it."""
    try:
        menu = await get_menu_or_raise(db, body.menu_id)

        dish_ids = (await db.execute(select(Dish.id).where(Dish.menu_id == menu.id))).scalars().all()
        order_ids = select(Order.id).where(Order.menu_id == menu.id)

        await db.execute(delete(OrderItem).where(OrderItem.order_id.in_(order_ids)))
        await db.execute(delete(Order).where(Order.menu_id == menu.id))
        await delete_dishes(db, image_host, dish_ids)
        await db.execute(delete(Menu).where(Menu.id == menu.id))
        await db.commit()
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error deleting menu #{body.menu_id}: {e}")
        raise server_error("Failed to delete menu", e)

    logger.info(f"Menu #{body.menu_id} deleted with {len(dish_ids)} dish(es)")
    return {"message": "Menu deleted successfully"}


@router.post("/copy", status_code=status.HTTP_201_CREATED)
async def copy_menu_to_date(
    body: MenuCopyRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    try:
        new_menu_id, dishes_copied = await copy_menu(
            db, body.source_menu_id, body.new_date, body.new_name
        )
        await db.commit()
    except MenuNotFoundError:
        await db.rollback()
        raise HTTPException(status_code=404, detail="Source menu not found")
    except MenuDateTakenError as e:
        await db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error copying menu #{body.source_menu_id}: {e}")
        raise server_error("Failed to copy menu", e)

    return {
        "message": "Menu copied successfully",
        "new_menu_id": new_menu_id,
        "dishes_copied": dishes_copied,
    }


@router.get("/{menu_id}")
async def get_menu(menu_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    try:
        menu = await get_menu_or_raise(db, menu_id)
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")
    return menu_to_dict(menu)


@router.get("/{menu_id}/full")
async def get_full_menu(menu_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Menu with every section and the dishes it holds on this menu (no images)."""
    try:
        menu = await get_menu_or_raise(db, menu_id)
        sections = await fetch_menu_tree(db, menu_id, include_images=False)
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")
    except Exception as e:
        logger.exception(f"Error fetching full menu #{menu_id}: {e}")
        raise server_error("Failed to fetch full menu", e)

    return {**menu_to_dict(menu), "sections": sections}
