"""
Menu Service

Current-menu resolution and assembly of the nested
sections -> dishes -> images tree from a flat LEFT JOIN.

The route layer stays thin: it maps MenuNotFoundError / MenuDateTakenError
to HTTP status codes and everything else to a 500.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import and_, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.models import Dish, DishImage, Menu, Section

logger = logging.getLogger(__name__)


class MenuNotFoundError(LookupError):
    """Raised when a requested (or any) menu does not exist."""


class MenuDateTakenError(ValueError):
    """Raised when another menu already uses the requested date."""


# =============================================================================
# PURE HELPERS
# =============================================================================

def format_menu_date(value: date) -> str:
    """Calendar date as YYYY-MM-DD."""
    return value.isoformat()


def select_current_menu(menus: Sequence[Menu], today: date) -> tuple[Menu, bool]:
    """
    Pick the menu for `today`, falling back to the newest one.

    Args:
        menus: All menus, newest first
        today: The server's local calendar date

    Returns:
        (menu, is_todays_menu)

    Raises:
        MenuNotFoundError: if `menus` is empty
    """
    if not menus:
        raise MenuNotFoundError("Menu not found")

    today_str = format_menu_date(today)
    for menu in menus:
        if format_menu_date(menu.date) == today_str:
            return menu, True
    return menus[0], False


def assemble_menu_tree(
    rows: Iterable[Mapping[str, Any]],
    include_images: bool = True,
) -> list[dict[str, Any]]:
    """
    Regroup flat Section x Dish x DishImage rows into a tree.

    Sections and dishes keep first-seen order. A dish that appears on
    several rows (one per image) is emitted once and accumulates every
    image URL. Rows with a NULL dish only register their section.

    Example:
        >>> assemble_menu_tree([
        ...     {"section_id": 1, "section_name": "Mains", "dish_id": 7,
        ...      "dish_name": "Pasta", "description": None, "price": 12.5,
        ...      "image_url": "a.jpg"},
        ...     {"section_id": 1, "section_name": "Mains", "dish_id": 7,
        ...      "dish_name": "Pasta", "description": None, "price": 12.5,
        ...      "image_url": "b.jpg"},
        ... ])[0]["dishes"][0]["images"]
        ['a.jpg', 'b.jpg']
    """
    sections: dict[int, dict[str, Any]] = {}
    dishes: dict[int, dict[str, Any]] = {}

    for row in rows:
        section_id = row["section_id"]
        section = sections.get(section_id)
        if section is None:
            section = {"id": section_id, "name": row["section_name"], "dishes": []}
            sections[section_id] = section

        dish_id = row.get("dish_id")
        if dish_id is None:
            continue

        dish = dishes.get(dish_id)
        if dish is None:
            dish = {
                "id": dish_id,
                "name": row["dish_name"],
                "description": row.get("description"),
                "price": row.get("price"),
            }
            if include_images:
                dish["images"] = []
            dishes[dish_id] = dish
            section["dishes"].append(dish)

        image_url = row.get("image_url")
        if include_images and image_url:
            dish["images"].append(image_url)

    return list(sections.values())


def menu_to_dict(menu: Menu) -> dict[str, Any]:
    return {
        "id": menu.id,
        "name": menu.name,
        "date": format_menu_date(menu.date),
        "created_at": menu.created_at.isoformat() if menu.created_at else None,
    }


# =============================================================================
# QUERIES
# =============================================================================

async def fetch_menu_tree(
    db: AsyncSession,
    menu_id: int,
    include_images: bool = True,
) -> list[dict[str, Any]]:
    """
    Every section, with the dishes of `menu_id` (and their images).

    Sections without dishes on this menu are still listed.
    """
    columns = [
        Section.id.label("section_id"),
        Section.name.label("section_name"),
        Dish.id.label("dish_id"),
        Dish.name.label("dish_name"),
        Dish.description.label("description"),
        Dish.price.label("price"),
    ]
    query = select(*columns).select_from(Section).outerjoin(
        Dish, and_(Dish.section_id == Section.id, Dish.menu_id == menu_id)
    )
    order_by = [Section.name, Section.id, Dish.name, Dish.id]

    if include_images:
        query = query.add_columns(DishImage.image_url.label("image_url")).outerjoin(
            DishImage, DishImage.dish_id == Dish.id
        )
        order_by.append(DishImage.id)

    result = await db.execute(query.order_by(*order_by))
    rows = result.mappings().all()
    logger.debug(f"Menu #{menu_id}: {len(rows)} section/dish rows")

    return assemble_menu_tree(rows, include_images=include_images)


async def resolve_current_menu(db: AsyncSession, today: date) -> dict[str, Any]:
    """
    Build the current-menu payload for `today`.

    Raises:
        MenuNotFoundError: if no menu exists at all
    """
    result = await db.execute(select(Menu).order_by(Menu.date.desc(), Menu.id.desc()))
    menus = result.scalars().all()
    logger.debug(f"Menu dates in database: {[format_menu_date(m.date) for m in menus]}")

    current, is_today = select_current_menu(menus, today)
    menu_date = format_menu_date(current.date)

    logger.info(
        f"Current menu: #{current.id} ({menu_date}) "
        f"{'for today' if is_today else 'fallback to most recent'}"
    )

    sections = await fetch_menu_tree(db, current.id, include_images=True)

    return {
        "id": current.id,
        "name": current.name,
        "date": menu_date,
        "sections": sections,
        "meta": {
            "is_todays_menu": is_today,
            "is_fallback": not is_today,
            "server_date": format_menu_date(today),
            "menu_date": menu_date,
        },
    }


async def get_menu_or_raise(db: AsyncSession, menu_id: int) -> Menu:
    menu = await db.get(Menu, menu_id)
    if menu is None:
        raise MenuNotFoundError("Menu not found")
    return menu


async def ensure_date_free(db: AsyncSession, menu_date: date, exclude_id: Optional[int] = None) -> None:
    """Raise MenuDateTakenError when another menu uses `menu_date`."""
    query = select(func.count(Menu.id)).where(Menu.date == menu_date)
    if exclude_id is not None:
        query = query.where(Menu.id != exclude_id)
    if (await db.execute(query)).scalar():
        raise MenuDateTakenError("Menu for this date already exists")


async def copy_menu(
    db: AsyncSession,
    source_menu_id: int,
    new_date: date,
    new_name: Optional[str] = None,
) -> tuple[int, int]:
    """
    Duplicate a menu and all its dishes onto `new_date`.

    Caller owns the transaction (commit / rollback).

    Returns:
        (new_menu_id, dishes_copied)
    """
    source = await get_menu_or_raise(db, source_menu_id)
    await ensure_date_free(db, new_date)

    new_menu = Menu(name=new_name or f"{source.name} - Copy", date=new_date)
    db.add(new_menu)
    await db.flush()

    result = await db.execute(select(Dish).where(Dish.menu_id == source_menu_id).order_by(Dish.id))
    dishes = result.scalars().all()
    for dish in dishes:
        db.add(Dish(
            name=dish.name,
            description=dish.description,
            price=dish.price,
            section_id=dish.section_id,
            menu_id=new_menu.id,
        ))
    await db.flush()

    logger.info(f"Copied menu #{source_menu_id} to #{new_menu.id} ({len(dishes)} dishes)")
    return new_menu.id, len(dishes)


async def export_menu(db: AsyncSession, menu_id: int) -> dict[str, Any]:
    """Portable snapshot of a menu: the menu, its dishes and their sections."""
    menu = await get_menu_or_raise(db, menu_id)

    result = await db.execute(
        select(Dish, Section.name.label("section_name"))
        .join(Section, Dish.section_id == Section.id)
        .where(Dish.menu_id == menu_id)
        .order_by(Section.name, Dish.name, Dish.id)
    )
    rows = result.all()

    dishes = []
    sections: dict[int, dict[str, Any]] = {}
    for dish, section_name in rows:
        dishes.append({
            "id": dish.id,
            "name": dish.name,
            "description": dish.description,
            "price": dish.price,
            "section_id": dish.section_id,
            "section_name": section_name,
        })
        sections.setdefault(dish.section_id, {"id": dish.section_id, "name": section_name})

    return {
        "menu": menu_to_dict(menu),
        "sections": list(sections.values()),
        "dishes": dishes,
        "export_timestamp": datetime.now().isoformat(),
        "total_dishes": len(dishes),
    }


async def import_menu(
    db: AsyncSession,
    menu_data: Mapping[str, Any],
    new_date: date,
    new_name: Optional[str] = None,
) -> tuple[int, int, int]:
    """
    Create a menu from an export snapshot.

    Sections are matched by name and created when missing; dish
    section ids are remapped accordingly. Caller owns the transaction.

    Returns:
        (new_menu_id, dishes_imported, sections_imported)
    """
    await ensure_date_free(db, new_date)

    new_menu = Menu(name=new_name or menu_data["menu"]["name"], date=new_date)
    db.add(new_menu)
    await db.flush()

    section_map: dict[int, int] = {}
    for section in menu_data.get("sections") or []:
        existing = (await db.execute(
            select(Section.id).where(Section.name == section["name"])
        )).scalar_one_or_none()
        if existing is None:
            created = Section(name=section["name"])
            db.add(created)
            await db.flush()
            existing = created.id
        section_map[section["id"]] = existing

    dishes = menu_data.get("dishes") or []
    for dish in dishes:
        db.add(Dish(
            name=dish["name"],
            description=dish.get("description"),
            price=dish.get("price"),
            section_id=section_map.get(dish["section_id"], dish["section_id"]),
            menu_id=new_menu.id,
        ))
    await db.flush()

    logger.info(f"Imported menu #{new_menu.id} ({len(dishes)} dishes)")
    return new_menu.id, len(dishes), len(section_map)
