"""
Restaurant routes: profile, logo, menu export/import and housekeeping.

Every route requires the restaurant's bearer token.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.database import get_db
from menuqr.dependencies import get_current_restaurant, get_image_host
from menuqr.models import (
    Dish,
    ExternalClient,
    InternalClient,
    Menu,
    Order,
    OrderItem,
    OrderStatus,
    Restaurant,
    RestaurantLogo,
    Section,
)
from menuqr.routes.dish import read_image_upload
from menuqr.schemas import CleanupRequest, MenuImportRequest, ProfileUpdateRequest
from menuqr.services.menu_service import (
    MenuDateTakenError,
    MenuNotFoundError,
    export_menu,
    import_menu,
    menu_to_dict,
)
from menuqr.services.storage import BaseImageHost, remove_local_copy, save_local_copy

logger = logging.getLogger(__name__)

router = APIRouter()

LOGO_FOLDER = "restaurant_logos"
BACKUP_VERSION = "1.0"
LOW_DEMAND_THRESHOLD = 3


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def profile_to_dict(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "email": restaurant.email,
        "phone_number": restaurant.phone_number,
        "address": restaurant.address,
        "description": restaurant.description,
        "created_at": _iso(restaurant.created_at),
    }


async def _current(db: AsyncSession, claims: dict) -> Restaurant:
    restaurant = await db.get(Restaurant, claims["restaurant_id"])
    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return restaurant


# =============================================================================
# PROFILE
# =============================================================================

@router.get("/profile")
async def get_profile(
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    return profile_to_dict(await _current(db, claims))


@router.post("/profile")
@router.post("/profile/modify")
async def update_profile(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Partial update of the authenticated restaurant's profile."""
    restaurant = await _current(db, claims)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    new_email = changes.get("email")
    if new_email and new_email != restaurant.email:
        taken = await db.execute(
            select(Restaurant.id).where(
                Restaurant.email == new_email,
                Restaurant.id != restaurant.id,
            )
        )
        if taken.scalar_one_or_none() is not None:
            raise HTTPException(status_code=409, detail="Email already registered")

    for field, value in changes.items():
        setattr(restaurant, field, value)

    try:
        await db.commit()
        await db.refresh(restaurant)
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error updating profile of restaurant #{claims['restaurant_id']}: {e}")
        raise server_error("Failed to update profile", e)

    logger.info(f"Restaurant #{restaurant.id} updated: {sorted(changes)}")
    return {"message": "Profile updated successfully", "restaurant": profile_to_dict(restaurant)}


# =============================================================================
# LOGO
# =============================================================================

@router.post("/logo/upload", status_code=status.HTTP_201_CREATED)
async def upload_logo(
    logo: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    image_host: BaseImageHost = Depends(get_image_host),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Upload a new logo; the previous one is destroyed on host, disk and DB."""
    data = await read_image_upload(logo)
    restaurant = await _current(db, claims)
    filename = logo.filename or "logo"

    local_path = save_local_copy(data, f"logo_{restaurant.id}", filename)
    uploaded = await image_host.upload(data, filename, LOGO_FOLDER)
    if not uploaded.success:
        remove_local_copy(local_path)
        logger.error(f"Logo upload for restaurant #{restaurant.id} failed: {uploaded.error_message}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to upload logo", "details": uploaded.error_message},
        )

    try:
        result = await db.execute(
            select(RestaurantLogo).where(RestaurantLogo.restaurant_id == restaurant.id)
        )
        previous = result.scalar_one_or_none()
        replaced = None
        if previous is not None:
            replaced = (previous.public_id, previous.local_path)
            await db.delete(previous)
            await db.flush()

        db.add(RestaurantLogo(
            restaurant_id=restaurant.id,
            image_url=uploaded.secure_url,
            public_id=uploaded.public_id,
            local_path=local_path,
        ))
        await db.commit()
    except Exception as e:
        await db.rollback()
        await image_host.destroy(uploaded.public_id)
        remove_local_copy(local_path)
        logger.exception(f"Error saving logo for restaurant #{claims['restaurant_id']}: {e}")
        raise server_error("Failed to upload logo", e)

    # Previous logo goes only once the new row is committed
    if replaced is not None:
        public_id, previous_path = replaced
        if public_id:
            await image_host.destroy(public_id)
        remove_local_copy(previous_path)

    return {
        "message": "Logo uploaded successfully",
        "cloudinary_url": uploaded.secure_url,
        "local_path": local_path,
    }


# =============================================================================
# MENU EXPORT / IMPORT
# =============================================================================

@router.get("/export/{menu_id}")
async def export_menu_data(
    menu_id: int,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    try:
        return await export_menu(db, menu_id)
    except MenuNotFoundError:
        raise HTTPException(status_code=404, detail="Menu not found")


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_menu_data(
    body: MenuImportRequest,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Recreate an exported menu on a new date; sections are matched by name."""
    try:
        new_menu_id, dishes_imported, sections_imported = await import_menu(
            db, body.menu_data.model_dump(), body.new_date, body.new_name
        )
        await db.commit()
    except MenuDateTakenError as e:
        await db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error importing menu: {e}")
        raise server_error("Failed to import menu", e)

    return {
        "message": "Menu imported successfully",
        "new_menu_id": new_menu_id,
        "dishes_imported": dishes_imported,
        "sections_imported": sections_imported,
    }


# =============================================================================
# HOUSEKEEPING
# =============================================================================

@router.get("/inventory/alerts")
async def inventory_alerts(
    days: int = Query(7, ge=1),
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """
    Dishes that sold poorly over the last `days` days, counting served orders only:
        never_ordered  no served order in the window
        low_demand     fewer than 3 portions served in the window
    """
    now = datetime.now()
    cutoff = now - timedelta(days=days)

    served = and_(
        OrderItem.order_id == Order.id,
        Order.status == OrderStatus.SERVED,
        Order.created_at >= cutoff,
    )
    times_ordered = func.coalesce(func.sum(case((Order.id.is_not(None), OrderItem.quantity), else_=0)), 0)

    result = await db.execute(
        select(
            Dish.id,
            Dish.name,
            Dish.description,
            Dish.price,
            Section.name.label("section_name"),
            times_ordered.label("times_ordered"),
            func.max(Order.created_at).label("last_ordered"),
        )
        .join(Section, Dish.section_id == Section.id)
        .outerjoin(OrderItem, OrderItem.dish_id == Dish.id)
        .outerjoin(Order, served)
        .group_by(Dish.id, Dish.name, Dish.description, Dish.price, Section.name)
        .order_by(times_ordered, Dish.name, Dish.id)
    )

    alerts = []
    for row in result.mappings().all():
        last_ordered = row["last_ordered"]
        if last_ordered is None:
            alert_type = "never_ordered"
        elif row["times_ordered"] < LOW_DEMAND_THRESHOLD:
            alert_type = "low_demand"
        else:
            continue

        alerts.append({
            "id": row["id"],
            "name": row["name"],
            "description": row["description"],
            "price": row["price"],
            "section_name": row["section_name"],
            "times_ordered": int(row["times_ordered"]),
            "last_ordered": _iso(last_ordered),
            "days_since_last_order": (now - last_ordered).days if last_ordered else None,
            "alert_type": alert_type,
        })

    return {
        "message": f"Dishes with low orders in the last {days} days",
        "alerts": alerts,
    }


@router.get("/backup")
async def backup(
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Full JSON dump of the restaurant's menus, dishes and orders."""
    restaurant = await _current(db, claims)

    try:
        menus = (await db.execute(select(Menu).order_by(Menu.date, Menu.id))).scalars().all()
        dishes = (await db.execute(
            select(Dish, Section.name)
            .join(Section, Dish.section_id == Section.id)
            .order_by(Dish.menu_id, Dish.id)
        )).all()
        orders = (await db.execute(select(Order).order_by(Order.created_at, Order.id))).scalars().all()
        items = (await db.execute(select(OrderItem).order_by(OrderItem.id))).scalars().all()
    except Exception as e:
        logger.exception(f"Error building backup: {e}")
        raise server_error("Failed to create backup", e)

    items_by_order: dict[int, list] = {}
    for item in items:
        items_by_order.setdefault(item.order_id, []).append(
            {"dish_id": item.dish_id, "quantity": item.quantity}
        )

    return {
        "restaurant": profile_to_dict(restaurant),
        "menus": [menu_to_dict(menu) for menu in menus],
        "dishes": [
            {
                "id": dish.id,
                "name": dish.name,
                "description": dish.description,
                "price": dish.price,
                "section_id": dish.section_id,
                "section_name": section_name,
                "menu_id": dish.menu_id,
            }
            for dish, section_name in dishes
        ],
        "orders": [
            {
                "id": order.id,
                "menu_id": order.menu_id,
                "client_type": order.client_type.value,
                "internal_client_id": order.internal_client_id,
                "external_client_id": order.external_client_id,
                "status": order.status.value,
                "created_at": _iso(order.created_at),
                "items": items_by_order.get(order.id, []),
            }
            for order in orders
        ],
        "backup_timestamp": datetime.now().isoformat(),
        "version": BACKUP_VERSION,
    }


@router.post("/maintenance/cleanup")
async def cleanup(
    body: CleanupRequest,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """
    Remove finished orders (served or cancelled) older than `days_old` days,
    then clients older than that with no order left.
    """
    cutoff = datetime.now() - timedelta(days=body.days_old)
    finished = select(Order.id).where(
        Order.status.in_((OrderStatus.SERVED, OrderStatus.CANCELLED)),
        Order.created_at < cutoff,
    )

    try:
        await db.execute(delete(OrderItem).where(OrderItem.order_id.in_(finished)))
        orders_deleted = (await db.execute(
            delete(Order).where(
                Order.status.in_((OrderStatus.SERVED, OrderStatus.CANCELLED)),
                Order.created_at < cutoff,
            )
        )).rowcount

        internal_deleted = (await db.execute(
            delete(InternalClient).where(
                InternalClient.created_at < cutoff,
                InternalClient.id.not_in(
                    select(Order.internal_client_id).where(Order.internal_client_id.is_not(None))
                ),
            )
        )).rowcount
        external_deleted = (await db.execute(
            delete(ExternalClient).where(
                ExternalClient.created_at < cutoff,
                ExternalClient.id.not_in(
                    select(Order.external_client_id).where(Order.external_client_id.is_not(None))
                ),
            )
        )).rowcount
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error during cleanup: {e}")
        raise server_error("Failed to run cleanup", e)

    logger.info(
        f"Cleanup older than {body.days_old} days: {orders_deleted} order(s), "
        f"{internal_deleted + external_deleted} client(s)"
    )
    return {
        "message": "Cleanup completed successfully",
        "orders_deleted": orders_deleted,
        "clients_deleted": internal_deleted + external_deleted,
    }


@router.get("/{restaurant_id}/logo")
async def get_logo(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    result = await db.execute(
        select(RestaurantLogo.image_url).where(RestaurantLogo.restaurant_id == restaurant_id)
    )
    image_url = result.scalar_one_or_none()
    if image_url is None:
        raise HTTPException(status_code=404, detail="No logo found for this restaurant")
    return {"image_url": image_url}
