"""
Client and order routes.

Public (customers scanning the QR code):
    client creation, order creation, order lookup
Restaurant only (bearer token):
    client listing/removal, order management, kitchen and table views

Every placed order is queued for the Excel ledger export; a broker
outage is logged and never fails the order.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.core.security import create_client_session_token
from menuqr.database import get_db
from menuqr.dependencies import get_current_restaurant, get_today
from menuqr.models import (
    ClientType,
    Dish,
    ExternalClient,
    InternalClient,
    Menu,
    Order,
    OrderItem,
    OrderStatus,
    Section,
)
from menuqr.schemas import (
    ClientDeleteRequest,
    ExternalClientCreateRequest,
    InternalClientCreateRequest,
    OrderCreateRequest,
    OrderItemAddRequest,
    OrderItemQuantityRequest,
    OrderItemRemoveRequest,
    OrderRefRequest,
    OrderStatusUpdateRequest,
)
from menuqr.tasks import export_order_to_excel

logger = logging.getLogger(__name__)

router = APIRouter()

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING)


# =============================================================================
# HELPERS
# =============================================================================

def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def _order_query():
    return (
        select(
            Order,
            Menu.name.label("menu_name"),
            Menu.date.label("menu_date"),
            InternalClient.table_number,
            ExternalClient.address,
            ExternalClient.phone_number,
        )
        .join(Menu, Order.menu_id == Menu.id)
        .outerjoin(InternalClient, Order.internal_client_id == InternalClient.id)
        .outerjoin(ExternalClient, Order.external_client_id == ExternalClient.id)
    )


def _order_to_dict(order: Order, menu_name, menu_date, table_number, address, phone_number) -> dict[str, Any]:
    return {
        "id": order.id,
        "menu_id": order.menu_id,
        "client_type": order.client_type.value,
        "internal_client_id": order.internal_client_id,
        "external_client_id": order.external_client_id,
        "status": order.status.value,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "menu_name": menu_name,
        "menu_date": _iso(menu_date),
        "table_number": table_number,
        "address": address,
        "phone_number": phone_number,
    }


async def _require_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def _get_item(db: AsyncSession, order_id: int, dish_id: int) -> Optional[OrderItem]:
    result = await db.execute(
        select(OrderItem).where(OrderItem.order_id == order_id, OrderItem.dish_id == dish_id)
    )
    return result.scalar_one_or_none()


def queue_order_export(snapshot: dict[str, Any]) -> bool:
    """Hand the order to the Celery worker; False when the broker is unreachable."""
    try:
        export_order_to_excel.delay(snapshot)
        return True
    except Exception as e:
        logger.warning(f"Could not queue Excel export for Order #{snapshot.get('order_id')}: {e}")
        return False


def _ticket_items(lines: list[dict[str, Any]]) -> str:
    """Kitchen ticket line: "Pasta x2, Steak x1"."""
    return ", ".join(f"{line['name']} x{line['quantity']}" for line in lines)


async def _open_orders_today(db: AsyncSession, today: date) -> list[dict[str, Any]]:
    """Today's pending/preparing orders, oldest first, with their lines."""
    start, end = _day_bounds(today)
    result = await db.execute(
        select(
            Order,
            InternalClient.table_number,
            ExternalClient.address,
            Dish.name,
            Dish.price,
            OrderItem.quantity,
        )
        .join(OrderItem, OrderItem.order_id == Order.id)
        .join(Dish, OrderItem.dish_id == Dish.id)
        .outerjoin(InternalClient, Order.internal_client_id == InternalClient.id)
        .outerjoin(ExternalClient, Order.external_client_id == ExternalClient.id)
        .where(
            Order.status.in_(OPEN_STATUSES),
            Order.created_at >= start,
            Order.created_at < end,
        )
        .order_by(Order.created_at, Order.id, Dish.name)
    )

    orders: dict[int, dict[str, Any]] = {}
    for order, table_number, address, dish_name, price, quantity in result.all():
        entry = orders.get(order.id)
        if entry is None:
            entry = {
                "order": order,
                "table_number": table_number,
                "address": address,
                "lines": [],
            }
            orders[order.id] = entry
        entry["lines"].append({"name": dish_name, "price": price, "quantity": quantity})
    return list(orders.values())


# =============================================================================
# CLIENTS
# =============================================================================

@router.post("/clients/internal/add", status_code=status.HTTP_201_CREATED)
async def add_internal_client(
    body: InternalClientCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Register a dine-in table and hand back its session token."""
    session_token = create_client_session_token(
        ClientType.INTERNAL.value, table_number=body.table_number
    )
    client = InternalClient(table_number=body.table_number, session_token=session_token)
    try:
        db.add(client)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating internal client: {e}")
        raise server_error("Failed to create internal client", e)

    return {
        "message": "Internal client created successfully",
        "client_id": client.id,
        "session_token": session_token,
    }


@router.post("/clients/external/add", status_code=status.HTTP_201_CREATED)
async def add_external_client(
    body: ExternalClientCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    session_token = create_client_session_token(
        ClientType.EXTERNAL.value, address=body.address
    )
    client = ExternalClient(
        address=body.address,
        phone_number=body.phone_number,
        session_token=session_token,
    )
    try:
        db.add(client)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating external client: {e}")
        raise server_error("Failed to create external client", e)

    return {
        "message": "External client created successfully",
        "client_id": client.id,
        "session_token": session_token,
    }


@router.get("/clients/internal")
async def list_internal_clients(
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    result = await db.execute(
        select(InternalClient).order_by(InternalClient.table_number, InternalClient.id)
    )
    return [
        {
            "id": c.id,
            "table_number": c.table_number,
            "session_token": c.session_token,
            "created_at": _iso(c.created_at),
        }
        for c in result.scalars().all()
    ]


@router.get("/clients/external")
async def list_external_clients(
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    result = await db.execute(
        select(ExternalClient).order_by(ExternalClient.created_at.desc(), ExternalClient.id.desc())
    )
    return [
        {
            "id": c.id,
            "address": c.address,
            "phone_number": c.phone_number,
            "session_token": c.session_token,
            "created_at": _iso(c.created_at),
        }
        for c in result.scalars().all()
    ]


@router.post("/clients/internal/delete")
async def delete_internal_client(
    body: ClientDeleteRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    client = await db.get(InternalClient, body.client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")

    # Orders keep their history without the client reference
    await db.execute(
        update(Order)
        .where(Order.internal_client_id == client.id)
        .values(internal_client_id=None)
    )
    await db.delete(client)
    await db.commit()
    return {"message": "Internal client deleted successfully"}


@router.post("/clients/external/delete")
async def delete_external_client(
    body: ClientDeleteRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    client = await db.get(ExternalClient, body.client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")

    await db.execute(
        update(Order)
        .where(Order.external_client_id == client.id)
        .values(external_client_id=None)
    )
    await db.delete(client)
    await db.commit()
    return {"message": "External client deleted successfully"}


# =============================================================================
# ORDERS
# =============================================================================

@router.post("/add", status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Place an order for a table or a delivery client.

    The order row and all its lines are written in one transaction.
    Repeated dish ids are merged into a single line.
    """
    menu = await db.get(Menu, body.menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")

    if body.client_type == ClientType.INTERNAL:
        client = await db.get(InternalClient, body.client_id)
    else:
        client = await db.get(ExternalClient, body.client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")

    quantities: dict[int, int] = {}
    for line in body.dishes:
        quantities[line.dish_id] = quantities.get(line.dish_id, 0) + line.quantity

    result = await db.execute(
        select(Dish).where(Dish.id.in_(quantities), Dish.menu_id == menu.id)
    )
    dishes = {dish.id: dish for dish in result.scalars().all()}
    missing = sorted(set(quantities) - set(dishes))
    if missing:
        raise HTTPException(
            status_code=400,
            detail={"error": "Dishes not on this menu", "dish_ids": missing},
        )

    order = Order(
        menu_id=menu.id,
        client_type=body.client_type,
        internal_client_id=client.id if body.client_type == ClientType.INTERNAL else None,
        external_client_id=client.id if body.client_type == ClientType.EXTERNAL else None,
        status=OrderStatus.PENDING,
    )

    try:
        db.add(order)
        await db.flush()
        for dish_id, quantity in quantities.items():
            db.add(OrderItem(order_id=order.id, dish_id=dish_id, quantity=quantity))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating order: {e}")
        raise server_error("Failed to create order", e)

    logger.info(f"Order #{order.id} created ({body.client_type.value}, {len(quantities)} line(s))")

    items = [
        {"dish_id": dish_id, "name": dishes[dish_id].name, "price": dishes[dish_id].price, "quantity": qty}
        for dish_id, qty in quantities.items()
    ]
    queue_order_export({
        "order_id": order.id,
        "created_at": order.created_at.isoformat(),
        "menu_id": menu.id,
        "menu_name": menu.name,
        "client_type": body.client_type.value,
        "table_number": getattr(client, "table_number", None),
        "delivery_address": getattr(client, "address", None),
        "phone_number": getattr(client, "phone_number", None),
        "items": items,
        "total_amount": round(sum((i["price"] or 0) * i["quantity"] for i in items), 2),
        "order_status": order.status.value,
    })

    return {"message": "Order created successfully", "order_id": order.id}


@router.get("/allOrders")
async def all_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """All orders, newest first, optionally filtered by status and calendar day."""
    query = _order_query()
    if status_filter is not None:
        query = query.where(Order.status == status_filter)
    if day is not None:
        start, end = _day_bounds(day)
        query = query.where(Order.created_at >= start, Order.created_at < end)

    result = await db.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
    return [_order_to_dict(*row) for row in result.all()]


@router.post("/update_status")
async def update_order_status(
    body: OrderStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    order = await _require_order(db, body.order_id)
    order.status = body.status
    await db.commit()

    logger.info(f"Order #{order.id} -> {body.status.value}")
    return {"message": "Order status updated successfully"}


@router.post("/cancel")
async def cancel_order(
    body: OrderRefRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    order = await _require_order(db, body.order_id)
    order.status = OrderStatus.CANCELLED
    await db.commit()
    return {"message": "Order cancelled successfully"}


@router.post("/delete")
async def delete_order(
    body: OrderRefRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    order = await _require_order(db, body.order_id)
    try:
        await db.execute(delete(OrderItem).where(OrderItem.order_id == order.id))
        await db.delete(order)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error deleting order #{body.order_id}: {e}")
        raise server_error("Failed to delete order", e)
    return {"message": "Order deleted successfully"}


@router.post("/add_item")
async def add_order_item(
    body: OrderItemAddRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    """Add a dish to an order; an existing line gets its quantity increased."""
    order = await _require_order(db, body.order_id)
    dish = await db.get(Dish, body.dish_id)
    if dish is None:
        raise HTTPException(status_code=404, detail="Dish not found")
    if dish.menu_id != order.menu_id:
        raise HTTPException(
            status_code=400,
            detail={"error": "Dishes not on this menu", "dish_ids": [dish.id]},
        )

    item = await _get_item(db, body.order_id, body.dish_id)
    if item is not None:
        item.quantity += body.quantity
    else:
        db.add(OrderItem(order_id=body.order_id, dish_id=body.dish_id, quantity=body.quantity))
    await db.commit()

    return {"message": "Item added to order successfully"}


@router.post("/remove_item")
async def remove_order_item(
    body: OrderItemRemoveRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    item = await _get_item(db, body.order_id, body.dish_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Order item not found")

    await db.delete(item)
    await db.commit()
    return {"message": "Item removed from order successfully"}


@router.post("/update_item_quantity")
async def update_item_quantity(
    body: OrderItemQuantityRequest,
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    item = await _get_item(db, body.order_id, body.dish_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Order item not found")

    if body.quantity <= 0:
        await db.delete(item)
    else:
        item.quantity = body.quantity
    await db.commit()

    return {"message": "Item quantity updated successfully"}


@router.get("/tables/status")
async def tables_status(
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """
    Per table, from today's orders:
        busy       an order is pending or preparing
        occupied   orders exist but all are served or cancelled
        available  no order today
    """
    start, end = _day_bounds(today)
    open_orders = func.count(case((Order.status.in_(OPEN_STATUSES), 1)))

    result = await db.execute(
        select(
            InternalClient.id,
            InternalClient.table_number,
            InternalClient.created_at,
            func.count(Order.id).label("active_orders"),
            func.max(Order.created_at).label("last_order_time"),
            open_orders.label("open_orders"),
        )
        .select_from(InternalClient)
        .outerjoin(
            Order,
            and_(
                Order.internal_client_id == InternalClient.id,
                Order.client_type == ClientType.INTERNAL,
                Order.created_at >= start,
                Order.created_at < end,
            ),
        )
        .group_by(InternalClient.id, InternalClient.table_number, InternalClient.created_at)
        .order_by(InternalClient.table_number, InternalClient.id)
    )

    tables = []
    for row in result.mappings().all():
        if row["open_orders"] > 0:
            table_status = "busy"
        elif row["active_orders"] > 0:
            table_status = "occupied"
        else:
            table_status = "available"

        tables.append({
            "id": row["id"],
            "table_number": row["table_number"],
            "created_at": _iso(row["created_at"]),
            "active_orders": row["active_orders"],
            "last_order_time": _iso(row["last_order_time"]),
            "table_status": table_status,
        })
    return tables


@router.get("/kitchen/live_orders")
async def kitchen_live_orders(
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """Today's pending/preparing orders, oldest first, as kitchen tickets."""
    tickets = []
    for entry in await _open_orders_today(db, today):
        order = entry["order"]
        lines = entry["lines"]
        tickets.append({
            "order_id": order.id,
            "status": order.status.value,
            "created_at": _iso(order.created_at),
            "client_type": order.client_type.value,
            "table_number": entry["table_number"],
            "address": entry["address"],
            "order_items": _ticket_items(lines),
            "total_amount": round(sum((line["price"] or 0) * line["quantity"] for line in lines), 2),
        })
    return tickets


@router.get("/orders/queue")
async def order_queue(
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """Open orders with the minutes each has been waiting."""
    now = datetime.now()
    queue = []
    for entry in await _open_orders_today(db, today):
        order = entry["order"]
        lines = entry["lines"]
        waited = max(0, int((now - order.created_at).total_seconds() // 60))
        queue.append({
            "id": order.id,
            "status": order.status.value,
            "created_at": _iso(order.created_at),
            "client_type": order.client_type.value,
            "table_number": entry["table_number"],
            "address": entry["address"],
            "items_count": len(lines),
            "total_quantity": sum(line["quantity"] for line in lines),
            "wait_time_minutes": waited,
        })
    return queue


@router.get("/{order_id}")
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Order details with its lines and dish data."""
    row = (await db.execute(_order_query().where(Order.id == order_id))).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Order not found")

    items = await db.execute(
        select(OrderItem, Dish.name, Dish.description, Dish.price, Section.name)
        .join(Dish, OrderItem.dish_id == Dish.id)
        .join(Section, Dish.section_id == Section.id)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
    )

    return {
        **_order_to_dict(*row),
        "items": [
            {
                "id": item.id,
                "order_id": item.order_id,
                "dish_id": item.dish_id,
                "quantity": item.quantity,
                "dish_name": dish_name,
                "description": description,
                "price": price,
                "section_name": section_name,
            }
            for item, dish_name, description, price, section_name in items.all()
        ],
    }
