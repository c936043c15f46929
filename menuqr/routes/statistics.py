"""Order analytics and dish ratings."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.database import get_db
from menuqr.dependencies import get_current_restaurant
from menuqr.models import (
    ClientType,
    Dish,
    DishRating,
    ExternalClient,
    InternalClient,
    Order,
    OrderItem,
    OrderStatus,
    Section,
)
from menuqr.schemas import DishRatingRequest

logger = logging.getLogger(__name__)

router = APIRouter()

STAR_LABELS = {5: "five_stars", 4: "four_stars", 3: "three_stars", 2: "two_stars", 1: "one_star"}


def _created_between(query, start_date: Optional[date], end_date: Optional[date]):
    """Restrict to orders created on [start_date, end_date], both inclusive."""
    if start_date is not None:
        query = query.where(Order.created_at >= datetime.combine(start_date, time.min))
    if end_date is not None:
        query = query.where(Order.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    return query


def _count_where(condition):
    return func.count(case((condition, 1)))


@router.get("/analytics/orders")
async def order_analytics(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> dict[str, Any]:
    query = select(
        func.count(Order.id).label("total_orders"),
        _count_where(Order.status == OrderStatus.PENDING).label("pending_orders"),
        _count_where(Order.status == OrderStatus.PREPARING).label("preparing_orders"),
        _count_where(Order.status == OrderStatus.SERVED).label("served_orders"),
        _count_where(Order.status == OrderStatus.CANCELLED).label("cancelled_orders"),
        _count_where(Order.client_type == ClientType.INTERNAL).label("internal_orders"),
        _count_where(Order.client_type == ClientType.EXTERNAL).label("external_orders"),
    )
    query = _created_between(query, start_date, end_date)

    try:
        row = (await db.execute(query)).mappings().one()
    except Exception as e:
        logger.exception(f"Error computing order analytics: {e}")
        raise server_error("Failed to fetch order analytics", e)

    return dict(row)


@router.get("/analytics/popular_dishes")
async def popular_dishes(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """Most ordered dishes by total quantity, cancelled orders excluded."""
    total_ordered = func.sum(OrderItem.quantity)
    result = await db.execute(
        select(
            Dish.id,
            Dish.name,
            Dish.description,
            Dish.price,
            Section.name.label("section_name"),
            total_ordered.label("total_ordered"),
            func.count(func.distinct(Order.id)).label("times_ordered"),
        )
        .join(Section, Dish.section_id == Section.id)
        .join(OrderItem, OrderItem.dish_id == Dish.id)
        .join(Order, OrderItem.order_id == Order.id)
        .where(Order.status != OrderStatus.CANCELLED)
        .group_by(Dish.id, Dish.name, Dish.description, Dish.price, Section.name)
        .order_by(total_ordered.desc(), Dish.name)
        .limit(limit)
    )
    return [dict(row) for row in result.mappings().all()]


@router.get("/analytics/revenue")
async def revenue(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    restaurant: dict = Depends(get_current_restaurant),
) -> list[dict[str, Any]]:
    """Daily revenue of served orders, newest day first."""
    order_date = func.date(Order.created_at)
    query = (
        select(
            order_date.label("order_date"),
            func.sum(Dish.price * OrderItem.quantity).label("daily_revenue"),
            func.count(func.distinct(Order.id)).label("orders_count"),
        )
        .join(OrderItem, OrderItem.order_id == Order.id)
        .join(Dish, OrderItem.dish_id == Dish.id)
        .where(Order.status == OrderStatus.SERVED)
        .group_by(order_date)
        .order_by(order_date.desc())
    )
    query = _created_between(query, start_date, end_date)

    result = await db.execute(query)
    return [
        {
            "order_date": str(row["order_date"]),
            "daily_revenue": round(float(row["daily_revenue"] or 0), 2),
            "orders_count": row["orders_count"],
        }
        for row in result.mappings().all()
    ]


@router.post("/dishes/rate", status_code=status.HTTP_201_CREATED)
async def rate_dish(body: DishRatingRequest, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    if await db.get(Dish, body.dish_id) is None:
        raise HTTPException(status_code=404, detail="Dish not found")

    client_model = InternalClient if body.client_type == ClientType.INTERNAL else ExternalClient
    if await db.get(client_model, body.client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")

    try:
        db.add(DishRating(**body.model_dump()))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error rating dish #{body.dish_id}: {e}")
        raise server_error("Failed to submit rating", e)

    return {"message": "Rating submitted successfully"}


@router.get("/dishes/{dish_id}/ratings")
async def dish_ratings(dish_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Ratings of a dish, newest first, with the star distribution."""
    result = await db.execute(
        select(DishRating, InternalClient.table_number)
        .outerjoin(
            InternalClient,
            (DishRating.client_type == ClientType.INTERNAL) & (DishRating.client_id == InternalClient.id),
        )
        .where(DishRating.dish_id == dish_id)
        .order_by(DishRating.created_at.desc(), DishRating.id.desc())
    )
    rows = result.all()

    ratings = []
    distribution = {label: 0 for label in STAR_LABELS.values()}
    for rating, table_number in rows:
        distribution[STAR_LABELS[rating.rating]] += 1
        if rating.client_type == ClientType.INTERNAL:
            client_info = f"Table {table_number}" if table_number is not None else "Table"
        else:
            client_info = "Delivery Customer"
        ratings.append({
            "rating": rating.rating,
            "comment": rating.comment,
            "created_at": rating.created_at.isoformat(),
            "client_type": rating.client_type.value,
            "client_info": client_info,
        })

    total = len(rows)
    average = round(sum(r["rating"] for r in ratings) / total, 2) if total else None

    return {
        "ratings": ratings,
        "statistics": {
            "average_rating": average,
            "total_ratings": total,
            **distribution,
        },
    }
