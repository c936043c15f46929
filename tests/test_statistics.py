from datetime import date

import pytest


@pytest.fixture
async def placed_orders(client, auth_headers, seeded_menu):
    """Three orders: one served, one cancelled, one pending (external)."""
    dishes = seeded_menu["dishes"]
    table = (await client.post(
        "/api/order/clients/internal/add", json={"table_number": 2}
    )).json()["client_id"]
    delivery = (await client.post(
        "/api/order/clients/external/add", json={"address": "1 High Street"}
    )).json()["client_id"]

    async def place(client_id, client_type, lines):
        response = await client.post(
            "/api/order/add",
            json={
                "menu_id": seeded_menu["menu_id"],
                "client_id": client_id,
                "client_type": client_type,
                "dishes": [{"dish_id": dishes[name], "quantity": qty} for name, qty in lines],
            },
        )
        return response.json()["order_id"]

    served = await place(table, "internal", [("Pasta", 2), ("Tiramisu", 1)])
    cancelled = await place(table, "internal", [("Steak", 5)])
    await place(delivery, "external", [("Pasta", 1)])

    for order_id, status in ((served, "served"), (cancelled, "cancelled")):
        await client.post(
            "/api/order/update_status",
            json={"order_id": order_id, "status": status},
            headers=auth_headers,
        )

    return {"table": table, "delivery": delivery}


@pytest.mark.asyncio
async def test_order_analytics(client, auth_headers, placed_orders):
    response = await client.get("/api/statistics/analytics/orders", headers=auth_headers)

    assert response.json() == {
        "total_orders": 3,
        "pending_orders": 1,
        "preparing_orders": 0,
        "served_orders": 1,
        "cancelled_orders": 1,
        "internal_orders": 2,
        "external_orders": 1,
    }


@pytest.mark.asyncio
async def test_order_analytics_date_range(client, auth_headers, placed_orders):
    response = await client.get(
        "/api/statistics/analytics/orders",
        params={"start_date": "2001-01-01", "end_date": "2001-12-31"},
        headers=auth_headers,
    )

    assert response.json()["total_orders"] == 0


@pytest.mark.asyncio
async def test_popular_dishes_skip_cancelled(client, auth_headers, placed_orders):
    response = await client.get("/api/statistics/analytics/popular_dishes", headers=auth_headers)

    popular = response.json()
    assert [(d["name"], d["total_ordered"], d["times_ordered"]) for d in popular] == [
        ("Pasta", 3, 2),
        ("Tiramisu", 1, 1),
    ]
    assert popular[0]["section_name"] == "Mains"


@pytest.mark.asyncio
async def test_revenue_counts_served_orders_only(client, auth_headers, placed_orders):
    response = await client.get("/api/statistics/analytics/revenue", headers=auth_headers)

    assert response.json() == [{
        "order_date": date.today().isoformat(),
        "daily_revenue": 32.0,
        "orders_count": 1,
    }]


@pytest.mark.asyncio
async def test_analytics_require_auth(client):
    response = await client.get("/api/statistics/analytics/orders")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rate_dish_and_read_ratings(client, seeded_menu, placed_orders):
    pasta = seeded_menu["dishes"]["Pasta"]

    for rating, client_id, client_type in (
        (5, placed_orders["table"], "internal"),
        (4, placed_orders["delivery"], "external"),
        (5, placed_orders["table"], "internal"),
    ):
        response = await client.post(
            "/api/statistics/dishes/rate",
            json={
                "dish_id": pasta,
                "rating": rating,
                "comment": "Lovely",
                "client_id": client_id,
                "client_type": client_type,
            },
        )
        assert response.status_code == 201
        assert response.json() == {"message": "Rating submitted successfully"}

    body = (await client.get(f"/api/statistics/dishes/{pasta}/ratings")).json()

    assert body["statistics"] == {
        "average_rating": 4.67,
        "total_ratings": 3,
        "five_stars": 2,
        "four_stars": 1,
        "three_stars": 0,
        "two_stars": 0,
        "one_star": 0,
    }
    assert {r["client_info"] for r in body["ratings"]} == {"Table 2", "Delivery Customer"}


@pytest.mark.asyncio
async def test_rate_dish_validation(client, seeded_menu, placed_orders):
    base = {
        "dish_id": seeded_menu["dishes"]["Pasta"],
        "client_id": placed_orders["table"],
        "client_type": "internal",
    }

    too_high = await client.post("/api/statistics/dishes/rate", json={**base, "rating": 6})
    unknown_dish = await client.post(
        "/api/statistics/dishes/rate", json={**base, "dish_id": 999, "rating": 3}
    )

    assert too_high.status_code == 400
    assert unknown_dish.status_code == 404


@pytest.mark.asyncio
async def test_ratings_of_unrated_dish(client, seeded_menu):
    body = (await client.get(f"/api/statistics/dishes/{seeded_menu['dishes']['Steak']}/ratings")).json()

    assert body["ratings"] == []
    assert body["statistics"]["average_rating"] is None
    assert body["statistics"]["total_ratings"] == 0
