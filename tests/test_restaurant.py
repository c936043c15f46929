from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from menuqr.models import Order, OrderStatus
from tests.conftest import RESTAURANT


@pytest.mark.asyncio
async def test_profile(client, auth_headers):
    response = await client.get("/api/restaurant/profile", headers=auth_headers)

    assert response.status_code == 200
    profile = response.json()
    assert profile["name"] == RESTAURANT["name"]
    assert profile["email"] == RESTAURANT["email"]
    assert "password" not in profile
    assert "token" not in profile


@pytest.mark.asyncio
async def test_profile_requires_auth(client):
    assert (await client.get("/api/restaurant/profile")).status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/restaurant/profile", "/api/restaurant/profile/modify"])
async def test_update_profile(client, auth_headers, path):
    response = await client.post(
        path,
        json={"name": "Chez Test & Fils", "description": "Now with a terrace"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    profile = (await client.get("/api/restaurant/profile", headers=auth_headers)).json()
    assert profile["name"] == "Chez Test & Fils"
    assert profile["description"] == "Now with a terrace"
    assert profile["phone_number"] == RESTAURANT["phone_number"]


@pytest.mark.asyncio
async def test_update_profile_email_taken(client, auth_headers):
    await client.post(
        "/api/auth/register", json={**RESTAURANT, "email": "other@place.com"}
    )

    response = await client.post(
        "/api/restaurant/profile", json={"email": "other@place.com"}, headers=auth_headers
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_logo_upload_replaces_previous(client, auth_headers, image_host):
    profile = (await client.get("/api/restaurant/profile", headers=auth_headers)).json()

    first = await client.post(
        "/api/restaurant/logo/upload",
        files={"logo": ("logo.png", b"first-logo", "image/png")},
        headers=auth_headers,
    )
    second = await client.post(
        "/api/restaurant/logo/upload",
        files={"logo": ("logo.png", b"second-logo", "image/png")},
        headers=auth_headers,
    )

    assert first.status_code == second.status_code == 201
    assert "/restaurant_logos/" in second.json()["cloudinary_url"]
    assert not Path(first.json()["local_path"]).exists()
    assert len(image_host.destroyed) == 1
    assert len(image_host.hosted) == 1

    logo = (await client.get(f"/api/restaurant/{profile['id']}/logo", headers=auth_headers)).json()
    assert logo == {"image_url": second.json()["cloudinary_url"]}


@pytest.mark.asyncio
async def test_logo_kept_when_commit_fails(client, auth_headers, image_host, monkeypatch):
    profile = (await client.get("/api/restaurant/profile", headers=auth_headers)).json()
    first = await client.post(
        "/api/restaurant/logo/upload",
        files={"logo": ("logo.png", b"first-logo", "image/png")},
        headers=auth_headers,
    )

    async def failing_commit(self):
        raise RuntimeError("database unavailable")

    with monkeypatch.context() as m:
        m.setattr(AsyncSession, "commit", failing_commit)
        second = await client.post(
            "/api/restaurant/logo/upload",
            files={"logo": ("logo.png", b"second-logo", "image/png")},
            headers=auth_headers,
        )

    assert second.status_code == 500
    assert second.json()["error"] == "Failed to upload logo"
    # Only the rejected upload is destroyed; the current logo stays intact
    assert len(image_host.destroyed) == 1
    assert len(image_host.hosted) == 1
    assert Path(first.json()["local_path"]).exists()

    logo = (await client.get(f"/api/restaurant/{profile['id']}/logo", headers=auth_headers)).json()
    assert logo == {"image_url": first.json()["cloudinary_url"]}


@pytest.mark.asyncio
async def test_logo_missing(client, auth_headers):
    response = await client.get("/api/restaurant/999/logo", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "No logo found for this restaurant"}


@pytest.mark.asyncio
async def test_export_and_import_menu(client, auth_headers, seeded_menu):
    exported = await client.get(
        f"/api/restaurant/export/{seeded_menu['menu_id']}", headers=auth_headers
    )
    assert exported.status_code == 200
    snapshot = exported.json()
    assert snapshot["total_dishes"] == 3

    imported = await client.post(
        "/api/restaurant/import",
        json={"menu_data": snapshot, "new_date": "2031-05-01", "new_name": "Imported"},
        headers=auth_headers,
    )

    assert imported.status_code == 201
    body = imported.json()
    assert body["dishes_imported"] == 3
    assert body["sections_imported"] == 2

    # Existing sections are reused by name
    sections = (await client.get("/api/section/allSections")).json()
    assert len(sections) == 2

    dishes = (await client.get(f"/api/dish/menus/{body['new_menu_id']}/dishes")).json()
    assert sorted(d["name"] for d in dishes) == ["Pasta", "Steak", "Tiramisu"]


@pytest.mark.asyncio
async def test_import_creates_missing_sections(client, auth_headers):
    response = await client.post(
        "/api/restaurant/import",
        json={
            "menu_data": {
                "menu": {"name": "Foreign"},
                "sections": [{"id": 41, "name": "Tapas"}],
                "dishes": [{"name": "Patatas", "price": 5, "section_id": 41}],
            },
            "new_date": "2031-06-01",
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert [s["name"] for s in (await client.get("/api/section/allSections")).json()] == ["Tapas"]
    dishes = (await client.get(f"/api/dish/menus/{response.json()['new_menu_id']}/dishes")).json()
    assert dishes[0]["section_name"] == "Tapas"


@pytest.mark.asyncio
async def test_export_unknown_menu(client, auth_headers):
    response = await client.get("/api/restaurant/export/999", headers=auth_headers)

    assert response.status_code == 404


async def _finished_order(client, auth_headers, seeded_menu, client_id, dish, quantity, status="served"):
    created = await client.post(
        "/api/order/add",
        json={
            "menu_id": seeded_menu["menu_id"],
            "client_id": client_id,
            "client_type": "internal",
            "dishes": [{"dish_id": seeded_menu["dishes"][dish], "quantity": quantity}],
        },
    )
    order_id = created.json()["order_id"]
    await client.post(
        "/api/order/update_status",
        json={"order_id": order_id, "status": status},
        headers=auth_headers,
    )
    return order_id


async def _alerts(client, auth_headers, **params):
    response = await client.get("/api/restaurant/inventory/alerts", params=params, headers=auth_headers)
    assert response.status_code == 200
    return {a["name"]: (a["alert_type"], a["times_ordered"]) for a in response.json()["alerts"]}


@pytest.mark.asyncio
async def test_inventory_alerts(client, auth_headers, seeded_menu):
    table = (await client.post("/api/order/clients/internal/add", json={"table_number": 1})).json()
    await _finished_order(client, auth_headers, seeded_menu, table["client_id"], "Pasta", 5)
    await _finished_order(client, auth_headers, seeded_menu, table["client_id"], "Steak", 1, status="cancelled")
    await _finished_order(client, auth_headers, seeded_menu, table["client_id"], "Tiramisu", 2)

    alerts = await _alerts(client, auth_headers)

    assert alerts == {
        "Steak": ("never_ordered", 0),
        "Tiramisu": ("low_demand", 2),
    }


@pytest.mark.asyncio
async def test_inventory_alerts_window(client, auth_headers, seeded_menu, test_db):
    table = (await client.post("/api/order/clients/internal/add", json={"table_number": 1})).json()
    order_id = await _finished_order(client, auth_headers, seeded_menu, table["client_id"], "Pasta", 4)
    async with test_db() as session:
        await session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(created_at=datetime.now() - timedelta(days=30))
        )
        await session.commit()

    assert (await _alerts(client, auth_headers))["Pasta"] == ("never_ordered", 0)
    assert "Pasta" not in await _alerts(client, auth_headers, days=60)


@pytest.mark.asyncio
async def test_backup(client, auth_headers, seeded_menu):
    response = await client.get("/api/restaurant/backup", headers=auth_headers)

    body = response.json()
    assert body["version"] == "1.0"
    assert body["restaurant"]["email"] == RESTAURANT["email"]
    assert len(body["menus"]) == 1
    assert len(body["dishes"]) == 3
    assert body["orders"] == []


@pytest.mark.asyncio
async def test_cleanup_removes_old_finished_orders(client, auth_headers, seeded_menu, test_db):
    table = await client.post("/api/order/clients/internal/add", json={"table_number": 1})
    order_ids = []
    for _ in range(2):
        created = await client.post(
            "/api/order/add",
            json={
                "menu_id": seeded_menu["menu_id"],
                "client_id": table.json()["client_id"],
                "client_type": "internal",
                "dishes": [{"dish_id": seeded_menu["dishes"]["Pasta"], "quantity": 1}],
            },
        )
        order_ids.append(created.json()["order_id"])

    old, recent = order_ids
    async with test_db() as session:
        await session.execute(
            update(Order)
            .where(Order.id.in_(order_ids))
            .values(status=OrderStatus.SERVED)
        )
        await session.execute(
            update(Order)
            .where(Order.id == old)
            .values(created_at=datetime.now() - timedelta(days=120))
        )
        await session.commit()

    response = await client.post(
        "/api/restaurant/maintenance/cleanup", json={"days_old": 90}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["orders_deleted"] == 1
    assert (await client.get(f"/api/order/{old}")).status_code == 404
    assert (await client.get(f"/api/order/{recent}")).status_code == 200
