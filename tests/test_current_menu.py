import pytest
from datetime import date


async def _add_menu(client, headers, name, day):
    response = await client.post(
        "/api/menu/add", json={"name": name, "date": day}, headers=headers
    )
    assert response.status_code == 201
    return response.json()["menu_id"]


@pytest.mark.asyncio
async def test_current_menu_empty_database(client, set_today):
    set_today(date(2025, 1, 5))

    response = await client.get("/api/menu/current")

    assert response.status_code == 404
    assert response.json() == {"error": "Menu not found"}


@pytest.mark.asyncio
async def test_current_menu_matches_today(client, auth_headers, set_today):
    await _add_menu(client, auth_headers, "New Year", "2025-01-01")
    sunday_id = await _add_menu(client, auth_headers, "Sunday", "2025-01-05")
    set_today(date(2025, 1, 5))

    response = await client.get("/api/menu/current")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == sunday_id
    assert body["date"] == "2025-01-05"
    assert body["meta"] == {
        "is_todays_menu": True,
        "is_fallback": False,
        "server_date": "2025-01-05",
        "menu_date": "2025-01-05",
    }


@pytest.mark.asyncio
async def test_current_menu_falls_back_to_most_recent(client, auth_headers, set_today):
    await _add_menu(client, auth_headers, "New Year", "2025-01-01")
    sunday_id = await _add_menu(client, auth_headers, "Sunday", "2025-01-05")
    set_today(date(2025, 1, 10))

    response = await client.get("/api/menu/current")

    body = response.json()
    assert body["id"] == sunday_id
    assert body["meta"]["is_fallback"] is True
    assert body["meta"]["is_todays_menu"] is False
    assert body["meta"]["server_date"] == "2025-01-10"


@pytest.mark.asyncio
async def test_current_menu_older_date_still_matches(client, auth_headers, set_today):
    new_year_id = await _add_menu(client, auth_headers, "New Year", "2025-01-01")
    await _add_menu(client, auth_headers, "Sunday", "2025-01-05")
    set_today(date(2025, 1, 1))

    body = (await client.get("/api/menu/current")).json()

    assert body["id"] == new_year_id
    assert body["meta"]["is_todays_menu"] is True


@pytest.mark.asyncio
async def test_current_menu_tree_with_images(client, auth_headers, seeded_menu, set_today):
    set_today(date.today())
    pasta_id = seeded_menu["dishes"]["Pasta"]

    for name in ("one.png", "two.png"):
        response = await client.post(
            "/api/dish/image/upload",
            data={"dish_id": str(pasta_id)},
            files={"image": (name, b"\x89PNG fake image", "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 201

    body = (await client.get("/api/menu/current")).json()

    # Sections ordered by name
    assert [s["name"] for s in body["sections"]] == ["Desserts", "Mains"]
    mains = body["sections"][1]
    assert [d["name"] for d in mains["dishes"]] == ["Pasta", "Steak"]

    pasta = mains["dishes"][0]
    assert len(pasta["images"]) == 2
    assert all(url.startswith("https://mock-cdn.menuqr.local/") for url in pasta["images"])
    assert mains["dishes"][1]["images"] == []


@pytest.mark.asyncio
async def test_current_menu_accepts_invalid_token(client, auth_headers, set_today):
    await _add_menu(client, auth_headers, "Sunday", "2025-01-05")
    set_today(date(2025, 1, 5))

    response = await client.get(
        "/api/menu/current", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 200
