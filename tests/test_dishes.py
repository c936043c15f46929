from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession


async def _upload(client, headers, dish_id, name="pasta.png", data=b"png-bytes", content_type="image/png"):
    return await client.post(
        "/api/dish/image/upload",
        data={"dish_id": str(dish_id)},
        files={"image": (name, data, content_type)},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_add_dish_checks_references(client, auth_headers, seeded_menu):
    base = {"name": "Soup", "price": 6.0}

    no_menu = await client.post(
        "/api/dish/add",
        json={**base, "menu_id": 999, "section_id": seeded_menu["sections"]["Mains"]},
        headers=auth_headers,
    )
    no_section = await client.post(
        "/api/dish/add",
        json={**base, "menu_id": seeded_menu["menu_id"], "section_id": 999},
        headers=auth_headers,
    )
    negative = await client.post(
        "/api/dish/add",
        json={
            **base,
            "price": -1,
            "menu_id": seeded_menu["menu_id"],
            "section_id": seeded_menu["sections"]["Mains"],
        },
        headers=auth_headers,
    )

    assert no_menu.status_code == 404
    assert no_menu.json() == {"error": "Menu not found"}
    assert no_section.status_code == 404
    assert negative.status_code == 400


@pytest.mark.asyncio
async def test_get_dish(client, seeded_menu):
    response = await client.get(f"/api/dish/{seeded_menu['dishes']['Pasta']}")
    missing = await client.get("/api/dish/999")

    assert response.json()["name"] == "Pasta"
    assert response.json()["section_name"] == "Mains"
    assert missing.status_code == 404
    assert missing.json() == {"error": "Dish not found"}


@pytest.mark.asyncio
async def test_search_dishes(client, seeded_menu):
    by_text = (await client.get("/api/dish/search", params={"query": "tiram"})).json()
    by_price = (await client.get(
        "/api/dish/search", params={"min_price": 10, "max_price": 15}
    )).json()
    by_section = (await client.get(
        "/api/dish/search", params={"section_id": seeded_menu["sections"]["Mains"]}
    )).json()

    assert [d["name"] for d in by_text] == ["Tiramisu"]
    assert by_text[0]["menu_name"] == "Daily Menu"
    assert [d["name"] for d in by_price] == ["Pasta"]
    assert [d["name"] for d in by_section] == ["Pasta", "Steak"]


@pytest.mark.asyncio
async def test_modify_dish(client, auth_headers, seeded_menu):
    dish_id = seeded_menu["dishes"]["Steak"]

    response = await client.post(
        "/api/dish/modify",
        json={
            "dish_id": dish_id,
            "name": "Ribeye",
            "description": "300g",
            "price": 27.5,
            "section_id": seeded_menu["sections"]["Mains"],
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    dish = (await client.get(f"/api/dish/{dish_id}")).json()
    assert dish["name"] == "Ribeye"
    assert dish["price"] == 27.5


@pytest.mark.asyncio
async def test_bulk_add(client, auth_headers, seeded_menu):
    mains_id = seeded_menu["sections"]["Mains"]

    response = await client.post(
        "/api/dish/bulk_add",
        json={
            "menu_id": seeded_menu["menu_id"],
            "dishes": [
                {"name": "Risotto", "price": 15, "section_id": mains_id},
                {"name": "Gnocchi", "price": 13, "section_id": mains_id},
            ],
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json() == {"message": "2 dishes added successfully"}
    dishes = (await client.get(f"/api/dish/menus/{seeded_menu['menu_id']}/dishes")).json()
    assert len(dishes) == 5


@pytest.mark.asyncio
async def test_bulk_add_requires_section(client, auth_headers, seeded_menu):
    response = await client.post(
        "/api/dish/bulk_add",
        json={"menu_id": seeded_menu["menu_id"], "dishes": [{"name": "Orphan"}]},
        headers=auth_headers,
    )

    assert response.status_code == 400
    dishes = (await client.get(f"/api/dish/menus/{seeded_menu['menu_id']}/dishes")).json()
    assert len(dishes) == 3


@pytest.mark.asyncio
async def test_upload_dish_image(client, auth_headers, seeded_menu, image_host):
    dish_id = seeded_menu["dishes"]["Pasta"]

    response = await _upload(client, auth_headers, dish_id)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Dish image uploaded successfully"
    assert body["cloudinary_url"].startswith("https://mock-cdn.menuqr.local/image/upload/dish_images/")
    assert Path(body["local_path"]).name.startswith(f"dish_{dish_id}_")
    assert Path(body["local_path"]).read_bytes() == b"png-bytes"
    assert len(image_host.hosted) == 1

    images = (await client.get(f"/api/dish/{dish_id}/images")).json()
    assert images == [{"image_url": body["cloudinary_url"]}]


@pytest.mark.asyncio
async def test_upload_rejects_bad_files(client, auth_headers, seeded_menu):
    dish_id = seeded_menu["dishes"]["Pasta"]

    not_image = await _upload(client, auth_headers, dish_id, "notes.txt", b"hello", "text/plain")
    too_big = await _upload(client, auth_headers, dish_id, data=b"x" * (5 * 1024 * 1024 + 1))
    unknown_dish = await _upload(client, auth_headers, 999)

    assert not_image.status_code == 400
    assert not_image.json()["error"] == "Image upload failed"
    assert too_big.status_code == 400
    assert unknown_dish.status_code == 404


@pytest.mark.asyncio
async def test_upload_host_failure_leaves_nothing_behind(client, auth_headers, seeded_menu, image_host):
    image_host.fail_uploads = True
    dish_id = seeded_menu["dishes"]["Pasta"]

    response = await _upload(client, auth_headers, dish_id)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to upload dish image"
    assert (await client.get(f"/api/dish/{dish_id}/images")).json() == []


async def _failing_commit(self):
    raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_upload_discarded_when_commit_fails(client, auth_headers, seeded_menu, image_host, monkeypatch):
    dish_id = seeded_menu["dishes"]["Pasta"]

    with monkeypatch.context() as m:
        m.setattr(AsyncSession, "commit", _failing_commit)
        response = await _upload(client, auth_headers, dish_id)

    assert response.status_code == 500
    assert len(image_host.destroyed) == 1
    assert image_host.hosted == {}
    assert (await client.get(f"/api/dish/{dish_id}/images")).json() == []


@pytest.mark.asyncio
async def test_remove_dish_image(client, auth_headers, seeded_menu, image_host):
    dish_id = seeded_menu["dishes"]["Pasta"]
    uploaded = (await _upload(client, auth_headers, dish_id)).json()

    response = await client.post(
        "/api/dish/image/remove",
        json={"dish_id": dish_id, "image_url": uploaded["cloudinary_url"]},
        headers=auth_headers,
    )
    again = await client.post(
        "/api/dish/image/remove",
        json={"dish_id": dish_id, "image_url": uploaded["cloudinary_url"]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert not Path(uploaded["local_path"]).exists()
    assert image_host.hosted == {}
    assert again.status_code == 404
    assert again.json() == {"error": "Image not found"}


@pytest.mark.asyncio
async def test_delete_dish_destroys_images(client, auth_headers, seeded_menu, image_host):
    dish_id = seeded_menu["dishes"]["Pasta"]
    uploaded = (await _upload(client, auth_headers, dish_id)).json()

    response = await client.post("/api/dish/delete", json={"dish_id": dish_id}, headers=auth_headers)

    assert response.status_code == 200
    assert len(image_host.destroyed) == 1
    assert not Path(uploaded["local_path"]).exists()
    assert (await client.get(f"/api/dish/{dish_id}")).status_code == 404
