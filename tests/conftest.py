import os
import tempfile
from datetime import date

# Configure the app before anything under menuqr reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_MODE"] = "development"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIRECTORY"] = tempfile.mkdtemp(prefix="menuqr-uploads-")
os.environ["DATA_DIRECTORY"] = tempfile.mkdtemp(prefix="menuqr-data-")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from menuqr import models  # noqa: F401
from menuqr.database import Base, get_db
from menuqr.dependencies import get_email_service, get_image_host, get_today
from menuqr.main import app
from menuqr.services.email import MockEmailService
from menuqr.services.storage import MockImageHost

RESTAURANT = {
    "name": "Chez Test",
    "email": "owner@cheztest.com",
    "password": "Secret123",
    "phone_number": "+33612345678",
    "address": "12 Rue de la Paix",
    "description": "Neighbourhood bistro",
}


class FakeExportTask:
    """Stands in for the Celery task; records what would be queued."""

    def __init__(self):
        self.calls = []

    def delay(self, order_data):
        self.calls.append(order_data)


@pytest.fixture
async def test_db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_session

    await engine.dispose()


@pytest.fixture
def email_service():
    return MockEmailService(simulate_latency=False)


@pytest.fixture
def image_host():
    return MockImageHost()


@pytest.fixture(autouse=True)
def export_task(monkeypatch):
    task = FakeExportTask()
    monkeypatch.setattr("menuqr.routes.order.export_order_to_excel", task)
    return task


@pytest.fixture
async def client(test_db, email_service, image_host):
    async def override_get_db():
        async with test_db() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_image_host] = lambda: image_host

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def set_today():
    """Freeze the server's calendar date for the current-menu logic."""
    def _set(day: date):
        app.dependency_overrides[get_today] = lambda: day
    return _set


@pytest.fixture
async def auth_headers(client):
    response = await client.post("/api/auth/register", json=RESTAURANT)
    assert response.status_code == 201

    response = await client.post(
        "/api/auth/login",
        json={"email": RESTAURANT["email"], "password": RESTAURANT["password"]},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
async def seeded_menu(client, auth_headers):
    """Today's menu with two sections and three dishes."""
    today = date.today().isoformat()

    menu = await client.post(
        "/api/menu/add", json={"name": "Daily Menu", "date": today}, headers=auth_headers
    )
    mains = await client.post("/api/section/add", json={"name": "Mains"}, headers=auth_headers)
    desserts = await client.post("/api/section/add", json={"name": "Desserts"}, headers=auth_headers)

    menu_id = menu.json()["menu_id"]
    mains_id = mains.json()["section_id"]
    desserts_id = desserts.json()["section_id"]

    dish_ids = {}
    for name, price, section_id in [
        ("Pasta", 12.5, mains_id),
        ("Steak", 22.0, mains_id),
        ("Tiramisu", 7.0, desserts_id),
    ]:
        response = await client.post(
            "/api/dish/add",
            json={
                "name": name,
                "description": f"House {name.lower()}",
                "price": price,
                "section_id": section_id,
                "menu_id": menu_id,
            },
            headers=auth_headers,
        )
        dish_ids[name] = response.json()["dish_id"]

    return {
        "menu_id": menu_id,
        "sections": {"Mains": mains_id, "Desserts": desserts_id},
        "dishes": dish_ids,
    }
