import pytest

from tests.conftest import RESTAURANT


@pytest.mark.asyncio
async def test_register_success(client, email_service):
    response = await client.post("/api/auth/register", json=RESTAURANT)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Restaurant registered successfully"
    assert isinstance(body["restaurant_id"], int)

    # Welcome email goes out as a background task
    assert [m["to"] for m in email_service.outbox] == [RESTAURANT["email"]]


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    await client.post("/api/auth/register", json=RESTAURANT)

    response = await client.post(
        "/api/auth/register", json={**RESTAURANT, "email": RESTAURANT["email"].upper()}
    )

    assert response.status_code == 409
    assert response.json() == {"error": "Email already registered"}


@pytest.mark.asyncio
async def test_register_survives_email_failure(client, email_service):
    email_service.failure_rate = 1.0

    response = await client.post("/api/auth/register", json=RESTAURANT)

    assert response.status_code == 201
    assert email_service.outbox == []


@pytest.mark.asyncio
@pytest.mark.parametrize("field,value", [
    ("name", "X"),
    ("name", "Bad<script>"),
    ("email", "not-an-email"),
    ("password", "short1A"),
    ("password", "alllowercase1"),
    ("password", "NoDigitsHere"),
    ("phone_number", "0123"),
    ("address", "Main St; DROP TABLE"),
])
async def test_register_validation(client, field, value):
    response = await client.post("/api/auth/register", json={**RESTAURANT, field: value})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert any(d["field"] == field for d in body["details"])


@pytest.mark.asyncio
async def test_login_success(client):
    await client.post("/api/auth/register", json=RESTAURANT)

    response = await client.post(
        "/api/auth/login",
        json={"email": "Owner@CHEZTEST.com", "password": RESTAURANT["password"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["token"]
    assert body["restaurant"]["email"] == RESTAURANT["email"]
    assert "password" not in body["restaurant"]


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(client):
    await client.post("/api/auth/register", json=RESTAURANT)

    wrong_password = await client.post(
        "/api/auth/login", json={"email": RESTAURANT["email"], "password": "Wrong1234"}
    )
    unknown_email = await client.post(
        "/api/auth/login", json={"email": "ghost@nowhere.com", "password": "Wrong1234"}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_protected_route_requires_token(client):
    response = await client.post("/api/section/add", json={"name": "Mains"})

    assert response.status_code == 401
    assert response.json()["error"] == "Access token required"


@pytest.mark.asyncio
async def test_protected_route_rejects_bad_token(client):
    response = await client.post(
        "/api/section/add",
        json={"name": "Mains"},
        headers={"Authorization": "Bearer garbage"},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_client_session_token_is_not_an_access_token(client):
    created = await client.post("/api/order/clients/internal/add", json={"table_number": 4})
    session_token = created.json()["session_token"]

    response = await client.get(
        "/api/order/clients/internal",
        headers={"Authorization": f"Bearer {session_token}"},
    )

    assert response.status_code == 403
