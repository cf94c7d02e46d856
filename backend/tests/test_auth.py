"""
Tests for authentication endpoints: registration and login.
"""

import pytest
from httpx import AsyncClient

TEST_PASSWORD = "Testpass123!"


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns a token and user data without the hash."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "New User",
        "email": "new@example.com",
        "password": "Secure#Pass123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["name"] == "New User"
    assert data["user"]["role"] == "user"
    assert "hashed_password" not in data["user"]


@pytest.mark.asyncio
async def test_register_token_is_usable(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "name": "Fresh User",
        "email": "fresh@example.com",
        "password": "Secure#Pass123",
    })
    body = response.json()
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    bookings = await client.get(f"/api/v1/bookings/user/{body['user']['id']}", headers=headers)
    assert bookings.status_code == 200
    assert bookings.json() == []


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/register", json={
        "name": "Someone",
        "email": "test@example.com",
        "password": "Secure#Pass123",
    })
    assert response.status_code == 409
    assert response.json()["message"] == "User already exists with this email"


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["short", "alllowercase1!", "NoDigits!!", "NoSpecial123"])
async def test_register_weak_password(client: AsyncClient, password):
    response = await client.post("/api/v1/auth/register", json={
        "name": "Weak User",
        "email": "weak@example.com",
        "password": password,
    })
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": TEST_PASSWORD,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == test_user.id

    me = await client.get(
        f"/api/v1/bookings/user/{test_user.id}",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "Wrongpass123!",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "Anypass123!",
    })
    assert response.status_code == 401
