"""Login and token handling."""
import pytest
from httpx import AsyncClient
from jose import jwt

from backend.app.core.security import Role
from tests.helpers import TEST_PASSWORD


@pytest.mark.asyncio
async def test_login_returns_usable_token(client: AsyncClient, superuser):
    resp = await client.post("/api/auth/login", json={"username": "reviewer", "password": TEST_PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"] == {
        "id": superuser.id,
        "username": "reviewer",
        "role": "superuser",
        "department": "Quality",
    }
    claims = jwt.get_unverified_claims(body["token"])
    assert claims["userId"] == superuser.id
    assert claims["role"] == "superuser"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "reviewer"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"username": "alice", "password": "wrong"},
    {"username": "nobody", "password": TEST_PASSWORD},
    {"username": "alice"},
    {},
])
async def test_bad_credentials(client: AsyncClient, reporter, payload):
    resp = await client.post("/api/auth/login", json=payload)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials", "code": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_disabled_account_refused(client: AsyncClient, make_user):
    await make_user("frank", Role.USER, is_active=False)
    resp = await client.post("/api/auth/login", json={"username": "frank", "password": TEST_PASSWORD})
    assert resp.status_code == 403
    assert resp.json() == {"error": "Account is disabled", "code": "ACCOUNT_DISABLED"}


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Bearer not-a-jwt", "Bearer ", "Basic YWxpY2U6cHc="])
async def test_malformed_tokens(client: AsyncClient, header):
    resp = await client.get("/api/incidents", headers={"Authorization": header})
    assert resp.status_code == 401
