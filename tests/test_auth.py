"""
Tests for authentication endpoints.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from auth_backend.auth.tokens import TokenService
from auth_backend.config import get_settings
from auth_backend.main import app
from auth_backend.models.account import Account

HIDDEN_FIELDS = {"password", "passwordHash", "password_hash", "otp", "otpCode", "otpExpiry", "otp_code", "otp_expiry"}


@pytest.mark.asyncio
async def test_signup_success(client: AsyncClient, signup):
    """Test successful signup returns a token and a public profile."""
    response = await signup()
    assert response.status_code == 201
    data = response.json()
    assert data["token"]
    assert data["expiresIn"] == "7d"
    user = data["user"]
    assert user["email"] == "a@x.com"
    assert user["username"] == "alice"
    assert user["loginCount"] == 1
    assert user["lastLogin"] is not None
    assert user["gameStats"] == {"totalPlayTime": 0, "gamesPlayed": 0, "highScore": 0}
    assert HIDDEN_FIELDS.isdisjoint(user)


@pytest.mark.asyncio
async def test_signup_stores_only_a_hash(client: AsyncClient, signup, session_factory):
    """Test the stored password is a bcrypt hash, never the plaintext."""
    await signup(password="secret1")

    async with session_factory() as session:
        account = (await session.execute(select(Account))).scalar_one()

    assert account.password_hash != "secret1"
    assert "secret1" not in account.password_hash
    assert account.password_hash.startswith("$2")


@pytest.mark.asyncio
async def test_signup_normalizes_email(client: AsyncClient, signup):
    """Test email is trimmed and lower-cased, so case variants collide."""
    response = await signup(email="  Mixed@X.COM ")
    assert response.status_code == 201
    assert response.json()["user"]["email"] == "mixed@x.com"

    response = await signup(email="mixed@x.com", username="other")
    assert response.status_code == 400
    assert response.json()["error"] == "Email already registered"


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: AsyncClient, signup):
    """Test signup fails for a registered email and names the field."""
    await signup()
    response = await signup(username="someone")
    assert response.status_code == 400
    assert response.json()["error"] == "Email already registered"


@pytest.mark.asyncio
async def test_signup_duplicate_username(client: AsyncClient, signup):
    """Test signup fails for a taken username and names the field."""
    await signup()
    response = await signup(email="other@x.com")
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Username already taken"
    assert body["message"] == "This username is already in use"


@pytest.mark.asyncio
async def test_signup_password_mismatch(client: AsyncClient):
    """Test signup fails when the confirmation differs, without echoing passwords."""
    response = await client.post(
        "/api/auth/signup",
        json={
            "email": "a@x.com",
            "username": "alice",
            "password": "secret1",
            "confirmPassword": "secret2",
        },
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    detail = next(d for d in body["details"] if d["field"] == "confirmPassword")
    assert detail["message"] == "Password confirmation does not match password"
    assert detail["value"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("email", "not-an-email"),
        ("username", "ab"),
        ("username", "bad name!"),
        ("password", "short"),
        ("password", "lettersonly"),
    ],
)
async def test_signup_validation(client: AsyncClient, field: str, value: str):
    """Test malformed signup input is rejected with field-level detail."""
    payload = {
        "email": "a@x.com",
        "username": "alice",
        "password": "secret1",
        "confirmPassword": "secret1",
    }
    payload[field] = value
    if field == "password":
        payload["confirmPassword"] = value

    response = await client.post("/api/auth/signup", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert field in {d["field"] for d in body["details"]}


@pytest.mark.asyncio
async def test_login_scenario(client: AsyncClient, signup):
    """Test signup then login yields a token for the same account."""
    signup_response = await signup("a@x.com", "alice", "secret1")
    account_id = signup_response.json()["user"]["id"]

    response = await client.post(
        "/api/auth/login",
        json={"email": "a@x.com", "password": "secret1"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["loginCount"] == 2

    claims = TokenService.from_settings(get_settings()).verify(data["token"])
    assert str(claims.account_id) == account_id


@pytest.mark.asyncio
async def test_login_failures_are_generic(client: AsyncClient, signup):
    """Test wrong password and unknown email produce the same 401."""
    await signup()

    wrong_password = await client.post(
        "/api/auth/login",
        json={"email": "a@x.com", "password": "wrong"},
    )
    unknown_email = await client.post(
        "/api/auth/login",
        json={"email": "nobody@x.com", "password": "secret1"},
    )

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["error"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_me_authenticated(auth_client: AsyncClient):
    """Test getting the current profile when authenticated."""
    response = await auth_client.get("/api/auth/me")
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["username"] == "alice"
    assert HIDDEN_FIELDS.isdisjoint(user)


@pytest.mark.asyncio
async def test_me_unauthenticated(client: AsyncClient):
    """Test the missing-token error."""
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Access denied. No token provided."
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_garbage_token(client: AsyncClient):
    response = await client.get(
        "/api/auth/me",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token."


@pytest.mark.asyncio
async def test_me_expired_token(client: AsyncClient, signup):
    """Test an expired token is reported as expired, not invalid."""
    account_id = (await signup()).json()["user"]["id"]
    tokens = TokenService.from_settings(get_settings())
    stale = tokens.issue(uuid.UUID(account_id), now=datetime.utcnow() - timedelta(days=8))

    response = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {stale}"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Token expired."


@pytest.mark.asyncio
async def test_me_token_for_unknown_account(client: AsyncClient):
    """Test a well-signed token for a missing account is rejected."""
    token = TokenService.from_settings(get_settings()).issue(uuid.uuid4())
    response = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token."


@pytest.mark.asyncio
async def test_token_signed_with_other_secret(client: AsyncClient, signup):
    account_id = (await signup()).json()["user"]["id"]
    forged = TokenService("another-secret").issue(uuid.UUID(account_id))

    response = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {forged}"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token."


@pytest.mark.asyncio
async def test_logout_is_advisory(auth_client: AsyncClient):
    """Test logout succeeds and, without revocation, the token keeps working."""
    response = await auth_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["message"] == "Logout successful"

    response = await auth_client.get("/api/auth/me")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_logout_requires_token(client: AsyncClient):
    response = await client.post("/api/auth/logout")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_with_revocation(auth_client: AsyncClient):
    """Test a logged-out token is rejected when revocation is enabled."""
    settings = get_settings().model_copy(update={"revoke_tokens_on_logout": True})
    app.dependency_overrides[get_settings] = lambda: settings

    response = await auth_client.post("/api/auth/logout")
    assert response.status_code == 200

    response = await auth_client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token."


@pytest.mark.asyncio
async def test_refresh_issues_new_token(auth_client: AsyncClient):
    """Test refresh returns a different token and the old one stays valid."""
    old_token = auth_client.headers["Authorization"].removeprefix("Bearer ")

    response = await auth_client.post("/api/auth/refresh")
    assert response.status_code == 200
    data = response.json()
    assert data["token"] != old_token
    assert data["expiresIn"] == "7d"

    response = await auth_client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {data['token']}"},
    )
    assert response.status_code == 200

    response = await auth_client.get("/api/auth/me")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_change_password(auth_client: AsyncClient):
    """Test the password changes only after re-checking the current one."""
    response = await auth_client.post(
        "/api/auth/change-password",
        json={
            "currentPassword": "wrong1",
            "newPassword": "newsecret2",
            "confirmNewPassword": "newsecret2",
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid current password"

    response = await auth_client.post(
        "/api/auth/change-password",
        json={
            "currentPassword": "secret1",
            "newPassword": "newsecret2",
            "confirmNewPassword": "newsecret2",
        },
    )
    assert response.status_code == 200

    old_login = await auth_client.post(
        "/api/auth/login",
        json={"email": "a@x.com", "password": "secret1"},
    )
    new_login = await auth_client.post(
        "/api/auth/login",
        json={"email": "a@x.com", "password": "newsecret2"},
    )
    assert old_login.status_code == 401
    assert new_login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_confirmation_mismatch(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/auth/change-password",
        json={
            "currentPassword": "secret1",
            "newPassword": "newsecret2",
            "confirmNewPassword": "newsecret3",
        },
    )
    assert response.status_code == 400
    assert "confirmNewPassword" in {d["field"] for d in response.json()["details"]}


@pytest.mark.asyncio
async def test_change_password_always_rehashes(auth_client: AsyncClient, session_factory):
    """Test submitting the same password still stores a new hash."""
    async with session_factory() as session:
        before = (await session.execute(select(Account.password_hash))).scalar_one()

    response = await auth_client.post(
        "/api/auth/change-password",
        json={
            "currentPassword": "secret1",
            "newPassword": "secret1",
            "confirmNewPassword": "secret1",
        },
    )
    assert response.status_code == 200

    async with session_factory() as session:
        after = (await session.execute(select(Account.password_hash))).scalar_one()
    assert after != before
