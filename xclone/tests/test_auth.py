import pytest
from datetime import datetime, timedelta
from sqlalchemy import select, update

from xclone.config import settings
from xclone.models.user import User

OTP = "123456"


async def _get_user(session_factory, email: str) -> User:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_register_user(client, register_payload, session_factory):
    """Registration creates an unverified account with a suggested username"""
    response = await client.post(
        "/api/v1/user/register",
        json=register_payload("New User", "NewUser@Example.com"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status"] == 201
    assert "user_id" in body["data"]

    user = await _get_user(session_factory, "newuser@example.com")
    assert user.is_verified is False
    assert user.username == "newuser"
    assert user.otp_requests == 1
    # stored hashed, never in clear
    assert user.otp_code and user.otp_code != OTP


@pytest.mark.asyncio
async def test_register_duplicate_email(client, register_payload):
    payload = register_payload("Dup User", "dup@example.com")
    assert (await client.post("/api/v1/user/register", json=payload)).status_code == 201

    response = await client.post("/api/v1/user/register", json=payload)

    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_register_rejects_impossible_birth_date(client):
    response = await client.post("/api/v1/user/register", json={
        "email": "feb@example.com",
        "full_name": "Feb User",
        "date_of_birth": {"date": 31, "month": 2, "year": 2000},
    })

    assert response.status_code == 400
    assert response.json()["status"] == 400


@pytest.mark.asyncio
async def test_register_second_user_gets_other_username(client, register_payload, session_factory):
    await client.post("/api/v1/user/register", json=register_payload("Sam Lee", "sam1@example.com"))
    await client.post("/api/v1/user/register", json=register_payload("Sam Lee", "sam2@example.com"))

    first = await _get_user(session_factory, "sam1@example.com")
    second = await _get_user(session_factory, "sam2@example.com")
    assert first.username == "samlee"
    assert second.username.startswith("samlee")
    assert second.username != first.username


@pytest.mark.asyncio
async def test_verify_otp_signs_in(client, register_payload):
    await client.post("/api/v1/user/register", json=register_payload("Otp User", "otp@example.com"))

    response = await client.post("/api/v1/user/verify-otp", json={"email": "otp@example.com", "otp": OTP})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["is_verified"] is True
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert "accessToken" in response.headers.get("set-cookie", "")


@pytest.mark.asyncio
async def test_verify_otp_wrong_code(client, register_payload):
    await client.post("/api/v1/user/register", json=register_payload("Otp User", "otp@example.com"))

    response = await client.post("/api/v1/user/verify-otp", json={"email": "otp@example.com", "otp": "000000"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP"


@pytest.mark.asyncio
async def test_verify_otp_expired(client, register_payload, session_factory):
    await client.post("/api/v1/user/register", json=register_payload("Late User", "late@example.com"))
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == "late@example.com")
            .values(otp_expires_at=datetime.utcnow() - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post("/api/v1/user/verify-otp", json={"email": "late@example.com", "otp": OTP})

    assert response.status_code == 400
    assert response.json()["message"] == "OTP has expired"


@pytest.mark.asyncio
async def test_verify_otp_unknown_email(client):
    response = await client.post("/api/v1/user/verify-otp", json={"email": "ghost@example.com", "otp": OTP})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_verify_otp_twice(client, register_payload):
    """A used code cannot be replayed"""
    await client.post("/api/v1/user/register", json=register_payload("Once User", "once@example.com"))
    await client.post("/api/v1/user/verify-otp", json={"email": "once@example.com", "otp": OTP})

    response = await client.post("/api/v1/user/verify-otp", json={"email": "once@example.com", "otp": OTP})

    assert response.status_code == 400
    assert response.json()["message"] == "No OTP request found"


@pytest.mark.asyncio
async def test_resend_otp_is_throttled(client, register_payload, session_factory):
    await client.post("/api/v1/user/register", json=register_payload("Busy User", "busy@example.com"))

    remaining = []
    for _ in range(settings.MAX_OTP_REQUESTS - 1):
        response = await client.post("/api/v1/user/resend-otp", json={"email": "busy@example.com"})
        assert response.status_code == 200
        remaining.append(response.json()["data"]["remaining_attempts"])
    assert remaining == [3, 2, 1, 0]

    response = await client.post("/api/v1/user/resend-otp", json={"email": "busy@example.com"})
    assert response.status_code == 429

    # the block survives the failed request
    user = await _get_user(session_factory, "busy@example.com")
    assert user.otp_blocked_until is not None

    response = await client.post("/api/v1/user/resend-otp", json={"email": "busy@example.com"})
    assert response.status_code == 429
    assert "Try again after" in response.json()["message"]


@pytest.mark.asyncio
async def test_resend_otp_after_block_expires(client, register_payload, session_factory):
    await client.post("/api/v1/user/register", json=register_payload("Busy User", "busy@example.com"))
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == "busy@example.com")
            .values(otp_requests=5, otp_blocked_until=datetime.utcnow() - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post("/api/v1/user/resend-otp", json={"email": "busy@example.com"})

    assert response.status_code == 200
    assert response.json()["data"]["remaining_attempts"] == settings.MAX_OTP_REQUESTS - 1


@pytest.mark.asyncio
async def test_login_user(client, alice):
    """Test user login"""
    response = await client.post("/api/v1/user/login", json={"email": alice.email, "password": alice.password})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["id"] == alice.id
    assert data["user"]["email"] == alice.email
    assert "hashed_password" not in data["user"]
    assert data["access_token"]


@pytest.mark.asyncio
async def test_login_unverified(client, register_payload):
    await client.post("/api/v1/user/register", json=register_payload("Pending User", "pending@example.com"))

    response = await client.post("/api/v1/user/login", json={"email": "pending@example.com", "password": "whatever"})

    assert response.status_code == 400
    assert response.json()["message"] == "Please verify your email first"


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    response = await client.post("/api/v1/user/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_login_lockout(client, alice, session_factory):
    """Five wrong passwords lock the account even for the right password"""
    for attempt in range(1, settings.MAX_LOGIN_ATTEMPTS):
        response = await client.post("/api/v1/user/login", json={"email": alice.email, "password": "wrong-pass"})
        assert response.status_code == 400
        assert f"{settings.MAX_LOGIN_ATTEMPTS - attempt} attempts remaining" in response.json()["message"]

    response = await client.post("/api/v1/user/login", json={"email": alice.email, "password": "wrong-pass"})
    assert response.status_code == 400
    assert "locked" in response.json()["message"]

    user = await _get_user(session_factory, alice.email)
    assert user.is_locked is True
    assert user.login_attempts == settings.MAX_LOGIN_ATTEMPTS

    response = await client.post("/api/v1/user/login", json={"email": alice.email, "password": alice.password})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_login_after_lock_expires(client, alice, session_factory):
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.id == alice.id)
            .values(is_locked=True, login_attempts=5, lock_until=datetime.utcnow() - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post("/api/v1/user/login", json={"email": alice.email, "password": alice.password})

    assert response.status_code == 200
    user = await _get_user(session_factory, alice.email)
    assert user.is_locked is False
    assert user.login_attempts == 0


@pytest.mark.asyncio
async def test_successful_login_resets_attempts(client, alice, session_factory):
    await client.post("/api/v1/user/login", json={"email": alice.email, "password": "wrong-pass"})
    await client.post("/api/v1/user/login", json={"email": alice.email, "password": alice.password})

    user = await _get_user(session_factory, alice.email)
    assert user.login_attempts == 0
    assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_protected_endpoint(client, alice):
    """Test accessing protected endpoint"""
    response = await client.get("/api/v1/user/current-user", headers=alice.headers)

    assert response.status_code == 200
    assert response.json()["data"]["username"] == alice.username


@pytest.mark.asyncio
async def test_protected_endpoint_without_token(client):
    response = await client.get("/api/v1/user/current-user")

    assert response.status_code == 401
    assert response.json() == {
        "status": 401,
        "data": None,
        "message": "Unauthorized request",
        "success": False,
    }


@pytest.mark.asyncio
async def test_invalid_token(client):
    response = await client.get("/api/v1/user/current-user", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cookie_authentication(client, alice):
    response = await client.get(
        "/api/v1/user/current-user",
        headers={"Cookie": f"accessToken={alice.access_token}"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == alice.id


@pytest.mark.asyncio
async def test_refresh_token_rotation(client, alice):
    response = await client.post("/api/v1/user/refresh-token", json={"refresh_token": alice.refresh_token})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["refresh_token"] != alice.refresh_token

    new_headers = {"Authorization": f"Bearer {data['access_token']}"}
    assert (await client.get("/api/v1/user/current-user", headers=new_headers)).status_code == 200

    # the previous refresh token is spent
    response = await client.post("/api/v1/user/refresh-token", json={"refresh_token": alice.refresh_token})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_rejects_access_token(client, alice):
    response = await client.post("/api/v1/user/refresh-token", json={"refresh_token": alice.access_token})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_missing(client):
    response = await client.post("/api/v1/user/refresh-token")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_blacklists_token(client, alice, fake_redis):
    response = await client.post("/api/v1/user/logout", headers=alice.headers)

    assert response.status_code == 200
    assert f"blacklist:{alice.access_token}" in fake_redis.store
    # the entry lives only as long as the token itself
    assert 0 < fake_redis.ttls[f"blacklist:{alice.access_token}"] <= settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    response = await client.get("/api/v1/user/current-user", headers=alice.headers)
    assert response.status_code == 401

    response = await client.post("/api/v1/user/refresh-token", json={"refresh_token": alice.refresh_token})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_set_password_too_short(client, alice):
    response = await client.post("/api/v1/user/set-password", json={"password": "123"}, headers=alice.headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_login_without_password_set(client, make_user):
    user = await make_user("No Password", password=None)

    response = await client.post("/api/v1/user/login", json={"email": user.email, "password": "anything"})

    assert response.status_code == 400
    assert "attempts remaining" in response.json()["message"]
