import os

# Must be set before the application modules read their settings
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "testing"

import pytest
from types import SimpleNamespace
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from xclone.config import settings
from xclone.db.base import Base
from xclone.db.session import get_db
from xclone.main import app
from xclone.services.ai_client import AIClientError, get_ai_client
from xclone.services.auth_service import pwd_context
from xclone.services.redis_service import get_redis
from xclone.utils.errors import APIError
from xclone.websocket.manager import dispatch_committed_pushes
import xclone.models  # noqa: F401

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_OTP = "123456"

# Cheap hashes keep the auth flows fast
pwd_context.update(bcrypt__rounds=4)


class FakeRedis:
    """In-memory stand-in for RedisService"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def setex(self, key, seconds, value):
        self.store[key] = value
        self.ttls[key] = seconds

    async def get(self, key):
        return self.store.get(key)

    async def close(self):
        pass


class FakeAIClient:
    """Records prompts and answers with a canned reply"""

    def __init__(self):
        self.prompts = []
        self.fail = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise AIClientError("provider unavailable")
        return f"Answer #{len(self.prompts)}"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspecting rows; commit before calling the API"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_ai():
    return FakeAIClient()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Fixed OTP codes and a throwaway upload directory"""
    monkeypatch.setattr("xclone.services.user_service.generate_otp", lambda length=6: TEST_OTP)
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))


@pytest.fixture
def overrides(session_factory, fake_redis, fake_ai):
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except APIError:
                await session.rollback()
                raise
            except Exception:
                await session.rollback()
                raise
            finally:
                await dispatch_committed_pushes(session)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_ai_client] = lambda: fake_ai
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register_payload():
    def _payload(full_name: str, email: str) -> dict:
        return {
            "email": email,
            "full_name": full_name,
            "date_of_birth": {"date": 15, "month": 6, "year": 1995},
        }
    return _payload


@pytest.fixture
def make_user(client, register_payload):
    """Register, verify and optionally set a password, returning the signed in user"""
    async def _make(full_name: str = "Alice Smith", email: str = None, password: str = "secret123"):
        email = email or f"{full_name.lower().replace(' ', '.')}@example.com"

        response = await client.post("/api/v1/user/register", json=register_payload(full_name, email))
        assert response.status_code == 201, response.text

        response = await client.post("/api/v1/user/verify-otp", json={"email": email, "otp": TEST_OTP})
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        if password:
            response = await client.post("/api/v1/user/set-password", json={"password": password}, headers=headers)
            assert response.status_code == 200, response.text

        return SimpleNamespace(
            id=data["user"]["id"],
            username=data["user"]["username"],
            email=email,
            password=password,
            headers=headers,
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
        )
    return _make


@pytest.fixture
async def alice(make_user):
    return await make_user("Alice Smith")


@pytest.fixture
async def bob(make_user):
    return await make_user("Bob Jones")


@pytest.fixture
async def carol(make_user):
    return await make_user("Carol White")


@pytest.fixture
def post_tweet(client):
    async def _post(user, content: str = "Hello world", **form):
        data = {"content": content, **{k: str(v) for k, v in form.items()}}
        response = await client.post("/api/v1/tweet/", data=data, headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _post
