"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- A throwaway SQLite database per test, wired into the app's ``get_db``
- FakeRedis standing in for the PIN lockout store
- A local storage adapter rooted in the test's tmp_path
- Helpers to sign up users and upload assets through the API
"""

from __future__ import annotations

import os
import tempfile

# Environment defaults: must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-boot")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com,Boss@Example.com")
os.environ.setdefault("PIN_HASH_ROUNDS", "4")
os.environ.setdefault("PIN_ATTEMPT_LIMIT", "3")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("SHARE_RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("LOCAL_UPLOAD_DIR", tempfile.mkdtemp(prefix="dam-uploads-"))
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api import deps
from app.core.limiter import limiter
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models import Asset, AssetType, User, UserRole, Visibility
from app.services.storage.adapter import LocalFileSystemAdapter
from app.utils import pin_attempts

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
DEFAULT_PASSWORD = "Password123!"


# ---------------------------------------------------------------------------
# FakeRedis: the subset of redis.asyncio.Redis used by the lockout counters
# ---------------------------------------------------------------------------


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def incr(self, key: str) -> int:
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        return key in self.store

    async def setex(self, key: str, seconds: int, value: Any) -> bool:
        self.store[key] = str(value)
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Shared pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    redis = FakeRedis()
    monkeypatch.setattr(pin_attempts, "get_redis_client", lambda: redis)
    return redis


@pytest.fixture
def session_factory(tmp_path):
    db_path = tmp_path / "dam.sqlite"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def storage(tmp_path) -> LocalFileSystemAdapter:
    return LocalFileSystemAdapter(
        base_path=str(tmp_path / "uploads"),
        base_url="http://testserver",
        signing_key=os.environ["SECRET_KEY"],
    )


@pytest.fixture
def client(session_factory, storage) -> TestClient:
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[deps.get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(
    client: TestClient,
    email: str,
    *,
    name: str = "Test User",
    password: str = DEFAULT_PASSWORD,
) -> dict:
    resp = client.post("/api/v1/auth/signup", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def signup_token(client: TestClient, email: str, **kwargs) -> str:
    return signup(client, email, **kwargs)["access_token"]


def upload(
    client: TestClient,
    token: str,
    *,
    filename: str = "photo.png",
    content: bytes = PNG_BYTES,
    asset_type: str = "image",
    visibility: str | None = None,
    pin: str | None = None,
    tags: list[str] | None = None,
    name: str | None = None,
):
    data: dict[str, str] = {"type": asset_type}
    if visibility is not None:
        data["visibility"] = visibility
    if pin is not None:
        data["pin"] = pin
    if tags is not None:
        data["tags"] = json.dumps(tags)
    if name is not None:
        data["name"] = name
    return client.post(
        "/api/v1/assets/upload",
        headers=auth_headers(token),
        files={"file": (filename, content, "image/png")},
        data=data,
    )


def upload_ok(client: TestClient, token: str, **kwargs) -> dict:
    resp = upload(client, token, **kwargs)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Direct database factories for service-level tests
# ---------------------------------------------------------------------------


async def create_user(session, *, email: str = "owner@example.com", role: UserRole = UserRole.USER) -> User:
    user = User(email=email, name="Owner", hashed_password="not-a-real-hash", role=role, token_version=0)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_asset(
    session,
    owner: User,
    *,
    visibility: Visibility = Visibility.PRIVATE,
    share_token: str | None = None,
    pin_hash: str | None = None,
    object_key: str | None = None,
) -> Asset:
    asset = Asset(
        owner_id=owner.id,
        name="photo.png",
        asset_type=AssetType.IMAGE,
        size_label="40 B",
        size_bytes=40,
        tags=[],
        object_key=object_key or f"users/{owner.id}/photo.png",
        content_type="image/png",
        visibility=visibility,
        pin_hash=pin_hash,
        share_token=share_token,
        views=0,
        downloads=0,
    )
    session.add(asset)
    await session.commit()
    await session.refresh(asset)
    return asset


@pytest.fixture
def rsa_key_files(tmp_path) -> tuple[str, str]:
    """Write a throwaway RSA key pair and return ``(private_path, public_path)``."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    priv_file = tmp_path / "priv.pem"
    pub_file = tmp_path / "pub.pem"
    priv_file.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    pub_file.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return str(priv_file), str(pub_file)
