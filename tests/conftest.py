"""Shared fixtures: in-memory database, API client and a fake blob store.

- Every test gets a fresh in-memory SQLite database
- get_db is overridden to use it
- blob storage is an in-memory dict, so nothing touches Azure
- the process-local rate limiter is cleared between tests
"""
import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault(
    "AZURE_STORAGE_CONNECTION_STRING",
    "DefaultEndpointsProtocol=https;AccountName=devstore;AccountKey=ZmFrZS1rZXk=;EndpointSuffix=core.windows.net",
)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_REGISTER_MAX", "100")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from docvault.core.database import Base, get_db  # noqa: E402
from docvault.core.rate_limit import rate_limiter  # noqa: E402
from docvault.main import app  # noqa: E402
from docvault.services.azure_blob import blob_service  # noqa: E402

API = "/api/v1"
STRONG_PASSWORD = "Str0ng!Pass"


class FakeBlobStore:
    """Stands in for AzureBlobService inside tests."""

    def __init__(self):
        self.blobs = {}
        self.fail_downloads = False
        self.fail_deletes = False
        self.fail_uploads = False

    async def upload_bytes(self, key, data, content_type, metadata=None):
        if self.fail_uploads:
            raise RuntimeError("storage unavailable")
        self.blobs[key] = {"data": data, "content_type": content_type, "metadata": metadata or {}}
        return f"https://devstore.blob.core.windows.net/vault-documents/{key}"

    async def download_bytes(self, key):
        if self.fail_downloads or key not in self.blobs:
            raise RuntimeError(f"blob {key} unavailable")
        return self.blobs[key]["data"]

    async def delete_blob(self, key):
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        self.blobs.pop(key, None)


@pytest.fixture(autouse=True)
def clear_rate_limits():
    rate_limiter.clear()
    yield
    rate_limiter.clear()


@pytest.fixture
def blob_store(monkeypatch):
    store = FakeBlobStore()
    monkeypatch.setattr(blob_service, "upload_bytes", store.upload_bytes)
    monkeypatch.setattr(blob_service, "download_bytes", store.download_bytes)
    monkeypatch.setattr(blob_service, "delete_blob", store.delete_blob)
    return store


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_factory, blob_store):
    """API client with the DB dependency overridden."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return headers carrying their bearer token."""
    async def _register(username="alice", email=None, password=STRONG_PASSWORD):
        res = await client.post(f"{API}/auth/register", json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
            "confirm_password": password,
        })
        assert res.status_code == 201, res.text
        return {"Authorization": f"Bearer {res.json()['access_token']}"}

    return _register


@pytest.fixture
async def auth_headers(register):
    return await register()


@pytest.fixture
def create_folder(client, auth_headers):
    """Create a folder through the API and return its JSON."""
    async def _create(name, parent_id=None, pin=None, folder_token=None, headers=None):
        body = {"name": name}
        if parent_id is not None:
            body["parent_id"] = parent_id
        if pin is not None:
            body["pin"] = pin
            body["confirm_pin"] = pin

        request_headers = dict(headers or auth_headers)
        if folder_token:
            request_headers["X-Folder-Token"] = folder_token

        res = await client.post(f"{API}/folders", json=body, headers=request_headers)
        assert res.status_code == 201, res.text
        return res.json()["folder"]

    return _create


@pytest.fixture
def open_folder(client, auth_headers):
    """Verify a folder and return its access token."""
    async def _open(folder_id, password=None, folder_token=None, headers=None):
        request_headers = dict(headers or auth_headers)
        if folder_token:
            request_headers["X-Folder-Token"] = folder_token

        body = {"password": password} if password is not None else {}
        res = await client.post(f"{API}/folders/{folder_id}/verify", json=body, headers=request_headers)
        assert res.status_code == 200, res.text
        return res.json()["access_token"]

    return _open


@pytest.fixture
def folder_headers(auth_headers):
    def _headers(folder_token, headers=None):
        return {**(headers or auth_headers), "X-Folder-Token": folder_token}

    return _headers


@pytest.fixture
def upload(client, folder_headers):
    """Upload bytes into a folder and return the document JSON."""
    async def _upload(folder_id, folder_token, filename="report.pdf", content=b"%PDF-1.4 vault", mime="application/pdf"):
        res = await client.post(
            f"{API}/folders/{folder_id}/documents",
            files={"file": (filename, content, mime)},
            headers=folder_headers(folder_token),
        )
        assert res.status_code == 201, res.text
        return res.json()["document"]

    return _upload
