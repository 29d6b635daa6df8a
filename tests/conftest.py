"""Pytest configuration and fixtures."""

import os

# Cheap bcrypt cost and a fixed secret, set before settings are cached
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")

from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.database import get_user_directory  # noqa: E402
from src.main import app  # noqa: E402
from src.models.user import UserRecord  # noqa: E402
from src.services.auth import PasswordHasher, TokenService  # noqa: E402
from src.services.identity import IdentityService  # noqa: E402
from src.services.user_directory import (  # noqa: E402
    UNIQUE_FIELDS,
    DuplicateKeyViolation,
    UserDirectory,
)

TEST_PASSWORD = "Str0ng!Pass"  # noqa: S105


class AuthHeaders(dict):
    """Dict subclass that also stores user info."""

    def __init__(self, *args, user_id: str | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


class InMemoryUserDirectory(UserDirectory):
    """User directory kept in a dict, with the same unique-index rules as MongoDB."""

    def __init__(self):
        self.records: dict[str, UserRecord] = {}

    def _check_unique(self, record: UserRecord, exclude_id: str | None = None) -> None:
        for other in self.records.values():
            if other.id == exclude_id:
                continue
            for field in UNIQUE_FIELDS:
                if getattr(other, field) == getattr(record, field):
                    raise DuplicateKeyViolation(field)

    async def find_by_id(self, user_id):
        return self.records.get(user_id)

    async def find_by_username(self, username):
        return next((r for r in self.records.values() if r.username == username), None)

    async def find_by_email(self, email):
        return next((r for r in self.records.values() if r.email == email), None)

    async def insert(self, record):
        self._check_unique(record)
        stored = record.model_copy(update={"id": str(ObjectId())})
        self.records[stored.id] = stored
        return stored

    async def update_by_id(self, user_id, changes):
        current = self.records.get(user_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self._check_unique(updated, exclude_id=user_id)
        self.records[user_id] = updated
        return updated

    async def delete_by_id(self, user_id):
        return self.records.pop(user_id, None) is not None

    async def list_users(self, role_id=None, skip=0, limit=10):
        users = [r for r in self.records.values() if role_id is None or r.role_id == role_id]
        users.sort(key=lambda r: r.registered_at, reverse=True)
        return users[skip : skip + limit]

    async def count(self, role_id=None):
        return sum(1 for r in self.records.values() if role_id is None or r.role_id == role_id)


def make_registration(**overrides) -> dict:
    """Build a valid registration body."""
    payload = {
        "roleId": 1,
        "firstName": "Alice",
        "lastName": "Smith",
        "username": "alice",
        "mobile": "+15551234567",
        "email": "alice@x.com",
        "password": TEST_PASSWORD,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def registration():
    """Factory for valid registration bodies."""
    return make_registration


@pytest.fixture
def directory():
    """Fresh in-memory user directory."""
    return InMemoryUserDirectory()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens():
    return TokenService(secret="test-secret")


@pytest.fixture
def identity_service(directory, hasher, tokens):
    return IdentityService(directory, hasher, tokens)


@pytest.fixture
def client(directory):
    """Create a test client backed by the in-memory directory."""
    app.dependency_overrides[get_user_directory] = lambda: directory
    with (
        patch("src.main.init_database", new=AsyncMock()),
        patch("src.main.close_database", new=AsyncMock()),
        TestClient(app) as test_client,
    ):
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Register and log in a user, returning auth headers with user info."""
    response = client.post("/api/v1/users/register", json=make_registration())
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = client.post(
        "/api/v1/users/login", json={"usernameOrEmail": "alice", "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    token = response.json()["token"]

    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user_id, email="alice@x.com")
