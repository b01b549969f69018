"""
Shared fixtures: an in-memory MongoDB, a recording broadcaster and a
FastAPI test client wired to both.
"""

import asyncio

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from api.main import app
from common.auth import create_access_token, UserRole
from common.auth.passwords import pwd_context
from common.database import get_database
from common.rate_limit import RateLimitService, set_rate_limit_service
from services.realtime import RealtimeBroadcaster, get_broadcaster


class RecordingBroadcaster(RealtimeBroadcaster):
    """Keeps emitted events instead of sending them"""

    def __init__(self):
        super().__init__()
        self.events = []

    async def emit(self, event, data, room):
        self.events.append((event, data, room))

    def of(self, event):
        return [data for name, data, _ in self.events if name == event]


@pytest.fixture
def db():
    return AsyncMongoMockClient()["zenly_test"]


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture(autouse=True)
def fresh_rate_limits():
    set_rate_limit_service(RateLimitService())
    yield
    set_rate_limit_service(None)


@pytest.fixture
def client(db, broadcaster):
    async def override_database():
        return db

    app.dependency_overrides[get_database] = override_database
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(user_id, role=UserRole.USER):
    token = create_access_token(str(user_id), role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    """Insert a user directly and return (id, auth headers)"""
    def _make_user(email="member@example.com", role=UserRole.USER, password="password123", **fields):
        user_id = ObjectId()
        asyncio.run(db.users.insert_one({
            "_id": user_id,
            "email": email,
            "passwordHash": pwd_context.hash(password),
            "name": fields.pop("name", "Member"),
            "role": role.value,
            **fields
        }))
        return str(user_id), auth_header(user_id, role)
    return _make_user
