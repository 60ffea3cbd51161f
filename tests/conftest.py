"""Test fixtures — in-memory Azure table, fresh feeds, recording toasts.

No Azure account is needed: get_table_client() is monkeypatched to return
FakeTableClient, which implements the four calls the store makes.
"""

import asyncio

import jwt
import pytest
import pytest_asyncio
from azure.core.exceptions import ResourceNotFoundError
from httpx import ASGITransport, AsyncClient

from app.infra import table_client
from app.realtime.feed import NotificationFeed, notification_feed
from app.security import jwt_utils
from app.services.alert_surface import AlertSurface
from app.models.toast import Toast


class FakeTableClient:
    def __init__(self):
        self.entities = {}

    def create_entity(self, entity):
        self.entities[(entity["PartitionKey"], entity["RowKey"])] = dict(entity)

    def query_entities(self, query_filter, parameters=None):
        user_id = parameters["user_id"]
        return [dict(e) for (pk, _), e in self.entities.items() if pk == user_id]

    def get_entity(self, partition_key, row_key):
        try:
            return dict(self.entities[(partition_key, row_key)])
        except KeyError:
            raise ResourceNotFoundError("entity not found")

    def update_entity(self, entity, mode=None):
        key = (entity["PartitionKey"], entity["RowKey"])
        self.entities[key].update(entity)


class RecordingAlertSurface(AlertSurface):
    """Keeps every toast shown, in order."""

    def __init__(self):
        self.toasts = []

    async def show(self, title, description=None, action=None):
        toast = Toast(id=str(len(self.toasts)), title=title, description=description, action=action)
        self.toasts.append(toast)
        return toast

    async def wait_for(self, count, rounds=100):
        for _ in range(rounds):
            if len(self.toasts) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} toasts, got {len(self.toasts)}")


def make_token(sub, **claims):
    return jwt.encode({"sub": sub, **claims}, jwt_utils.JWT_SECRET, algorithm=jwt_utils.JWT_ALG)


def auth_headers(sub, **claims):
    return {"Authorization": f"Bearer {make_token(sub, **claims)}"}


@pytest.fixture()
def table(monkeypatch):
    fake = FakeTableClient()
    monkeypatch.setattr(table_client, "get_table_client", lambda: fake)
    return fake


@pytest.fixture()
def feed():
    return NotificationFeed()


@pytest.fixture()
def alerts():
    return RecordingAlertSurface()


@pytest.fixture()
def global_feed():
    """The app-wide feed; must be left without subscriptions."""
    yield notification_feed
    assert notification_feed.subscriber_count() == 0


@pytest_asyncio.fixture()
async def client(table):
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
