"""
Pytest configuration and fixtures for the rota / WhatsApp service tests.
"""
import asyncio
from typing import List, Optional

import pytest

from models.session_models import Group, OutboundMessage
from services.whatsapp.client_base import ChatClient


class FakeChatClient(ChatClient):
    """In-memory chat client whose lifecycle events are emitted by the test."""

    def __init__(
        self,
        chats: Optional[List[Group]] = None,
        auto_ready: bool = False,
        auto_fail: bool = False,
        init_error: Optional[Exception] = None,
    ):
        super().__init__()
        self.chats = list(chats or [])
        self.auto_ready = auto_ready
        self.auto_fail = auto_fail
        self.init_error = init_error
        self.chats_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.initialize_calls = 0
        self.get_chats_calls = 0
        self.sent: List[tuple] = []
        self.destroyed = False

    async def initialize(self):
        self.initialize_calls += 1
        if self.init_error is not None:
            raise self.init_error
        if self.auto_fail:
            self.emit("auth_failure", "bad credentials")
        elif self.auto_ready:
            self.emit("authenticated")
            self.emit("ready")

    async def get_chats(self):
        self.get_chats_calls += 1
        if self.chats_error is not None:
            raise self.chats_error
        return list(self.chats)

    async def send_media(self, chat_id: str, message: OutboundMessage):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((chat_id, message))

    async def destroy(self):
        self.destroyed = True


class FakeClientFactory:
    """Callable handed to SessionManager; builds and remembers FakeChatClients."""

    def __init__(self, chats: Optional[List[Group]] = None, **client_kwargs):
        self.chats = list(chats or [])
        self.client_kwargs = client_kwargs
        self.clients: List[FakeChatClient] = []

    def __call__(self) -> FakeChatClient:
        client = FakeChatClient(chats=self.chats, **self.client_kwargs)
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeChatClient:
        return self.clients[-1]


async def bring_ready(manager, factory: FakeClientFactory):
    """Start an attempt on `manager`, drive it to ready, and return the client."""
    task = asyncio.create_task(manager.ensure_ready())
    await asyncio.sleep(0)
    client = factory.latest
    client.emit("authenticated")
    client.emit("ready")
    return await task


@pytest.fixture
def sample_groups():
    """Chats in the order the automation layer returns them."""
    return [
        Group(id="447700900001@c.us", name="Staff Manager", is_group=False),
        Group(id="120363001@g.us", name="Staff Team"),
        Group(id="120363002@g.us", name="staff updates"),
        Group(id="120363003@g.us", name="Kitchen"),
    ]


@pytest.fixture
def factory(sample_groups):
    return FakeClientFactory(chats=sample_groups)


@pytest.fixture
def database_dir(tmp_path, monkeypatch):
    """Point DATABASE_DIR at a temporary directory."""
    db_dir = tmp_path / "db"
    monkeypatch.setenv("DATABASE_DIR", str(db_dir))
    monkeypatch.setenv("WHATSAPP_DATA_DIR", str(tmp_path / "whatsapp"))
    monkeypatch.setenv("WHATSAPP_AUTO_INIT", "false")
    return db_dir
