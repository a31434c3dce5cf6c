"""Tests for the WhatsApp session lifecycle state machine."""

import asyncio
import io

import pytest

from conftest import FakeClientFactory, bring_ready
from models.session_models import QRChallenge, SessionStatus
from services.whatsapp.errors import AuthFailureError, InitTimeoutError, TransportError
from services.whatsapp.qr_notifier import QRNotifier
from services.whatsapp.session_manager import SessionManager


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(self, factory):
        manager = SessionManager(factory)
        tasks = [asyncio.create_task(manager.ensure_ready()) for _ in range(5)]
        await asyncio.sleep(0)

        assert len(factory.clients) == 1
        assert manager.state is SessionStatus.CONNECTING

        client = factory.latest
        client.emit("qr", "2@first")
        assert manager.state is SessionStatus.AWAITING_SCAN
        client.emit("qr", "2@second")
        assert manager.state is SessionStatus.AWAITING_SCAN
        client.emit("authenticated")
        assert manager.state is SessionStatus.AUTHENTICATED
        assert not manager.is_ready()
        client.emit("ready")

        results = await asyncio.gather(*tasks)
        assert all(result is client for result in results)
        assert manager.is_ready()
        assert manager.attempts == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_ready_session_is_returned_without_new_attempt(self, factory):
        manager = SessionManager(factory)
        client = await bring_ready(manager, factory)

        assert await manager.ensure_ready() is client
        assert len(factory.clients) == 1
        assert client.initialize_calls == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_attempt(self, factory):
        manager = SessionManager(factory)
        first = asyncio.create_task(manager.ensure_ready())
        second = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)

        first.cancel()
        await asyncio.sleep(0)
        factory.latest.emit("ready")

        assert await second is factory.latest
        assert first.cancelled()
        await manager.shutdown()


class TestFailures:
    @pytest.mark.asyncio
    async def test_timeout_rejects_every_waiter_and_resets(self, factory):
        manager = SessionManager(factory, init_timeout=0.05)
        tasks = [asyncio.create_task(manager.ensure_ready()) for _ in range(3)]
        await asyncio.sleep(0)
        factory.latest.emit("qr", "2@pending")

        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, InitTimeoutError) for result in results)
        assert manager.state is SessionStatus.UNINITIALIZED
        assert not manager.is_ready()
        await manager.shutdown()
        assert factory.clients[0].destroyed

    @pytest.mark.asyncio
    async def test_auth_failure_rejects_and_next_call_starts_fresh(self, factory):
        manager = SessionManager(factory)
        tasks = [asyncio.create_task(manager.ensure_ready()) for _ in range(2)]
        await asyncio.sleep(0)
        first_client = factory.latest
        first_client.emit("auth_failure", "bad session")

        assert not manager.is_ready()
        assert manager.state is SessionStatus.UNINITIALIZED
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(result, AuthFailureError) for result in results)
        assert manager.last_error == "WhatsApp authentication failed"

        client = await bring_ready(manager, factory)
        assert client is not first_client
        assert len(factory.clients) == 2
        await manager.shutdown()
        assert first_client.destroyed

    @pytest.mark.asyncio
    async def test_disconnect_while_ready_resets_immediately(self, factory):
        manager = SessionManager(factory)
        client = await bring_ready(manager, factory)
        assert manager.is_ready()

        client.emit("disconnected", "NAVIGATION")

        assert not manager.is_ready()
        assert manager.state is SessionStatus.UNINITIALIZED
        await asyncio.sleep(0)
        assert client.destroyed
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_disconnect_while_connecting_rejects_waiters(self, factory):
        manager = SessionManager(factory)
        task = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)
        factory.latest.emit("disconnected", "LOGOUT")

        with pytest.raises(TransportError, match="disconnected"):
            await task
        assert manager.state is SessionStatus.UNINITIALIZED
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_error_surfaces_as_transport_error(self):
        factory = FakeClientFactory(init_error=RuntimeError("browser crashed"))
        manager = SessionManager(factory)

        with pytest.raises(TransportError, match="browser crashed"):
            await manager.ensure_ready()
        assert manager.state is SessionStatus.UNINITIALIZED
        await manager.shutdown()
        assert factory.latest.destroyed

    @pytest.mark.asyncio
    async def test_factory_error_is_reported(self):
        def broken_factory():
            raise ValueError("missing token")

        manager = SessionManager(broken_factory)
        with pytest.raises(TransportError, match="missing token"):
            await manager.ensure_ready()
        assert manager.attempts == 0
        assert manager.state is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_events_from_retired_client_are_ignored(self, factory):
        manager = SessionManager(factory)
        task = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)
        old_client = factory.latest
        old_client.emit("auth_failure", "expired")
        with pytest.raises(AuthFailureError):
            await task

        old_client.emit("ready")
        assert manager.state is SessionStatus.UNINITIALIZED
        assert not manager.is_ready()
        await manager.shutdown()


class TestQRNotification:
    @pytest.mark.asyncio
    async def test_qr_is_published_then_cleared(self, factory):
        notifier = QRNotifier(stream=io.StringIO())
        manager = SessionManager(factory, notifier=notifier)
        task = asyncio.create_task(manager.ensure_ready())
        await asyncio.sleep(0)

        challenge = QRChallenge(payload="2@scan-me")
        factory.latest.emit("qr", challenge)
        assert notifier.latest is challenge
        assert "Scan this QR code" in notifier.stream.getvalue()

        factory.latest.emit("authenticated")
        assert notifier.latest is None
        factory.latest.emit("ready")
        await task
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_qr_after_ready_is_ignored(self, factory):
        notifier = QRNotifier(stream=io.StringIO())
        manager = SessionManager(factory, notifier=notifier)
        client = await bring_ready(manager, factory)

        client.emit("qr", "2@late")
        assert manager.state is SessionStatus.READY
        assert notifier.latest is None
        await manager.shutdown()


@pytest.mark.asyncio
async def test_reconnect_after_disconnect_without_restart(factory):
    manager = SessionManager(factory)
    first = await bring_ready(manager, factory)
    await manager.send_to_group("kitchen", b"png", "rota")
    assert first.sent[0][0] == "120363003@g.us"

    first.emit("disconnected", "CONFLICT")
    assert manager.snapshot()["ready"] is False

    second = await bring_ready(manager, factory)
    assert second is not first
    assert manager.is_ready()
    assert manager.attempts == 2
    await manager.shutdown()
    assert manager.state is SessionStatus.UNINITIALIZED
