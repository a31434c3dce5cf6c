"""Green API driver for the WhatsApp session.

Green API hosts the WhatsApp Web automation and exposes it over HTTP. The
instance keeps its own credentials, so a restarted process reconnects
without a new scan as long as the instance id and token stay the same.
Lifecycle events are derived by polling `getStateInstance`.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from models.session_models import Group, OutboundMessage, QRChallenge
from services.whatsapp.client_base import (
    EVENT_AUTH_FAILURE,
    EVENT_AUTHENTICATED,
    EVENT_DISCONNECTED,
    EVENT_QR,
    EVENT_READY,
    ChatClient,
)
from services.whatsapp.errors import TransportError
from utils.settings import WhatsAppSettings

LOGGER = logging.getLogger(__name__)

STATE_AUTHORIZED = "authorized"
STATE_NOT_AUTHORIZED = "notAuthorized"
STATE_BLOCKED = "blocked"


class GreenAPIClient(ChatClient):
    """Chat client backed by a Green API instance."""

    def __init__(
        self,
        base_url: str,
        id_instance: str,
        api_token: str,
        media_url: Optional[str] = None,
        poll_interval: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.media_url = (media_url or base_url).rstrip("/")
        self.id_instance = id_instance
        self.api_token = api_token
        self.poll_interval = poll_interval
        self._client = http_client
        self._owns_client = http_client is None
        self._poll_task: Optional[asyncio.Task] = None
        self._ready = False
        self._last_qr: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: WhatsAppSettings) -> "GreenAPIClient":
        return cls(
            base_url=settings.green_api_base_url,
            id_instance=settings.green_api_instance_id,
            api_token=settings.green_api_api_token,
            media_url=settings.green_api_media_url,
            poll_interval=settings.poll_interval,
        )

    def _url(self, path: str, base: Optional[str] = None) -> str:
        return f"{base or self.base_url}/waInstance{self.id_instance}/{path}/{self.api_token}"

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60)
        return self._client

    async def initialize(self) -> None:
        if not self.id_instance or not self.api_token:
            raise TransportError("GREEN_API_INSTANCE_ID and GREEN_API_API_TOKEN must be configured")
        self._ready = False
        self._last_qr = None
        self._http()
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def get_state(self) -> str:
        """Return the instance state, e.g. `authorized` or `notAuthorized`."""
        resp = await self._http().get(self._url("getStateInstance"))
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected getStateInstance response: {data!r}")
        return data.get("stateInstance", "")

    async def get_chats(self) -> List[Group]:
        resp = await self._http().get(self._url("getContacts"))
        resp.raise_for_status()
        chats: List[Group] = []
        items = resp.json() or []
        if not isinstance(items, list):
            raise ValueError(f"Unexpected getContacts response: {items!r}")
        for item in items:
            if not isinstance(item, dict):
                continue
            chat_id = item.get("id") or ""
            chats.append(
                Group(
                    id=chat_id,
                    name=item.get("name") or item.get("contactName") or chat_id,
                    is_group=item.get("type") == "group" or chat_id.endswith("@g.us"),
                )
            )
        return chats

    async def send_media(self, chat_id: str, message: OutboundMessage) -> Dict[str, Any]:
        """Upload the image and send it to `chat_id` in one request."""
        data = {"chatId": chat_id, "fileName": message.filename}
        if message.caption:
            data["caption"] = message.caption
        files = {"file": (message.filename, message.image, message.mimetype)}
        resp = await self._http().post(self._url("sendFileByUpload", self.media_url), data=data, files=files)
        resp.raise_for_status()
        return resp.json()

    async def destroy(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _poll_loop(self) -> None:
        while True:
            try:
                state = await self.get_state()
            except (httpx.HTTPError, ValueError) as exc:
                LOGGER.warning("Green API state poll failed: %s", exc)
            else:
                if not await self._handle_state(state):
                    return
            await asyncio.sleep(self.poll_interval)

    async def _handle_state(self, state: str) -> bool:
        """Translate an instance state into events. Returns False to stop polling."""
        if state == STATE_AUTHORIZED:
            if not self._ready:
                self._ready = True
                self.emit(EVENT_AUTHENTICATED)
                self.emit(EVENT_READY)
            return True
        if self._ready:
            self.emit(EVENT_DISCONNECTED, state or "unknown")
            return False
        if state == STATE_BLOCKED:
            self.emit(EVENT_AUTH_FAILURE, "Green API instance is blocked")
            return False
        if state == STATE_NOT_AUTHORIZED:
            await self._refresh_qr()
        return True

    async def _refresh_qr(self) -> None:
        try:
            resp = await self._http().get(self._url("qr"))
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Green API QR request failed: %s", exc)
            return
        if not isinstance(data, dict):
            LOGGER.warning("Unexpected Green API QR response: %r", data)
            return

        kind = data.get("type")
        message = data.get("message") or ""
        if kind == "qrCode":
            if not message or message == self._last_qr:
                return
            try:
                image_png = base64.b64decode(message)
            except ValueError as exc:
                LOGGER.warning("Green API returned an undecodable QR code: %s", exc)
                return
            self._last_qr = message
            self.emit(EVENT_QR, QRChallenge(image_png=image_png))
        elif kind == "error":
            LOGGER.warning("Green API QR error: %s", message)
