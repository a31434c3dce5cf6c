"""Abstract chat-automation client driven by the session manager.

A client owns one underlying connection to the messaging platform and
reports its lifecycle through named events delivered to a single listener.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from models.session_models import ClientEvent, Group, OutboundMessage

LOGGER = logging.getLogger(__name__)

EVENT_QR = "qr"
EVENT_AUTHENTICATED = "authenticated"
EVENT_READY = "ready"
EVENT_AUTH_FAILURE = "auth_failure"
EVENT_DISCONNECTED = "disconnected"

EventListener = Callable[[ClientEvent], None]


class ChatClient(ABC):
    """Base class for chat-automation drivers."""

    def __init__(self) -> None:
        self._listener: Optional[EventListener] = None

    def set_listener(self, listener: Optional[EventListener]) -> None:
        """Register the callback that receives lifecycle events."""
        self._listener = listener

    def emit(self, name: str, payload: Any = None) -> None:
        """Deliver an event to the registered listener, if any."""
        if self._listener is None:
            LOGGER.debug("Dropping %s event: no listener registered", name)
            return
        self._listener(ClientEvent(name=name, payload=payload))

    @abstractmethod
    async def initialize(self) -> None:
        """Start the connection handshake.

        May return before the client is ready; readiness is reported with
        the `ready` event.
        """

    @abstractmethod
    async def get_chats(self) -> List[Group]:
        """Return the live chat list, group and direct chats alike."""

    @abstractmethod
    async def send_media(self, chat_id: str, message: OutboundMessage) -> None:
        """Send an image with caption to `chat_id`."""

    @abstractmethod
    async def destroy(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
