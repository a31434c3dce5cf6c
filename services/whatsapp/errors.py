"""Error taxonomy for the WhatsApp session and its HTTP adapter."""

from __future__ import annotations

from typing import List, Sequence


class WhatsAppError(Exception):
    """Base class; `status_code` is the HTTP status the adapter reports."""

    status_code = 500


class NotReadyError(WhatsAppError):
    """The session is not in the ready state."""

    status_code = 503

    def __init__(self, message: str = "WhatsApp is not connected. Please initialize WhatsApp first.") -> None:
        super().__init__(message)


class AuthFailureError(WhatsAppError):
    """The automation layer rejected the credentials."""


class InitTimeoutError(WhatsAppError):
    """The session did not become ready before the initialization ceiling."""


class GroupNotFoundError(WhatsAppError):
    """No group chat name contains the requested text."""

    status_code = 404

    def __init__(self, group_name: str, available: Sequence[str]) -> None:
        self.group_name = group_name
        self.available: List[str] = list(available)
        super().__init__(
            f'Group "{group_name}" not found. Available groups: {", ".join(self.available)}'
        )


class SendFailedError(WhatsAppError):
    """Dispatching the message through the session failed."""


class TransportError(WhatsAppError):
    """Chat-list fetch or any other I/O with the automation layer failed."""
