"""Session domain models for the WhatsApp automation session."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionStatus(str, Enum):
	"""Lifecycle states of the process-wide automation session."""

	UNINITIALIZED = "uninitialized"
	CONNECTING = "connecting"
	AWAITING_SCAN = "awaiting_scan"
	AUTHENTICATED = "authenticated"
	READY = "ready"
	FAILED = "failed"
	DISCONNECTED = "disconnected"


IN_FLIGHT_STATES = frozenset(
	{SessionStatus.CONNECTING, SessionStatus.AWAITING_SCAN, SessionStatus.AUTHENTICATED}
)


@dataclass
class Group:
	"""Chat destination as reported by the automation layer."""

	id: str
	name: str
	is_group: bool = True

	def to_dict(self) -> dict:
		return {"id": self.id, "name": self.name}


@dataclass
class OutboundMessage:
	"""Image attachment with caption, built per send request."""

	image: bytes
	caption: str
	mimetype: str = "image/png"
	filename: str = "staff-rota.png"


@dataclass
class QRChallenge:
	"""Pairing code emitted while waiting for the operator to scan.

	Drivers provide either the raw `payload` string or an already rendered
	`image_png`.
	"""

	payload: Optional[str] = None
	image_png: Optional[bytes] = None
	received_at: float = field(default_factory=lambda: time.time())


@dataclass
class ClientEvent:
	"""Lifecycle event raised by a chat client."""

	name: str
	payload: Any = None
