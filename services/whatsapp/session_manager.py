"""Lifecycle manager for the process-wide WhatsApp automation session.

The manager is a small state machine driven by client events:

    uninitialized -> connecting -> awaiting_scan -> authenticated -> ready

`auth_failure`, `disconnected` and the initialization timeout tear the
client down and return to `uninitialized`. Only one connection attempt is
ever in flight; concurrent callers of `ensure_ready` share its outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from models.session_models import (
	IN_FLIGHT_STATES,
	ClientEvent,
	Group,
	OutboundMessage,
	QRChallenge,
	SessionStatus,
)
from services.whatsapp.client_base import (
	EVENT_AUTH_FAILURE,
	EVENT_AUTHENTICATED,
	EVENT_DISCONNECTED,
	EVENT_QR,
	EVENT_READY,
	ChatClient,
)
from services.whatsapp.errors import (
	AuthFailureError,
	GroupNotFoundError,
	InitTimeoutError,
	NotReadyError,
	SendFailedError,
	TransportError,
	WhatsAppError,
)
from services.whatsapp.qr_notifier import QRNotifier

LOGGER = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT = 120.0

ClientFactory = Callable[[], ChatClient]


def _consume_exception(future: asyncio.Future) -> None:
	# Mark the failure as retrieved when every waiter has gone away.
	if not future.cancelled():
		future.exception()


class SessionManager:
	"""Own one chat-automation session: connect, authenticate, send, reset."""

	def __init__(
		self,
		client_factory: ClientFactory,
		notifier: Optional[QRNotifier] = None,
		init_timeout: float = DEFAULT_INIT_TIMEOUT,
	) -> None:
		self._client_factory = client_factory
		self._notifier = notifier
		self._init_timeout = init_timeout
		self._state = SessionStatus.UNINITIALIZED
		self._client: Optional[ChatClient] = None
		self._pending: Optional[asyncio.Future] = None
		self._timeout_handle: Optional[asyncio.TimerHandle] = None
		self._init_task: Optional[asyncio.Task] = None
		self._background: Set[asyncio.Task] = set()
		self._attempts = 0
		self.last_error: Optional[str] = None
		self._handlers: Dict[str, Callable[[Any], None]] = {
			EVENT_QR: self._on_qr,
			EVENT_AUTHENTICATED: self._on_authenticated,
			EVENT_READY: self._on_ready,
			EVENT_AUTH_FAILURE: self._on_auth_failure,
			EVENT_DISCONNECTED: self._on_disconnected,
		}

	@property
	def state(self) -> SessionStatus:
		return self._state

	@property
	def attempts(self) -> int:
		"""Number of connection attempts started so far."""
		return self._attempts

	def is_ready(self) -> bool:
		"""Return True when the session can send right now."""
		return self._state is SessionStatus.READY and self._client is not None

	def snapshot(self) -> Dict[str, Any]:
		return {
			"state": self._state.value,
			"ready": self.is_ready(),
			"attempts": self._attempts,
			"last_error": self.last_error,
		}

	async def ensure_ready(self) -> ChatClient:
		"""Return the ready client, starting or joining a connection attempt.

		Raises:
			AuthFailureError: If the credentials were rejected.
			InitTimeoutError: If the session was not ready in time.
			TransportError: If the client failed or disconnected while connecting.
		"""
		if self.is_ready():
			return self._client
		if self._pending is None:
			self._start_attempt()
		pending = self._pending
		# Shielded so a cancelled caller does not cancel the shared attempt.
		return await asyncio.shield(pending)

	async def list_groups(self) -> List[Group]:
		"""Return every group chat visible to the ready session."""
		client = self._require_ready()
		return await self._fetch_groups(client)

	async def send_to_group(self, group_name: str, image: bytes, caption: str) -> Group:
		"""Send `image` with `caption` to the first group whose name contains `group_name`.

		Matching is case-insensitive and picks the first hit in the order the
		automation layer lists the chats.

		Returns:
			The group the message was delivered to.

		Raises:
			NotReadyError: If the session is not ready; no network call is made.
			GroupNotFoundError: If no group name matches.
			SendFailedError: If the dispatch itself fails.
		"""
		client = self._require_ready()
		groups = await self._fetch_groups(client)

		needle = group_name.lower()
		target = next((group for group in groups if needle in group.name.lower()), None)
		if target is None:
			raise GroupNotFoundError(group_name, [group.name for group in groups])

		message = OutboundMessage(image=image, caption=caption)
		try:
			await client.send_media(target.id, message)
		except Exception as exc:
			LOGGER.error("Failed to send image to group %r: %s", target.name, exc)
			raise SendFailedError(str(exc) or "Failed to send to WhatsApp") from exc

		LOGGER.info("Sent %d byte image to group %r (%s)", len(image), target.name, target.id)
		return target

	async def shutdown(self) -> None:
		"""Tear down the session and wait for background work to finish."""
		if self._client is not None or self._pending is not None:
			self._fail(TransportError("WhatsApp session shut down"), SessionStatus.DISCONNECTED)
		if self._background:
			await asyncio.gather(*list(self._background), return_exceptions=True)

	def _require_ready(self) -> ChatClient:
		if not self.is_ready():
			raise NotReadyError()
		return self._client

	async def _fetch_groups(self, client: ChatClient) -> List[Group]:
		try:
			chats = await client.get_chats()
		except WhatsAppError:
			raise
		except Exception as exc:
			raise TransportError(str(exc) or "Failed to fetch groups") from exc
		return [chat for chat in chats if chat.is_group]

	def _start_attempt(self) -> None:
		loop = asyncio.get_running_loop()
		try:
			client = self._client_factory()
		except WhatsAppError as exc:
			self.last_error = str(exc)
			raise
		except Exception as exc:
			self.last_error = str(exc)
			raise TransportError(f"Failed to create WhatsApp client: {exc}") from exc

		self._attempts += 1
		self._client = client
		self._pending = loop.create_future()
		self._pending.add_done_callback(_consume_exception)
		client.set_listener(lambda event: self._dispatch(client, event))

		LOGGER.info("Initializing WhatsApp client (attempt %d)", self._attempts)
		self._transition(SessionStatus.CONNECTING)
		self._timeout_handle = loop.call_later(self._init_timeout, self._on_timeout, client)
		self._init_task = self._spawn(self._run_initialize(client))

	async def _run_initialize(self, client: ChatClient) -> None:
		try:
			await client.initialize()
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			if client is not self._client:
				return
			LOGGER.error("Failed to initialize WhatsApp: %s", exc)
			self._fail(TransportError(str(exc) or "Failed to initialize WhatsApp"), SessionStatus.FAILED)

	def _dispatch(self, client: ChatClient, event: ClientEvent) -> None:
		if client is not self._client:
			LOGGER.debug("Ignoring %s event from a retired client", event.name)
			return
		handler = self._handlers.get(event.name)
		if handler is None:
			LOGGER.debug("Ignoring unknown client event %s", event.name)
			return
		handler(event.payload)

	def _on_qr(self, payload: Any) -> None:
		if self._state not in (SessionStatus.CONNECTING, SessionStatus.AWAITING_SCAN):
			LOGGER.warning("Ignoring QR code received while %s", self._state.value)
			return
		challenge = payload if isinstance(payload, QRChallenge) else QRChallenge(payload=str(payload))
		self._transition(SessionStatus.AWAITING_SCAN)
		LOGGER.info("QR code received. Please scan with WhatsApp")
		if self._notifier is not None:
			self._notifier.publish(challenge)

	def _on_authenticated(self, _payload: Any) -> None:
		if self._state not in IN_FLIGHT_STATES:
			LOGGER.warning("Ignoring authenticated event while %s", self._state.value)
			return
		self._transition(SessionStatus.AUTHENTICATED)
		if self._notifier is not None:
			self._notifier.clear()

	def _on_ready(self, _payload: Any) -> None:
		if self._state not in IN_FLIGHT_STATES:
			LOGGER.warning("Ignoring ready event while %s", self._state.value)
			return
		self._cancel_timeout()
		self._transition(SessionStatus.READY)
		self.last_error = None
		if self._notifier is not None:
			self._notifier.clear()
		pending, self._pending = self._pending, None
		if pending is not None and not pending.done():
			pending.set_result(self._client)

	def _on_auth_failure(self, payload: Any) -> None:
		LOGGER.error("WhatsApp authentication failure: %s", payload)
		self._fail(AuthFailureError("WhatsApp authentication failed"), SessionStatus.FAILED)

	def _on_disconnected(self, reason: Any) -> None:
		LOGGER.warning("WhatsApp disconnected: %s", reason)
		self._fail(TransportError(f"WhatsApp disconnected: {reason}"), SessionStatus.DISCONNECTED)

	def _on_timeout(self, client: ChatClient) -> None:
		self._timeout_handle = None
		if client is not self._client or self._state is SessionStatus.READY:
			return
		LOGGER.error("WhatsApp initialization timed out after %.0fs", self._init_timeout)
		self._fail(InitTimeoutError("WhatsApp initialization timed out"), SessionStatus.FAILED)

	def _fail(self, error: WhatsAppError, terminal: SessionStatus) -> None:
		"""Reject waiters, retire the client and reset to uninitialized."""
		self._cancel_timeout()
		self.last_error = str(error)
		self._transition(terminal)

		client, self._client = self._client, None
		pending, self._pending = self._pending, None
		init_task, self._init_task = self._init_task, None

		if pending is not None and not pending.done():
			pending.set_exception(error)
		if init_task is not None and not init_task.done() and init_task is not asyncio.current_task():
			init_task.cancel()
		if client is not None:
			client.set_listener(None)
			self._spawn(self._destroy(client))
		if self._notifier is not None:
			self._notifier.clear()

		self._transition(SessionStatus.UNINITIALIZED)

	async def _destroy(self, client: ChatClient) -> None:
		try:
			await client.destroy()
		except Exception as exc:
			LOGGER.warning("Error while destroying WhatsApp client: %s", exc)

	def _cancel_timeout(self) -> None:
		if self._timeout_handle is not None:
			self._timeout_handle.cancel()
			self._timeout_handle = None

	def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
		task = asyncio.ensure_future(coro)
		self._background.add(task)
		task.add_done_callback(self._background.discard)
		return task

	def _transition(self, state: SessionStatus) -> None:
		if state is self._state:
			return
		LOGGER.info("WhatsApp session %s -> %s", self._state.value, state.value)
		self._state = state
