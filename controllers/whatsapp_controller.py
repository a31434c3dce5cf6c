"""WhatsApp session helpers for the HTTP layer.

Each helper maps `SessionManager` results onto the JSON bodies the grid
front-end expects: `{"success": bool, ...}` plus a status code taken from
the error class.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, Response

from services.whatsapp.errors import WhatsAppError
from services.whatsapp.qr_notifier import QRNotifier
from services.whatsapp.session_manager import SessionManager

LOGGER = logging.getLogger(__name__)


def get_session_manager(request: Request) -> SessionManager:
	"""Retrieve the shared session manager from the app state."""
	manager = getattr(request.app.state, "session_manager", None)
	if manager is None:
		raise HTTPException(status_code=500, detail="WhatsApp session manager not initialized.")
	return manager


def error_response(exc: WhatsAppError, **extra: Any) -> JSONResponse:
	"""Build the `{success: false, error}` body for a session error."""
	return JSONResponse(
		status_code=exc.status_code,
		content={"success": False, "error": str(exc), **extra},
	)


async def initialize_session(request: Request) -> JSONResponse:
	"""Start or join the session attempt and wait for it to become ready."""
	manager = get_session_manager(request)
	if manager.is_ready():
		return JSONResponse({"success": True, "message": "WhatsApp is already connected", "ready": True})
	try:
		await manager.ensure_ready()
	except WhatsAppError as exc:
		LOGGER.error("WhatsApp initialization error: %s", exc)
		return JSONResponse(
			status_code=500,
			content={"success": False, "error": str(exc), "ready": False},
		)
	return JSONResponse({"success": True, "message": "WhatsApp connected successfully", "ready": True})


def session_status(request: Request) -> Dict[str, Any]:
	"""Report readiness without blocking."""
	manager = get_session_manager(request)
	ready = manager.is_ready()
	return {
		"success": True,
		"ready": ready,
		"state": manager.state.value,
		"message": "WhatsApp is connected" if ready else "WhatsApp is not connected",
	}


async def list_groups(request: Request) -> JSONResponse:
	"""Return every group chat visible to the session."""
	manager = get_session_manager(request)
	try:
		groups = await manager.list_groups()
	except WhatsAppError as exc:
		LOGGER.error("Error fetching WhatsApp groups: %s", exc)
		return error_response(exc, groups=[])
	return JSONResponse({"success": True, "groups": [group.to_dict() for group in groups]})


def latest_qr(request: Request) -> Response:
	"""Serve the pending QR challenge as a PNG."""
	notifier: QRNotifier | None = getattr(request.app.state, "qr_notifier", None)
	data = notifier.png_bytes() if notifier is not None else None
	if data is None:
		raise HTTPException(status_code=404, detail="No QR code pending")
	return Response(content=data, media_type="image/png", headers={"Cache-Control": "no-store"})
