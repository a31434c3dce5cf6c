"""Staff rota helpers: storage, rendering, and sending to WhatsApp."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, Response

from controllers.whatsapp_controller import error_response, get_session_manager
from dal.rota_dal import RotaDAL
from models.rota_record import ShiftRecord
from services.rota_renderer import RotaRenderer
from services.whatsapp.errors import NotReadyError, WhatsAppError

LOGGER = logging.getLogger(__name__)


def _rota_dal(request: Request) -> RotaDAL:
    db_initializer = getattr(request.app.state, "db_initializer", None)
    if db_initializer is None:
        raise HTTPException(status_code=500, detail="Database not initialized.")
    return RotaDAL(db_initializer)


def rota_caption(now: Optional[datetime] = None) -> str:
    """Caption sent alongside the rota image."""
    now = now or datetime.now()
    return (
        "📅 Staff Rota Schedule\n\n"
        f"Generated: {now:%d/%m/%Y, %H:%M:%S}\n\n"
        "✨ Stay updated with the latest shifts!"
    )


async def fetch_image(url: str) -> bytes:
    """Download an image from `url`."""
    async with httpx.AsyncClient(timeout=60) as client:
        resp = await client.get(url)
    if not resp.is_success:
        raise RuntimeError("Failed to fetch image")
    return resp.content


async def list_rota(request: Request) -> Dict[str, Any]:
    shifts = await _rota_dal(request).list_shifts()
    return {"success": True, "shifts": [shift.to_dict() for shift in shifts]}


async def add_shift(request: Request, record: ShiftRecord) -> Dict[str, Any]:
    """Store a new shift and return it with its id."""
    record.id = await _rota_dal(request).create_shift(record)
    return {"success": True, "shift": record.to_dict()}


async def remove_shift(request: Request, shift_id: int) -> Dict[str, Any]:
    dal = _rota_dal(request)
    if await dal.get_shift(shift_id) is None:
        raise HTTPException(status_code=404, detail=f"Shift {shift_id} not found")
    await dal.delete_shift(shift_id)
    return {"success": True, "deleted": shift_id}


async def render_rota(request: Request) -> bytes:
    """Render the stored rota to PNG bytes off the event loop."""
    shifts = await _rota_dal(request).list_shifts()
    renderer: RotaRenderer = getattr(request.app.state, "rota_renderer", None) or RotaRenderer()
    return await asyncio.to_thread(renderer.render, shifts)


async def rota_image(request: Request) -> Response:
    png = await render_rota(request)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": 'inline; filename="staff-rota.png"'},
    )


async def send_rota_to_group(request: Request, group_name: Optional[str], image_url: Optional[str]) -> JSONResponse:
    """Send the rota image to the first WhatsApp group whose name contains `group_name`.

    The readiness check runs before any image work, so a disconnected
    session fails fast with 503.
    """
    if not group_name or not group_name.strip():
        return JSONResponse(status_code=400, content={"success": False, "error": "Group name is required"})

    manager = get_session_manager(request)
    if not manager.is_ready():
        return error_response(NotReadyError())

    try:
        image = await fetch_image(image_url) if image_url else await render_rota(request)
        group = await manager.send_to_group(group_name, image, rota_caption())
    except WhatsAppError as exc:
        LOGGER.error("Error sending to WhatsApp: %s", exc)
        return error_response(exc)
    except HTTPException:
        raise
    except Exception as exc:
        LOGGER.error("Error sending to WhatsApp: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Failed to send to WhatsApp"})

    return JSONResponse(
        {
            "success": True,
            "message": "Staff rota sent to WhatsApp group successfully",
            "groupId": group.id,
            "groupName": group.name,
        }
    )
