"""FastAPI routes for the staff rota and sending it to WhatsApp."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.rota_controller import (
    add_shift,
    list_rota,
    remove_shift,
    rota_image,
    send_rota_to_group,
)
from models.rota_record import ShiftRecord

router = APIRouter(prefix="/api/staff-rota", tags=["staff-rota"])


class ShiftPayload(BaseModel):
    employee_name: str
    position: str
    shift_date: date
    start_time: str
    end_time: str
    location: Optional[str] = None
    status: str = "Scheduled"


class SendPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_name: Optional[str] = Field(default=None, alias="groupName")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


@router.get("")
async def list_rota_route(request: Request):
    try:
        return await list_rota(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("")
async def add_shift_route(request: Request, payload: ShiftPayload):
    record = ShiftRecord(
        id=None,
        employee_name=payload.employee_name.strip(),
        position=payload.position.strip(),
        shift_date=payload.shift_date.isoformat(),
        start_time=payload.start_time.strip(),
        end_time=payload.end_time.strip(),
        location=(payload.location or "").strip() or None,
        status=payload.status.strip() or "Scheduled",
    )
    try:
        return await add_shift(request, record)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{shift_id}")
async def delete_shift_route(request: Request, shift_id: int):
    try:
        return await remove_shift(request, shift_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/image")
async def rota_image_route(request: Request):
    """Return the rota rendered as a PNG."""
    try:
        return await rota_image(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail="Failed to generate image") from exc


@router.post("/send-whatsapp")
async def send_whatsapp_route(request: Request, payload: SendPayload):
    """Send the rota image (rendered here, or fetched from `imageUrl`) to a WhatsApp group."""
    try:
        return await send_rota_to_group(request, payload.group_name, payload.image_url)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
