"""FastAPI routes for the WhatsApp session."""

from fastapi import APIRouter, HTTPException, Request

from controllers.whatsapp_controller import initialize_session, latest_qr, list_groups, session_status

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])


@router.post("/init")
async def init_route(request: Request):
	"""Connect WhatsApp, waiting up to the initialization timeout."""
	try:
		return await initialize_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/init")
async def status_route(request: Request):
	return session_status(request)


@router.get("/groups")
async def groups_route(request: Request):
	try:
		return await list_groups(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/qr")
async def qr_route(request: Request):
	"""Return the QR code waiting to be scanned, if any."""
	return latest_qr(request)
