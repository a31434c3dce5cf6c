import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request

from routes.rota_route import router as rota_router
from routes.whatsapp_route import router as whatsapp_router
from services.rota_renderer import RotaRenderer
from services.whatsapp.client_base import ChatClient
from services.whatsapp.errors import WhatsAppError
from services.whatsapp.green_api_client import GreenAPIClient
from services.whatsapp.qr_notifier import QRNotifier
from services.whatsapp.session_manager import SessionManager
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import WhatsAppSettings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


async def _auto_initialize(manager: SessionManager) -> None:
    try:
        await manager.ensure_ready()
    except WhatsAppError as exc:
        LOGGER.warning("WhatsApp auto-initialization failed: %s", exc)


def create_app(client_factory: Optional[Callable[[], ChatClient]] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `client_factory` overrides how chat clients are built; by default each
    session attempt gets a fresh `GreenAPIClient` from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the SQLite database at DATABASE_DIR/app.db
          - the QR notifier and the WhatsApp session manager
        and attach them to `app.state`.
        """
        db_initializer = AsyncDatabaseInitializer()
        await db_initializer.ensure_database()
        app.state.db_initializer = db_initializer

        settings = WhatsAppSettings.from_env()
        factory = client_factory or (lambda: GreenAPIClient.from_settings(settings))
        notifier = QRNotifier(output_dir=settings.data_dir)
        manager = SessionManager(factory, notifier=notifier, init_timeout=settings.init_timeout)

        app.state.settings = settings
        app.state.qr_notifier = notifier
        app.state.session_manager = manager
        app.state.rota_renderer = RotaRenderer()

        auto_task = None
        if settings.auto_init:
            auto_task = asyncio.create_task(_auto_initialize(manager))

        try:
            yield
        finally:
            if auto_task is not None and not auto_task.done():
                auto_task.cancel()
            await manager.shutdown()

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting database and WhatsApp session status.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        manager = getattr(request.app.state, "session_manager", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "whatsapp_ready": bool(manager and manager.is_ready()),
        }

    # Register application routers
    app.include_router(whatsapp_router)
    app.include_router(rota_router)

    return app


app = create_app()
