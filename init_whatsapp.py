"""Connect the WhatsApp session from a terminal.

Shows the pairing QR code on stdout (and in `WHATSAPP_DATA_DIR`), waits
until the session is ready, then lists the group chats it can send to.

Run: set `GREEN_API_INSTANCE_ID` and `GREEN_API_API_TOKEN` (or put them in
      `.env`) and run `python init_whatsapp.py`.
"""
import asyncio
import logging
import sys

from dotenv import load_dotenv

from services.whatsapp.errors import WhatsAppError
from services.whatsapp.green_api_client import GreenAPIClient
from services.whatsapp.qr_notifier import QRNotifier
from services.whatsapp.session_manager import SessionManager
from utils.settings import WhatsAppSettings


async def main() -> int:
    """Initialize the session and print the available groups."""
    settings = WhatsAppSettings.from_env()
    manager = SessionManager(
        lambda: GreenAPIClient.from_settings(settings),
        notifier=QRNotifier(output_dir=settings.data_dir),
        init_timeout=settings.init_timeout,
    )
    print("Initializing WhatsApp...")
    print("Please scan the QR code with your WhatsApp mobile app\n")
    try:
        await manager.ensure_ready()
        groups = await manager.list_groups()
    except WhatsAppError as exc:
        print(f"WhatsApp initialization failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await manager.shutdown()

    print("WhatsApp is ready. Groups:")
    for group in groups:
        print(f"  {group.name} ({group.id})")
    return 0


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main()))
