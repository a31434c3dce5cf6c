"""Environment-backed settings for the WhatsApp integration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class WhatsAppSettings:
    green_api_base_url: str = "https://api.green-api.com"
    green_api_media_url: str = ""
    green_api_instance_id: str = ""
    green_api_api_token: str = ""
    init_timeout: float = 120.0
    poll_interval: float = 2.0
    data_dir: Path = Path(".whatsapp")
    auto_init: bool = False

    @classmethod
    def from_env(cls) -> "WhatsAppSettings":
        """Read settings from the environment (after `load_dotenv()`)."""
        base_url = os.getenv("GREEN_API_BASE_URL", "https://api.green-api.com")
        return cls(
            green_api_base_url=base_url,
            green_api_media_url=os.getenv("GREEN_API_MEDIA_URL", "") or base_url,
            green_api_instance_id=os.getenv("GREEN_API_INSTANCE_ID", ""),
            green_api_api_token=os.getenv("GREEN_API_API_TOKEN", ""),
            init_timeout=_env_float("WHATSAPP_INIT_TIMEOUT", 120.0),
            poll_interval=_env_float("WHATSAPP_POLL_INTERVAL", 2.0),
            data_dir=Path(os.getenv("WHATSAPP_DATA_DIR", ".whatsapp")).expanduser(),
            auto_init=_env_bool("WHATSAPP_AUTO_INIT"),
        )
