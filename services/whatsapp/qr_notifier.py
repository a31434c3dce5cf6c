"""Operator-facing surface for WhatsApp pairing QR codes.

Each QR challenge is drawn on the terminal, kept in memory for the
`/api/whatsapp/qr` endpoint, and written to `<data_dir>/latest-qr.png`.

Example:
    notifier = QRNotifier(output_dir=Path(".whatsapp"))
    notifier.publish(QRChallenge(payload="2@abc..."))
"""
from __future__ import annotations

import asyncio
import io
import logging
import sys
from pathlib import Path
from typing import Optional, Set, TextIO

import aiofiles
import qrcode
from PIL import Image

from models.session_models import QRChallenge

LOGGER = logging.getLogger(__name__)

QR_FILENAME = "latest-qr.png"

# (top pixel dark, bottom pixel dark) -> character
_HALF_BLOCKS = {
    (True, True): "█",
    (True, False): "▀",
    (False, True): "▄",
    (False, False): " ",
}


class QRNotifier:
    """Publish QR challenges to the terminal, memory and disk.

    Args:
        output_dir: Directory for the PNG snapshot. No file is written when None.
        stream: Text stream for terminal rendering. Defaults to stdout.
        max_width: Maximum width in characters when drawing PNG challenges.
    """

    def __init__(self, output_dir: Optional[Path] = None, stream: Optional[TextIO] = None, max_width: int = 64):
        self.output_dir = output_dir
        self.stream = stream or sys.stdout
        self.max_width = max_width
        self._latest: Optional[QRChallenge] = None
        self._writes: Set[asyncio.Task] = set()

    @property
    def latest(self) -> Optional[QRChallenge]:
        return self._latest

    @property
    def snapshot_path(self) -> Optional[Path]:
        return self.output_dir / QR_FILENAME if self.output_dir is not None else None

    def publish(self, challenge: QRChallenge) -> None:
        """Show a new challenge to the operator."""
        self._latest = challenge
        self.stream.write("WhatsApp QR code received. Please scan with WhatsApp:\n")
        self.stream.write(self.render_terminal(challenge))
        self.stream.write("\nScan this QR code with your WhatsApp mobile app\n\n")
        self.stream.flush()
        if self.output_dir is not None:
            self._schedule_write(challenge)

    def clear(self) -> None:
        """Forget the pending challenge once it is no longer scannable."""
        self._latest = None

    def png_bytes(self, challenge: Optional[QRChallenge] = None) -> Optional[bytes]:
        """Return the challenge as PNG bytes, rendering a raw payload if needed."""
        challenge = challenge or self._latest
        if challenge is None:
            return None
        if challenge.image_png is not None:
            return challenge.image_png
        if challenge.payload is None:
            return None
        qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=4)
        qr.add_data(challenge.payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="#000000", back_color="#FFFFFF").convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def render_terminal(self, challenge: QRChallenge) -> str:
        """Return a text rendering of the challenge."""
        if challenge.payload is not None:
            out = io.StringIO()
            qr = qrcode.QRCode(border=1)
            qr.add_data(challenge.payload)
            qr.make(fit=True)
            qr.print_ascii(out=out, invert=True)
            return out.getvalue()
        if challenge.image_png is not None:
            return self._render_png(challenge.image_png)
        return "(empty QR challenge)\n"

    def _render_png(self, data: bytes) -> str:
        try:
            image = Image.open(io.BytesIO(data)).convert("L")
        except Exception as exc:
            LOGGER.warning("Unable to decode QR image: %s", exc)
            return "(QR image could not be decoded)\n"

        width = min(self.max_width, image.width)
        height = max(1, round(image.height * width / image.width))
        image = image.resize((width, height), Image.NEAREST)
        pixels = image.load()

        lines = []
        for y in range(0, height, 2):
            row = []
            for x in range(width):
                top = pixels[x, y] < 128
                bottom = y + 1 < height and pixels[x, y + 1] < 128
                row.append(_HALF_BLOCKS[(top, bottom)])
            lines.append("".join(row))
        return "\n".join(lines) + "\n"

    def _schedule_write(self, challenge: QRChallenge) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running loop; skipping QR snapshot write")
            return
        task = loop.create_task(self.write_snapshot(challenge))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def write_snapshot(self, challenge: QRChallenge) -> Optional[Path]:
        """Write the challenge PNG to the output directory."""
        path = self.snapshot_path
        data = self.png_bytes(challenge)
        if path is None or data is None:
            return None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            LOGGER.warning("Failed to write QR snapshot to %s: %s", path, exc)
            return None
        LOGGER.info("QR code saved to %s", path)
        return path
