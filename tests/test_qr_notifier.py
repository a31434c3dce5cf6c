"""Tests for the operator QR surface."""

import io

import pytest
from PIL import Image

from models.session_models import QRChallenge
from services.whatsapp.qr_notifier import QR_FILENAME, QRNotifier


def _square_png() -> bytes:
    image = Image.new("RGB", (40, 40), "white")
    image.paste((0, 0, 0), (0, 0, 20, 20))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def test_payload_is_rendered_as_ascii():
    stream = io.StringIO()
    notifier = QRNotifier(stream=stream)

    notifier.publish(QRChallenge(payload="2@AbCdEf"))

    output = stream.getvalue()
    assert "Please scan with WhatsApp" in output
    assert "█" in output or "▀" in output or "▄" in output
    assert notifier.latest.payload == "2@AbCdEf"


def test_png_challenge_is_drawn_with_half_blocks():
    notifier = QRNotifier(stream=io.StringIO(), max_width=20)

    text = notifier.render_terminal(QRChallenge(image_png=_square_png()))
    lines = text.rstrip("\n").split("\n")

    assert len(lines) == 10
    assert lines[0].startswith("█" * 10)
    assert lines[-1].strip() == ""


def test_undecodable_png_does_not_raise():
    notifier = QRNotifier(stream=io.StringIO())
    assert "could not be decoded" in notifier.render_terminal(QRChallenge(image_png=b"not a png"))


def test_png_bytes_from_payload():
    notifier = QRNotifier(stream=io.StringIO())
    data = notifier.png_bytes(QRChallenge(payload="2@AbCdEf"))

    assert data.startswith(b"\x89PNG")
    assert Image.open(io.BytesIO(data)).size[0] > 0


def test_clear_forgets_latest():
    notifier = QRNotifier(stream=io.StringIO())
    notifier.publish(QRChallenge(image_png=_square_png()))
    notifier.clear()

    assert notifier.latest is None
    assert notifier.png_bytes() is None


@pytest.mark.asyncio
async def test_snapshot_written_to_output_dir(tmp_path):
    notifier = QRNotifier(output_dir=tmp_path / "wa", stream=io.StringIO())
    png = _square_png()

    path = await notifier.write_snapshot(QRChallenge(image_png=png))

    assert path == tmp_path / "wa" / QR_FILENAME
    assert path.read_bytes() == png
