"""Staff rota image renderer.

Draws the rota as a table on a PNG using Pillow so it can be attached to a
WhatsApp message or served inline.

Public class: `RotaRenderer`

Example:
    renderer = RotaRenderer()
    png = renderer.render(await RotaDAL(db).list_shifts())
"""
from __future__ import annotations

import io
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from models.rota_record import ShiftRecord

Color = Tuple[int, int, int] | str

COLUMNS: List[Tuple[str, int]] = [
    ("Employee", 240),
    ("Position", 180),
    ("Date", 120),
    ("Shift Time", 180),
    ("Location", 200),
    ("Status", 200),
]

STATUS_COLORS = {
    "scheduled": ("#fef3c7", "#92400e"),
    "confirmed": ("#d1fae5", "#065f46"),
    "pending": ("#dbeafe", "#1e3a8a"),
    "cancelled": ("#fee2e2", "#991b1b"),
}
DEFAULT_STATUS_COLOR = ("#e2e8f0", "#2d3748")


class RotaRenderer:
    """Render staff shifts into a PNG table.

    Args:
        padding: Outer margin in pixels around the white card.
        row_height: Height of each body row.
        background: Page colour behind the card.
        accent: Header row colour.
    """

    def __init__(
        self,
        padding: int = 40,
        row_height: int = 40,
        background: Color = "#667eea",
        accent: Color = "#764ba2",
    ):
        self.padding = padding
        self.row_height = row_height
        self.background = background
        self.accent = accent
        self.title_font = ImageFont.load_default(size=30)
        self.subtitle_font = ImageFont.load_default(size=14)
        self.header_font = ImageFont.load_default(size=15)
        self.body_font = ImageFont.load_default(size=15)

    def render(self, shifts: Sequence[ShiftRecord], generated_at: Optional[datetime] = None) -> bytes:
        """Return the rota as PNG bytes. An empty rota renders a placeholder row."""
        generated_at = generated_at or datetime.now()
        inner = 32
        table_width = sum(width for _, width in COLUMNS)
        header_height = 48
        title_block = 110
        footer_block = 50
        body_rows = max(1, len(shifts))

        card_width = table_width + inner * 2
        card_height = title_block + header_height + body_rows * self.row_height + footer_block
        width = card_width + self.padding * 2
        height = card_height + self.padding * 2

        image = Image.new("RGB", (width, height), self.background)
        draw = ImageDraw.Draw(image)
        left, top = self.padding, self.padding
        draw.rounded_rectangle((left, top, left + card_width, top + card_height), radius=16, fill="white")

        self._centered(draw, "Staff Rota Schedule", top + inner, width, self.title_font, "#1a202c")
        subtitle = f"Generated on {generated_at:%A}, {generated_at:%B} {generated_at.day}, {generated_at.year}"
        self._centered(draw, subtitle, top + inner + 44, width, self.subtitle_font, "#718096")

        x0 = left + inner
        y = top + title_block
        draw.rectangle((x0, y, x0 + table_width, y + header_height), fill=self.accent)
        x = x0
        for title, col_width in COLUMNS:
            draw.text((x + 14, y + 16), title.upper(), font=self.header_font, fill="white")
            x += col_width
        y += header_height

        if not shifts:
            draw.text((x0 + 14, y + 12), "No shifts scheduled", font=self.body_font, fill="#718096")
            y += self.row_height
        for shift in shifts:
            self._draw_row(draw, shift, x0, y)
            draw.line((x0, y + self.row_height - 1, x0 + table_width, y + self.row_height - 1), fill="#e2e8f0")
            y += self.row_height

        self._centered(draw, "Shared via WhatsApp", y + 18, width, self.subtitle_font, "#a0aec0")

        out_io = io.BytesIO()
        image.save(out_io, format="PNG", optimize=True)
        return out_io.getvalue()

    def _draw_row(self, draw: ImageDraw.ImageDraw, shift: ShiftRecord, x0: int, y: int) -> None:
        cells = [
            shift.employee_name,
            shift.position,
            _short_date(shift.shift_date),
            f"{shift.start_time} - {shift.end_time}",
            shift.location or "-",
        ]
        x = x0
        text_y = y + 12
        for (_, col_width), value in zip(COLUMNS, cells):
            draw.text((x + 14, text_y), _fit(draw, value, col_width - 24, self.body_font), font=self.body_font, fill="#2d3748")
            x += col_width

        fill, ink = STATUS_COLORS.get(shift.status.lower(), DEFAULT_STATUS_COLOR)
        badge_width = int(draw.textlength(shift.status, font=self.body_font)) + 24
        draw.rounded_rectangle((x + 14, y + 8, x + 14 + badge_width, y + self.row_height - 8), radius=10, fill=fill)
        draw.text((x + 26, text_y), shift.status, font=self.body_font, fill=ink)

    @staticmethod
    def _centered(draw: ImageDraw.ImageDraw, text: str, y: int, width: int, font, fill: Color) -> None:
        text_width = draw.textlength(text, font=font)
        draw.text(((width - text_width) / 2, y), text, font=font, fill=fill)


def _short_date(value: str) -> str:
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return value
    return f"{parsed:%b} {parsed.day}"


def _fit(draw: ImageDraw.ImageDraw, text: str, max_width: int, font) -> str:
    """Trim `text` with an ellipsis so it fits inside a column."""
    if draw.textlength(text, font=font) <= max_width:
        return text
    while text and draw.textlength(text + "...", font=font) > max_width:
        text = text[:-1]
    return text + "..."
