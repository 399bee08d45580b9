from __future__ import annotations

from io import BytesIO
from typing import Any, Mapping, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ai_responses import CallSheetPayload, ShotListPayload
from invoice_pdf import draw_truncated, hline

# (header, relative column width)
Column = Tuple[str, float]

SHOT_COLUMNS: Tuple[Column, ...] = (("#", 0.5), ("SIZE", 0.7), ("TYPE", 1.0), ("DESCRIPTION", 4.0), ("NOTES", 3.0))
CREW_COLUMNS: Tuple[Column, ...] = (("ROLE", 2.0), ("NAME", 2.0), ("PHONE", 1.5), ("EMAIL", 2.5), ("CALL", 1.0))
TALENT_COLUMNS: Tuple[Column, ...] = (("ROLE", 2.0), ("NAME", 2.0), ("CALL", 1.0), ("NOTES", 4.0))
SCHEDULE_COLUMNS: Tuple[Column, ...] = (("TIME", 1.0), ("ACTIVITY", 3.0), ("LOCATION", 2.5), ("NOTES", 3.0))

_ROW_H = 0.22 * inch
_MARGIN = 0.5 * inch


def sketch_key(scene_index: int, shot_index: int) -> str:
    return f"{scene_index}-{shot_index}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _records(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, Mapping)]


def scene_records(payload: ShotListPayload) -> list[Mapping[str, Any]]:
    """
    Scenes that are JSON objects, in order. Sketch keys index into this list.
    """
    return payload.scenes


def shot_records(scene: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    return _records(scene.get("shots"))


class _Page:
    """Cursor over a landscape page that starts a new page when it runs out of room."""

    def __init__(self, c: canvas.Canvas, title: str) -> None:
        self.c = c
        self.title = title
        self.w, self.h = landscape(letter)
        self.x0 = _MARGIN
        self.x1 = self.w - _MARGIN
        self.y = self.h - _MARGIN

    def ensure(self, needed: float) -> None:
        if self.y - needed < _MARGIN + 0.3 * inch:
            self.c.showPage()
            self.y = self.h - _MARGIN
            self.c.setFont("Helvetica-Bold", 9)
            self.c.setFillColor(colors.grey)
            self.c.drawString(self.x0, self.y, f"{self.title} (CONTINUED)")
            self.c.setFillColor(colors.black)
            self.y -= 0.35 * inch

    def heading(self, text: str, size: int = 11) -> None:
        self.ensure(0.5 * inch)
        self.c.setFont("Helvetica-Bold", size)
        self.c.drawString(self.x0, self.y, text)
        self.y -= 0.28 * inch

    def line(self, text: str, *, bold: bool = False) -> None:
        self.ensure(_ROW_H)
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", 9)
        draw_truncated(self.c, self.x0, self.y, text, max_width=self.x1 - self.x0)
        self.y -= _ROW_H

    def table(self, columns: Sequence[Column], rows: Sequence[Sequence[str]]) -> None:
        total = sum(weight for _, weight in columns)
        width = self.x1 - self.x0
        xs = []
        x = self.x0
        for _, weight in columns:
            xs.append(x)
            x += width * weight / total

        def _header() -> None:
            self.c.setFont("Helvetica-Bold", 8)
            for (label, _), cx in zip(columns, xs):
                self.c.drawString(cx + 2, self.y, label)
            hline(self.c, self.x0, self.x1, self.y - 0.07 * inch)
            self.y -= _ROW_H

        self.ensure(2 * _ROW_H)
        _header()
        self.c.setFont("Helvetica", 9)
        for row in rows:
            if self.y - _ROW_H < _MARGIN + 0.3 * inch:
                self.ensure(2 * _ROW_H)
                _header()
                self.c.setFont("Helvetica", 9)
            for i, (cell, cx) in enumerate(zip(row, xs)):
                col_w = (xs[i + 1] if i + 1 < len(xs) else self.x1) - cx
                draw_truncated(self.c, cx + 2, self.y, cell, max_width=col_w - 6)
            self.y -= _ROW_H
        self.y -= 0.1 * inch

    def image(self, png: bytes, *, height: float) -> None:
        self.ensure(height + 0.1 * inch)
        try:
            self.c.drawImage(
                ImageReader(BytesIO(png)),
                self.x0,
                self.y - height,
                width=height * 16 / 9,
                height=height,
                preserveAspectRatio=True,
                anchor="sw",
                mask="auto",
            )
        except (OSError, ValueError):
            return
        self.y -= height + 0.1 * inch


def _new_canvas() -> Tuple[canvas.Canvas, BytesIO]:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=landscape(letter))
    c.setPageCompression(0)
    return c, buf


def make_shot_list_pdf_bytes(payload: ShotListPayload, *, sketches: Optional[Mapping[str, bytes]] = None) -> bytes:
    """
    Render a shot list; storyboard sketches (keyed by `sketch_key`) are placed under their shot rows.
    """
    data = payload.data
    sketches = sketches or {}
    c, buf = _new_canvas()
    page = _Page(c, "SHOT LIST")
    page.heading("SHOT LIST", size=18)
    page.line(_text(data.get("projectTitle")) or "Untitled project", bold=True)
    page.y -= 0.1 * inch

    for scene_idx, scene in enumerate(scene_records(payload)):
        label = f"SCENE {_text(scene.get('sceneNumber')) or scene_idx + 1}"
        loc = _text(scene.get("location"))
        page.heading(f"{label} - {loc}" if loc else label)
        desc = _text(scene.get("description"))
        if desc:
            page.line(desc)
        shots = shot_records(scene)
        rows = [
            (
                _text(shot.get("shotNumber")) or str(i + 1),
                _text(shot.get("size")),
                _text(shot.get("type")),
                _text(shot.get("description")),
                _text(shot.get("notes")),
            )
            for i, shot in enumerate(shots)
        ]
        page.table(SHOT_COLUMNS, rows)
        for shot_idx in range(len(shots)):
            png = sketches.get(sketch_key(scene_idx, shot_idx))
            if png:
                page.line(f"Storyboard - shot {rows[shot_idx][0]}", bold=True)
                page.image(png, height=1.6 * inch)

    c.showPage()
    c.save()
    return buf.getvalue()


def make_call_sheet_pdf_bytes(payload: CallSheetPayload) -> bytes:
    data = payload.data
    c, buf = _new_canvas()
    page = _Page(c, "CALL SHEET")
    page.heading("CALL SHEET", size=18)
    page.line(_text(data.get("projectTitle")) or "Untitled project", bold=True)
    for label, key in (
        ("Client", "client"),
        ("Shoot date", "shootDate"),
        ("General call", "generalCallTime"),
        ("Location", "location"),
        ("Weather", "weather"),
    ):
        value = _text(data.get(key))
        if value:
            page.line(f"{label}: {value}")
    page.y -= 0.1 * inch

    crew = _records(data.get("crew"))
    if crew:
        page.heading("CREW")
        page.table(
            CREW_COLUMNS,
            [tuple(_text(m.get(k)) for k in ("role", "name", "phone", "email", "callTime")) for m in crew],
        )
    talent = _records(data.get("talent"))
    if talent:
        page.heading("TALENT")
        page.table(
            TALENT_COLUMNS,
            [tuple(_text(m.get(k)) for k in ("role", "name", "callTime", "notes")) for m in talent],
        )
    schedule = _records(data.get("schedule"))
    if schedule:
        page.heading("SCHEDULE")
        page.table(
            SCHEDULE_COLUMNS,
            [tuple(_text(m.get(k)) for k in ("time", "activity", "location", "notes")) for m in schedule],
        )

    locations = data.get("locations")
    if isinstance(locations, Mapping):
        page.heading("LOCATIONS")
        for label, key in (("Address", "address"), ("Parking", "parking"), ("Nearest hospital", "hospital")):
            value = _text(locations.get(key))
            if value:
                page.line(f"{label}: {value}")

    notes = _text(data.get("notes"))
    if notes:
        page.heading("NOTES")
        page.line(notes)

    c.showPage()
    c.save()
    return buf.getvalue()
