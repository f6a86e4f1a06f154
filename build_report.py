# build_report.py
# One-page shareholder structure report: wrapped holder table, donut drawn with
# reportlab wedges, legend and the "last updated" line. Optionally stamped onto
# a template PDF from config.toml [paths.report_template_pdf].

from __future__ import annotations

import io
import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import letter
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from chart_config import (
    FEED_PATH,
    FONT_BOLD_NAME,
    FONT_BOLD_PATH,
    FONT_MED_NAME,
    FONT_MED_PATH,
    LAYOUT,
    REPORT_DIR,
    REPORT_TEMPLATE_PDF,
    DonutLayout,
)
from donut import sector_spans
from shareholder_structure import (
    OwnershipEntry,
    format_percent,
    load_feed,
    reconcile,
    updated_at_line,
)

log = logging.getLogger(__name__)

# ========= PAGE LAYOUT (tweak here) =========
MARGIN_X: float = 54.0
TITLE_Y_OFFSET: float = 72.0      # measured down from top of page
TABLE_TOP_OFFSET: float = 120.0
HOLDER_COL_RIGHT_X: float = 330.0
PERCENT_COL_RIGHT_X: float = 420.0
TABLE_FONT_SIZE: float = 11.0
LINE_SPACING_INTRA: float = 13.0  # wrapped lines of the SAME holder
LINE_SPACING_INTER: float = 20.0  # from one holder row to the next
DONUT_SCALE: float = 0.55         # chart px -> pt
LEGEND_SPACING: float = 16.0
FOOTER_Y: float = 48.0


# ========= FONTS =========
def register_fonts() -> None:
    for name, path in ((FONT_BOLD_NAME, FONT_BOLD_PATH), (FONT_MED_NAME, FONT_MED_PATH)):
        if not path:
            continue  # built-in Type1 font, nothing to register
        try:
            pdfmetrics.registerFont(TTFont(name, path))
        except Exception as exc:
            log.warning("Font %s not registered from %s: %s", name, path, exc)


# ========= TEXT WRAPPING =========
def _string_width(text: str, font_name: str, font_size: float) -> float:
    return pdfmetrics.stringWidth(text, font_name, font_size)


def _wrap_text_by_words(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    """
    Greedy word-wrapping using measured widths.
    A single token wider than max_width is split by characters.
    """
    if not text:
        return [""]

    lines: List[str] = []
    current: List[str] = []
    for w in text.split():
        if _string_width(w, font_name, font_size) > max_width:
            if current:
                lines.append(" ".join(current))
                current = []
            chunk = ""
            for ch in w:
                if _string_width(chunk + ch, font_name, font_size) <= max_width:
                    chunk += ch
                else:
                    if chunk:
                        lines.append(chunk)
                    chunk = ch
            if chunk:
                lines.append(chunk)
            continue

        trial = current + [w]
        if _string_width(" ".join(trial), font_name, font_size) <= max_width:
            current = trial
        else:
            if current:
                lines.append(" ".join(current))
            current = [w]

    if current:
        lines.append(" ".join(current))
    return lines or [""]


def _draw_table(c: canvas.Canvas, entries: Sequence[OwnershipEntry], top_y: float) -> float:
    """Holder | Share rows; returns the y below the last row."""
    max_width = HOLDER_COL_RIGHT_X - MARGIN_X
    c.setFont(FONT_BOLD_NAME, TABLE_FONT_SIZE)
    c.drawString(MARGIN_X, top_y, "Holder")
    c.drawRightString(PERCENT_COL_RIGHT_X, top_y, "Share, %")
    c.setStrokeColor(colors.lightgrey)
    c.line(MARGIN_X, top_y - 6, PERCENT_COL_RIGHT_X, top_y - 6)

    c.setFont(FONT_MED_NAME, TABLE_FONT_SIZE)
    y = top_y - LINE_SPACING_INTER
    for e in entries:
        lines = _wrap_text_by_words(e.name, FONT_MED_NAME, TABLE_FONT_SIZE, max_width)
        c.drawRightString(PERCENT_COL_RIGHT_X, y, format_percent(e.percent))
        for i, line in enumerate(lines):
            c.drawString(MARGIN_X, y, line)
            if i < len(lines) - 1:
                y -= LINE_SPACING_INTRA
        y -= LINE_SPACING_INTER
    return y


def _draw_donut(c: canvas.Canvas, entries: Sequence[OwnershipEntry], cx: float, cy: float,
                layout: DonutLayout) -> None:
    # PDF y points up, so chart angles (counter-clockwise from 3 o'clock) map directly
    r_out = layout.outer * DONUT_SCALE
    r_in = layout.inner * DONUT_SCALE
    spans = sector_spans([e.percent for e in entries])
    for i, (a0, a1) in enumerate(spans):
        if a1 - a0 <= 0:
            continue
        c.setFillColor(HexColor(layout.color_for(i)))
        if a1 - a0 >= 359.999:
            c.circle(cx, cy, r_out, stroke=0, fill=1)
        else:
            c.wedge(cx - r_out, cy - r_out, cx + r_out, cy + r_out, a0, a1 - a0, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.circle(cx, cy, r_in, stroke=0, fill=1)


def _draw_legend(c: canvas.Canvas, entries: Sequence[OwnershipEntry], left_x: float, top_y: float,
                 layout: DonutLayout) -> None:
    c.setFont(FONT_MED_NAME, 9)
    y = top_y
    for i, e in enumerate(entries):
        c.setFillColor(HexColor(layout.color_for(i)))
        c.circle(left_x + 4, y + 3, 4, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.drawString(left_x + 14, y, e.name)
        y -= LEGEND_SPACING


# ========= OVERLAY =========
def paint_report(entries: Sequence[OwnershipEntry], day: Optional[date] = None,
                 layout: DonutLayout = LAYOUT, title: str = "Shareholder structure") -> bytes:
    width, height = letter
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)

    c.setFillColor(colors.black)
    c.setFont(FONT_BOLD_NAME, 22)
    c.drawString(MARGIN_X, height - TITLE_Y_OFFSET, title)

    table_end_y = _draw_table(c, entries, height - TABLE_TOP_OFFSET)

    r_out = layout.outer * DONUT_SCALE
    donut_cx = PERCENT_COL_RIGHT_X + (width - PERCENT_COL_RIGHT_X) / 2
    donut_cy = height - TABLE_TOP_OFFSET - r_out
    _draw_donut(c, entries, donut_cx, donut_cy, layout)
    _draw_legend(c, entries, donut_cx - r_out, donut_cy - r_out - 24, layout)

    c.setFillColor(colors.grey)
    c.setFont(FONT_MED_NAME, 9)
    c.drawString(MARGIN_X, min(FOOTER_Y, table_end_y), updated_at_line(day))

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.read()


def merge_overlay(template_pdf: Optional[str], overlay_bytes: bytes, out_path: Path) -> None:
    overlay_page = PdfReader(io.BytesIO(overlay_bytes)).pages[0]
    if template_pdf and Path(template_pdf).exists():
        page = PdfReader(template_pdf).pages[0]
        page.merge_page(overlay_page)
    else:
        page = overlay_page
    writer = PdfWriter()
    writer.add_page(page)
    with open(out_path, "wb") as f:
        writer.write(f)


def build_report(feed_path: str = FEED_PATH, out_dir: str = REPORT_DIR,
                 template_pdf: Optional[str] = REPORT_TEMPLATE_PDF,
                 day: Optional[date] = None) -> Path:
    register_fonts()
    outdir = Path(out_dir)
    outdir.mkdir(parents=True, exist_ok=True)

    entries = reconcile(load_feed(feed_path))
    out_path = outdir / "shareholder_structure.pdf"
    merge_overlay(template_pdf, paint_report(entries, day), out_path)
    return out_path


# ========= MAIN =========
def main():
    out_path = build_report()
    print(f"[OK] {out_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
