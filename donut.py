# donut.py
# Shareholder donut (SVG): ring slices with a small gap, legend rows with colour
# dots, active/dimmed styling and the floating tooltip placed by DonutPlacement.
# Angles follow the chart convention: 0° at 3 o'clock, counter-clockwise, so a
# sector's screen angle is the negated chart angle (SVG y grows downwards).
# Requires: pip install svgwrite pandas  (optional: cairosvg if rsvg-convert not available)

from __future__ import annotations

import argparse
import logging
import math
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import svgwrite

from chart_config import CHART_DIR, FEED_PATH, LAYOUT, VIEWPORT, DonutLayout
from donut_placement import (
    BOTTOM,
    DonutPlacement,
    SectorGeometry,
    StaticLayout,
    TooltipPlacement,
)
from shareholder_structure import OwnershipEntry, format_percent, load_feed, reconcile

log = logging.getLogger(__name__)

LEGEND_GAP = 24.0
LEGEND_ROW_H = 28.0
LEGEND_DOT_R = 6.0
LEGEND_FONT = 14
TIP_TITLE_FONT = 13
TIP_VALUE_FONT = 16
TIP_PAD = 10.0
TEXT_COLOR = "#1f2329"


# =======================
# Geometry helpers
# =======================
def _arc_point(cx, cy, r, screen_deg):
    a = math.radians(screen_deg)
    return cx + r * math.cos(a), cy + r * math.sin(a)


def _donut_slice_path(cx, cy, r_outer, r_inner, a0, a1):
    """Ring slice between screen angles a0 < a1 (clockwise on screen)."""
    x0, y0 = _arc_point(cx, cy, r_outer, a0)
    x1, y1 = _arc_point(cx, cy, r_outer, a1)
    xi1, yi1 = _arc_point(cx, cy, r_inner, a1)
    xi0, yi0 = _arc_point(cx, cy, r_inner, a0)
    large = 1 if (a1 - a0) > 180 else 0
    return " ".join([
        f"M {x0:.3f},{y0:.3f}",
        f"A {r_outer:.3f},{r_outer:.3f} 0 {large} 1 {x1:.3f},{y1:.3f}",
        f"L {xi1:.3f},{yi1:.3f}",
        f"A {r_inner:.3f},{r_inner:.3f} 0 {large} 0 {xi0:.3f},{yi0:.3f}",
        "Z",
    ])


def _donut_full_ring_path(cx, cy, r_outer, r_inner):
    """
    Full 360° ring as two half-arcs per edge; a single SVG arc from a point
    back to itself draws nothing.
    """
    xo0, yo0 = cx + r_outer, cy
    xo1, yo1 = cx - r_outer, cy
    xi0, yi0 = cx + r_inner, cy
    xi1, yi1 = cx - r_inner, cy
    return " ".join([
        f"M {xo0:.3f},{yo0:.3f}",
        f"A {r_outer:.3f},{r_outer:.3f} 0 0 1 {xo1:.3f},{yo1:.3f}",
        f"A {r_outer:.3f},{r_outer:.3f} 0 0 1 {xo0:.3f},{yo0:.3f}",
        f"M {xi0:.3f},{yi0:.3f}",
        f"A {r_inner:.3f},{r_inner:.3f} 0 0 0 {xi1:.3f},{yi1:.3f}",
        f"A {r_inner:.3f},{r_inner:.3f} 0 0 0 {xi0:.3f},{yi0:.3f}",
        "Z",
    ])


def sector_spans(values: Sequence[float]) -> List[Tuple[float, float]]:
    """(start, end) chart angles in degrees for each value, before padding."""
    vals = [round(float(v), 2) for v in values]
    total = sum(vals) or 1.0
    spans = []
    start = 0.0
    for v in vals:
        sweep = v / total * 360.0
        spans.append((start, start + sweep))
        start += sweep
    return spans


def sector_geometries(values: Sequence[float], layout: DonutLayout = LAYOUT) -> List[SectorGeometry]:
    """What the surface hands the placement engine when a sector is hovered or tapped."""
    cx, cy = layout.center
    return [
        SectorGeometry(i, cx, cy, layout.inner, layout.outer, (a0 + a1) / 2.0)
        for i, (a0, a1) in enumerate(sector_spans(values))
    ]


def sector_at(point: Tuple[float, float], values: Sequence[float],
              layout: DonutLayout = LAYOUT) -> Optional[int]:
    """Index of the sector under a pie-local point, or None off the ring."""
    cx, cy = layout.center
    dx, dy = point[0] - cx, point[1] - cy
    r = math.hypot(dx, dy)
    if r < layout.inner or r > layout.outer:
        return None
    ang = math.degrees(math.atan2(-dy, dx)) % 360.0
    spans = sector_spans(values)
    for i, (a0, a1) in enumerate(spans):
        if a0 <= ang < a1:
            return i
    # float drift can leave the last end just under 360
    live = [i for i, (a0, a1) in enumerate(spans) if a1 > a0]
    if live and ang >= spans[live[-1]][0]:
        return live[-1]
    return None


# =======================
# Text helpers
# =======================
def _estimate_text_width(text: str, font_size: float) -> float:
    """Rough width in px (sans-serif heuristic)."""
    return max(1.0, len(str(text)) * font_size * 0.55)


def tooltip_size_for(title: str, value: float) -> Tuple[float, float]:
    """Estimated tooltip box size; stands in for a measured size when there is no DOM."""
    w = max(_estimate_text_width(title, TIP_TITLE_FONT),
            _estimate_text_width(format_percent(value, decimal=","), TIP_VALUE_FONT))
    h = TIP_TITLE_FONT + 6 + TIP_VALUE_FONT
    return w + 2 * TIP_PAD, h + 2 * TIP_PAD


def card_size(entries: Sequence[OwnershipEntry], pie_offset: Tuple[float, float],
              layout: DonutLayout = LAYOUT) -> Tuple[float, float]:
    px, py = pie_offset
    legend_w = max([_estimate_text_width(e.name, LEGEND_FONT) for e in entries] or [0.0])
    width = px + layout.width + LEGEND_GAP + 2 * LEGEND_DOT_R + 8 + legend_w + px
    height = max(py + layout.height + py, py + LEGEND_ROW_H * len(entries) + py)
    return width, height


# =======================
# Renderer
# =======================
def _add_tooltip(dwg, entry: OwnershipEntry, place: TooltipPlacement, arrow: float):
    tw, th = tooltip_size_for(entry.name, entry.percent)
    x, y = place.x, place.y
    if place.placement == BOTTOM:
        box_top = y + arrow
        tri = [(x, y), (x - arrow, y + arrow), (x + arrow, y + arrow)]
    else:
        box_top = y - arrow - th
        tri = [(x, y), (x - arrow, y - arrow), (x + arrow, y - arrow)]

    tip = dwg.g(class_=f"chart-tooltip chart-tooltip--inside {place.css_class}")
    tip.add(dwg.rect(insert=(x - tw / 2, box_top), size=(tw, th), rx=6, ry=6,
                     fill="#ffffff", stroke="#d9dde3"))
    tip.add(dwg.polygon(tri, fill="#ffffff", stroke="#d9dde3"))
    tip.add(dwg.text(entry.name, insert=(x, box_top + TIP_PAD + TIP_TITLE_FONT),
                     text_anchor="middle", font_size=TIP_TITLE_FONT, fill="#6b7280",
                     class_="chart-tooltip__title"))
    tip.add(dwg.text(format_percent(entry.percent, decimal=","),
                     insert=(x, box_top + th - TIP_PAD),
                     text_anchor="middle", font_size=TIP_VALUE_FONT, fill=TEXT_COLOR,
                     font_weight="bold", class_="chart-tooltip__value"))
    dwg.add(tip)


def donut_svg(
    svg_path: Optional[str],
    entries: Sequence[OwnershipEntry],
    engine: Optional[DonutPlacement] = None,
    layout: DonutLayout = LAYOUT,
    pie_offset: Tuple[float, float] = (24.0, 24.0),
    font_family: str = "sans-serif",
) -> str:
    """
    Draw the card (pie box + legend + tooltip) and return the SVG markup.

    The SVG origin is the card's top-left, so the engine's card-local tooltip
    coordinates are used as-is. ``svg_path`` may be None to skip writing.
    """
    assert layout.inner < layout.outer
    width, height = card_size(entries, pie_offset, layout)
    dwg = svgwrite.Drawing(svg_path or "donut.svg", size=(width, height), profile="full")
    dwg.attribs["viewBox"] = f"0 0 {width:.3f} {height:.3f}"
    dwg.attribs["font-family"] = font_family

    values = [e.percent for e in entries]
    cx, cy = layout.center
    pie = dwg.g(transform=f"translate({pie_offset[0]},{pie_offset[1]})", class_="pie-box")
    pie.set_desc(title="Shareholder structure donut")

    pad = layout.padding_angle if len(values) > 1 else 0.0
    for i, (a0, a1) in enumerate(sector_spans(values)):
        sweep = a1 - a0
        if sweep <= 0:
            continue
        opacity = engine.opacity(i) if engine else 1.0
        stroke_w = engine.stroke_width(i) if engine else 1.0
        if sweep >= 359.999:
            d = _donut_full_ring_path(cx, cy, layout.outer, layout.inner)
        else:
            inset = min(pad / 2.0, sweep / 4.0)
            # chart angles run counter-clockwise; on screen they are negated
            d = _donut_slice_path(cx, cy, layout.outer, layout.inner, -(a1 - inset), -(a0 + inset))
        slice_path = dwg.path(d=d, fill=layout.color_for(i), stroke="#ffffff",
                              stroke_width=stroke_w, fill_opacity=opacity, fill_rule="evenodd")
        pie.add(slice_path)
    dwg.add(pie)

    legend_x = pie_offset[0] + layout.width + LEGEND_GAP
    legend = dwg.g(class_="chart-legend")
    for i, e in enumerate(entries):
        row_y = pie_offset[1] + LEGEND_ROW_H * i + LEGEND_ROW_H / 2
        opacity = engine.opacity(i) if engine else 1.0
        row = dwg.g(class_="legend-row")
        row.add(dwg.circle(center=(legend_x + LEGEND_DOT_R, row_y), r=LEGEND_DOT_R,
                           fill=layout.color_for(i), opacity=opacity, class_="legend-dot"))
        row.add(dwg.text(e.name, insert=(legend_x + 2 * LEGEND_DOT_R + 8, row_y + LEGEND_FONT * 0.35),
                         font_size=LEGEND_FONT, fill=TEXT_COLOR, class_="legend-text"))
        legend.add(row)
    dwg.add(legend)

    if engine is not None and engine.active_index is not None:
        place = engine.placement()
        if place is not None and engine.active_index < len(entries):
            _add_tooltip(dwg, entries[engine.active_index], place, layout.tooltip_arrow)

    if svg_path:
        dwg.save()
    return dwg.tostring()


# =======================
# IO
# =======================
def _to_png(svg_path: str, png_path: str) -> bool:
    """Convert SVG → PNG. Prefer rsvg-convert; fallback to cairosvg if installed."""
    rsvg = shutil.which("rsvg-convert")
    if rsvg:
        result = subprocess.run([rsvg, svg_path, "-a", "-f", "png", "-o", png_path], check=False)
        return result.returncode == 0
    try:
        import cairosvg  # type: ignore
    except (ImportError, OSError) as exc:
        # OSError: cairosvg installed but libcairo missing
        log.warning("PNG not created for %s: no usable converter (%s)", svg_path, exc)
        return False
    try:
        cairosvg.svg2png(url=svg_path, write_to=png_path)
    except Exception as exc:
        log.warning("PNG not created for %s: %s", svg_path, exc)
        return False
    return True


def static_probe_for(entries: Sequence[OwnershipEntry], layout: DonutLayout = LAYOUT,
                     viewport: Optional[dict] = None) -> StaticLayout:
    """Fixed layout matching what donut_svg draws: card at the configured offset, pie inside it."""
    viewport = dict(VIEWPORT if viewport is None else viewport)
    viewport.setdefault("pie_left", 24.0)
    viewport.setdefault("pie_top", 24.0)
    pie_offset = (float(viewport["pie_left"]), float(viewport["pie_top"]))
    return StaticLayout.from_config(viewport, layout, card_size(entries, pie_offset, layout))


def generate_donut_from_feed(
    feed_path: str = FEED_PATH,
    out_dir: str = CHART_DIR,
    *,
    active: Optional[int] = None,
    tap: Optional[Tuple[float, float]] = None,
    layout: DonutLayout = LAYOUT,
    png: bool = True,
) -> Tuple[str, Optional[str]]:
    """
    Reconcile the feed and write ``donut.svg`` (and ``donut.png``).

    ``active`` highlights a legend entry; ``tap`` is a viewport point that is
    hit-tested against the ring and handled like a click.
    """
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    entries = reconcile(load_feed(feed_path))
    probe = static_probe_for(entries, layout)
    engine = DonutPlacement([e.percent for e in entries], probe, layout)

    if active is not None:
        engine.on_legend_activate(active)
    if tap is not None:
        local = engine.local_pos_in_pie(tap)
        idx = sector_at(local, engine.values, layout) if local is not None else None
        if idx is not None:
            engine.on_tap_or_click(sector_geometries(engine.values, layout)[idx], tap)
    if engine.active_index is not None:
        item = entries[engine.active_index]
        probe.tooltip = tooltip_size_for(item.name, item.percent)

    pie_offset = (probe.pie.left - probe.card.left, probe.pie.top - probe.card.top)
    svg_path = os.path.join(out_dir, "donut.svg")
    donut_svg(svg_path, entries, engine, layout, pie_offset)

    png_path = os.path.join(out_dir, "donut.png")
    if png and _to_png(svg_path, png_path):
        return svg_path, png_path
    return svg_path, None


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Render the shareholder donut to SVG/PNG.")
    parser.add_argument("--feed", default=FEED_PATH)
    parser.add_argument("--out", default=CHART_DIR)
    parser.add_argument("--active", type=int, default=None, help="0-based legend entry to highlight")
    parser.add_argument("--tap", type=float, nargs=2, metavar=("X", "Y"), default=None,
                        help="viewport point to treat as a click")
    parser.add_argument("--no-png", action="store_true")
    args = parser.parse_args(argv)

    svg, png = generate_donut_from_feed(
        args.feed, args.out,
        active=args.active,
        tap=tuple(args.tap) if args.tap else None,
        png=not args.no_png,
    )
    print(f"[OK] {os.path.basename(svg)}" + (f"  |  {os.path.basename(png)}" if png else ""))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
