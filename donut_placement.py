# donut_placement.py
# Interaction state + tooltip placement for the shareholder donut.
# The UI layer (browser bridge, Streamlit viewer, batch renderer) calls the
# on_* operations synchronously; layout is read through a LayoutProbe on every
# placement() call and never cached, so resize/scroll between events is fine.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from chart_config import LAYOUT, DonutLayout

log = logging.getLogger(__name__)

Point = Tuple[float, float]

TOP = "top"
BOTTOM = "bottom"
# extra room required above the anchor before preferring a top tooltip
TOP_ROOM_SLACK = 4.0


# =======================
# Value types
# =======================
@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class SectorGeometry:
    index: int
    cx: float
    cy: float
    inner_radius: float
    outer_radius: float
    mid_angle: float  # degrees, counter-clockwise from 3 o'clock


@dataclass(frozen=True)
class TooltipPlacement:
    x: float          # card-local
    y: float
    transform: str
    placement: str    # TOP | BOTTOM

    @property
    def css_class(self) -> str:
        return "is-top" if self.placement == TOP else "is-bottom"


@dataclass
class InteractionState:
    active_index: Optional[int] = None
    geometry: Optional[SectorGeometry] = None
    tap_anchor: Optional[Point] = None

    def clear_hover(self) -> None:
        self.active_index = None
        self.geometry = None


class LayoutProbe(Protocol):
    """Live layout reads: pie box, containing card, viewport and tooltip size."""

    def pie_rect(self) -> Optional[Rect]: ...
    def card_rect(self) -> Optional[Rect]: ...
    def viewport_size(self) -> Tuple[float, float]: ...
    def tooltip_size(self) -> Optional[Tuple[float, float]]: ...


@dataclass
class StaticLayout:
    """
    Probe over fixed rectangles, for batch renders and the Streamlit viewer where
    there is no live DOM. Fields are public so a caller can move things between
    events (a scrolled card, a resized viewport) and the engine picks it up.
    """
    pie: Optional[Rect]
    card: Optional[Rect]
    viewport: Tuple[float, float]
    tooltip: Optional[Tuple[float, float]] = None

    def pie_rect(self) -> Optional[Rect]:
        return self.pie

    def card_rect(self) -> Optional[Rect]:
        return self.card

    def viewport_size(self) -> Tuple[float, float]:
        return self.viewport

    def tooltip_size(self) -> Optional[Tuple[float, float]]:
        return self.tooltip

    @classmethod
    def from_config(cls, viewport: dict, layout: DonutLayout = LAYOUT,
                    card_size: Optional[Tuple[float, float]] = None) -> "StaticLayout":
        card_left = float(viewport.get("card_left", 0))
        card_top = float(viewport.get("card_top", 0))
        pie_left = float(viewport.get("pie_left", 0))
        pie_top = float(viewport.get("pie_top", 0))
        cw, ch = card_size or (pie_left + layout.width, pie_top + layout.height)
        return cls(
            pie=Rect(card_left + pie_left, card_top + pie_top, layout.width, layout.height),
            card=Rect(card_left, card_top, cw, ch),
            viewport=(float(viewport.get("width", 1280)), float(viewport.get("height", 800))),
        )


# =======================
# Mid-angle table
# =======================
def sector_mid_angles(values: Sequence[float]) -> List[float]:
    """Mid-angle in degrees of each sector, values rounded to two decimals first."""
    vals = [round(float(v), 2) for v in values]
    total = sum(vals) or 1.0
    start = 0.0
    mids: List[float] = []
    for v in vals:
        sweep = v / total * 360.0
        mids.append(start + sweep / 2.0)
        start += sweep
    return mids


def _top_transform(arrow: float) -> str:
    return f"translate(-50%, -100%) translateY(-{arrow}px)"


def _bottom_transform(arrow: float) -> str:
    return f"translate(-50%, 0) translateY({arrow}px)"


# =======================
# Engine
# =======================
class DonutPlacement:
    """
    Active-entry tracking and viewport-aware tooltip placement for one donut.

    Hover (non-touch only) anchors the tooltip on the sector's ring midpoint and
    always places it on top. A tap or click records a literal anchor in pie-local
    coordinates and runs the viewport fit: prefer top, clamp x, flip to bottom
    when the top would leave the screen. Legend rows point at the donut centre.
    """

    def __init__(self, values: Sequence[float], probe: LayoutProbe,
                 layout: DonutLayout = LAYOUT):
        self.probe = probe
        self.layout = layout
        self.state = InteractionState()
        self.values: List[float] = []
        self.mid_angles: List[float] = []
        self.set_values(values)

    # ---- data ----
    def set_values(self, values: Sequence[float]) -> None:
        self.values = [round(float(v), 2) for v in values]
        self.mid_angles = sector_mid_angles(self.values)
        if self.state.active_index is not None and self.state.active_index >= len(self.values):
            self.state.clear_hover()

    @property
    def is_touch(self) -> bool:
        return self.layout.touch

    @property
    def active_index(self) -> Optional[int]:
        return self.state.active_index

    @property
    def tip_item(self) -> Optional[float]:
        i = self.state.active_index
        return self.values[i] if i is not None else None

    def is_active(self, index: int) -> bool:
        return self.state.active_index == index

    def opacity(self, index: int) -> float:
        if self.state.active_index is None or self.state.active_index == index:
            return 1.0
        return 0.25

    def stroke_width(self, index: int) -> float:
        return 3.0 if self.state.active_index == index else 1.0

    # ---- state transitions ----
    def _activate(self, geometry: SectorGeometry) -> None:
        self.state.active_index = geometry.index
        self.state.geometry = geometry

    def _legend_geometry(self, index: int) -> Optional[SectorGeometry]:
        if not 0 <= index < len(self.mid_angles):
            return None
        cx, cy = self.layout.center
        return SectorGeometry(index, cx, cy, self.layout.inner, self.layout.outer,
                              self.mid_angles[index])

    def local_pos_in_pie(self, client: Point) -> Optional[Point]:
        pie = self.probe.pie_rect()
        if pie is None:
            return None
        return client[0] - pie.left, client[1] - pie.top

    def on_enter_or_move(self, geometry: SectorGeometry) -> None:
        if not self.is_touch:
            self._activate(geometry)

    def on_leave(self) -> None:
        if not self.is_touch:
            self.state.clear_hover()
            self.state.tap_anchor = None

    def on_touch_start(self, geometry: SectorGeometry, client: Optional[Point]) -> None:
        if client is not None:
            p = self.local_pos_in_pie(client)
            if p is not None:
                self.state.tap_anchor = p
        self._activate(geometry)

    def on_click(self, geometry: SectorGeometry, client: Optional[Point]) -> None:
        # without client coordinates the previous anchor (if any) stays
        self.on_touch_start(geometry, client)

    def on_tap_or_click(self, geometry: SectorGeometry, screen_point: Optional[Point]) -> None:
        if self.is_touch:
            self.on_touch_start(geometry, screen_point)
        else:
            self.on_click(geometry, screen_point)

    def on_legend_enter(self, index: int) -> None:
        if self.is_touch:
            return
        geom = self._legend_geometry(index)
        if geom is not None:
            self._activate(geom)

    def on_legend_leave(self) -> None:
        self.on_leave()

    def on_legend_activate(self, index: int) -> None:
        geom = self._legend_geometry(index)
        if geom is None:
            log.debug("legend index %s out of range (%d entries)", index, len(self.mid_angles))
            return
        self.state.tap_anchor = self.layout.center
        self._activate(geom)

    # ---- placement ----
    def anchor_in_pie(self) -> Optional[Point]:
        if self.state.tap_anchor is not None:
            return self.state.tap_anchor
        g = self.state.geometry
        if g is None:
            return None
        ang = math.radians(-g.mid_angle)
        r = (g.inner_radius + g.outer_radius) / 2 - self.layout.anchor_inset
        return g.cx + math.cos(ang) * r, g.cy + math.sin(ang) * r

    def placement(self) -> Optional[TooltipPlacement]:
        if self.state.active_index is None:
            return None
        a_pie = self.anchor_in_pie()
        card = self.probe.card_rect()
        pie = self.probe.pie_rect()
        if a_pie is None or card is None or pie is None:
            return None

        arrow = self.layout.tooltip_arrow
        x_card = (pie.left - card.left) + a_pie[0]
        y_card = (pie.top - card.top) + a_pie[1]

        if self.state.tap_anchor is None:
            return TooltipPlacement(x_card, y_card, _top_transform(arrow), TOP)

        tw, th = self.probe.tooltip_size() or (self.layout.tip_fallback_w, self.layout.tip_fallback_h)
        vw, vh = self.probe.viewport_size()
        pad = self.layout.viewport_pad

        x_abs = card.left + x_card
        y_abs = card.top + y_card

        use_top = y_abs >= th + arrow + TOP_ROOM_SLACK
        cx_abs = x_abs
        cy_abs = y_abs - arrow if use_top else y_abs + arrow

        min_x = pad + tw / 2
        max_x = vw - pad - tw / 2
        cx_abs = min(max(cx_abs, min_x), max_x)

        if use_top and cy_abs - th < pad:
            use_top = False
            cy_abs = min(vh - pad - th, y_abs + arrow)
        elif not use_top and cy_abs + th > vh - pad:
            cy_abs = vh - pad - th

        return TooltipPlacement(
            x=cx_abs - card.left,
            y=cy_abs - card.top,
            transform=_top_transform(arrow) if use_top else _bottom_transform(arrow),
            placement=TOP if use_top else BOTTOM,
        )
