# chart_config.py
# Shared settings for the shareholder donut: reads Configs/config.toml once and
# exposes paths plus a DonutLayout with chart geometry and tooltip constants.
# Every key has a fallback so the modules also work without a config file.

from __future__ import annotations

import tomllib  # stdlib (3.11+)
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

# --- anchor everything to this file's folder ---
HERE = Path(__file__).parent

DEFAULT_COLORS: Tuple[str, ...] = (
    "#69cdff",  # light blue
    "#ff5555",  # red
    "#ffc94f",  # yellow
    "#37d881",  # green
    "#9966ff",  # purple
    "#ff9f40",  # orange
)


def _load_cfg(path: Path | None = None) -> dict:
    cfg_path = path or (HERE / "Configs" / "config.toml")
    if cfg_path.exists():
        with open(cfg_path, "rb") as f:
            return tomllib.load(f)
    return {}


@dataclass(frozen=True)
class DonutLayout:
    """
    Geometry of one donut widget plus the tooltip fitting constants.

    ``touch`` is the "supports discrete tap semantics" flag; it is decided once
    per session and threaded into the placement engine instead of being
    queried per event.
    """
    width: float = 301
    height: float = 301
    outer: float = 145
    inner: float = 92
    padding_angle: float = 1.0
    anchor_inset: float = 0.0
    tooltip_arrow: float = 5.656
    viewport_pad: float = 8
    tip_fallback_w: float = 180
    tip_fallback_h: float = 70
    touch: bool = False
    colors: Tuple[str, ...] = field(default=DEFAULT_COLORS)

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2, self.height / 2

    def color_for(self, index: int) -> str:
        return self.colors[index % len(self.colors)]


def layout_from_config(cfg: dict) -> DonutLayout:
    chart = cfg.get("chart", {}) or {}
    tip = cfg.get("tooltip", {}) or {}
    device = cfg.get("device", {}) or {}
    colors = tuple(str(c) for c in (chart.get("colors") or DEFAULT_COLORS))
    return DonutLayout(
        width=float(chart.get("width", 301)),
        height=float(chart.get("height", 301)),
        outer=float(chart.get("outer", 145)),
        inner=float(chart.get("inner", 92)),
        padding_angle=float(chart.get("padding_angle", 1.0)),
        anchor_inset=float(chart.get("anchor_inset", 0.0)),
        tooltip_arrow=float(tip.get("arrow", 5.656)),
        viewport_pad=float(tip.get("viewport_pad", 8)),
        tip_fallback_w=float(tip.get("fallback_width", 180)),
        tip_fallback_h=float(tip.get("fallback_height", 70)),
        touch=bool(device.get("touch", False)),
        colors=colors or DEFAULT_COLORS,
    )


_CFG = _load_cfg()

# Read defaults from config, but keep sane fallbacks
FEED_PATH   = str(HERE / _CFG.get("paths", {}).get("feed", "data/shareholders.json"))
CHART_DIR   = str(HERE / _CFG.get("paths", {}).get("chart_dir", "charts"))
REPORT_DIR  = str(HERE / _CFG.get("paths", {}).get("report_dir", "reports"))
_template   = _CFG.get("paths", {}).get("report_template_pdf")
REPORT_TEMPLATE_PDF = str(HERE / _template) if _template else None

FEED_TICKER = _CFG.get("feed", {}).get("ticker", "SBER")
HOLDER_COL  = _CFG.get("feed", {}).get("holder_col", "holder")
PERCENT_COL = _CFG.get("feed", {}).get("percent_col", "share_percent")

VIEWPORT   = _CFG.get("viewport", {}) or {}

FONT_BOLD_NAME = _CFG.get("fonts", {}).get("bold_name", "Helvetica-Bold")
FONT_MED_NAME  = _CFG.get("fonts", {}).get("medium_name", "Helvetica")
_bold_path = _CFG.get("fonts", {}).get("bold_path")
_med_path  = _CFG.get("fonts", {}).get("medium_path")
FONT_BOLD_PATH = str(HERE / _bold_path) if _bold_path else None
FONT_MED_PATH  = str(HERE / _med_path) if _med_path else None

LAYOUT = layout_from_config(_CFG)
