#!/usr/bin/env python3
"""
Streamlit viewer for the shareholder structure.

Pick or upload a holder feed (JSON as served by the shareholders endpoint, or a
CSV/XLSX with ``holder`` / ``share_percent`` columns), see the reconciled table
next to the donut, and drive the tooltip the way a browser would: hover a
legend row, tap a legend row, or tap a point on the ring. The SVG and a
one-page PDF can be downloaded.
"""
from __future__ import annotations

import tempfile
import traceback
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
import streamlit as st

from build_report import merge_overlay, paint_report, register_fonts
from chart_config import FEED_PATH, LAYOUT, REPORT_TEMPLATE_PDF, VIEWPORT, DonutLayout
from donut import donut_svg, sector_at, sector_geometries, static_probe_for, tooltip_size_for
from donut_placement import DonutPlacement
from shareholder_structure import (
    OwnershipEntry,
    format_percent,
    load_feed,
    ownership_frame,
    reconcile,
    updated_at_line,
)


MODE_NONE = "Nothing"
MODE_LEGEND_HOVER = "Hover legend row"
MODE_LEGEND_TAP = "Tap legend row"
MODE_RING_TAP = "Tap point (viewport px)"

# ----------------------------
# Helpers
# ----------------------------

def log(msg: str) -> None:
    st.session_state.setdefault("log", [])
    st.session_state.log.append(msg)


def reset_log() -> None:
    st.session_state["log"] = []


def table_for_display(entries: List[OwnershipEntry]) -> pd.DataFrame:
    """Holder / share columns as shown in the UI table, ``"12.34 %"`` formatting."""
    df = ownership_frame(entries)
    return df[["holder", "percent_display"]].rename(
        columns={"holder": "Holder", "percent_display": "Share, %"}
    )


def apply_interaction(engine: DonutPlacement, mode: str, index: Optional[int],
                      tap: Optional[Tuple[float, float]]) -> Optional[str]:
    """Replay one UI event on the engine; returns a log line describing it."""
    if mode == MODE_LEGEND_HOVER and index is not None:
        engine.on_legend_enter(index)
        return f"legend hover #{index}"
    if mode == MODE_LEGEND_TAP and index is not None:
        engine.on_legend_activate(index)
        return f"legend tap #{index}"
    if mode == MODE_RING_TAP and tap is not None:
        local = engine.local_pos_in_pie(tap)
        hit = sector_at(local, engine.values, engine.layout) if local is not None else None
        if hit is None:
            engine.on_leave()
            return f"tap at {tap} missed the ring"
        engine.on_tap_or_click(sector_geometries(engine.values, engine.layout)[hit], tap)
        return f"tap at {tap} hit sector #{hit}"
    return None


def load_entries(uploaded) -> List[OwnershipEntry]:
    if uploaded is None:
        return reconcile(load_feed(FEED_PATH))
    suffix = Path(uploaded.name).suffix.lower()
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        tmp.write(uploaded.read())
        tmp_path = Path(tmp.name)
    try:
        return reconcile(load_feed(tmp_path))
    finally:
        tmp_path.unlink(missing_ok=True)

# ----------------------------
# Streamlit UI
# ----------------------------

def main() -> None:
    st.set_page_config(page_title="Shareholder structure", page_icon="🍩", layout="wide")
    if "log" not in st.session_state:
        reset_log()

    st.title("Shareholder structure")

    with st.sidebar:
        st.header("Device")
        touch = st.checkbox("Touch device (discrete taps)", value=LAYOUT.touch)
        st.header("Viewport")
        vw = st.number_input("Viewport width", value=float(VIEWPORT.get("width", 1280)), step=10.0)
        vh = st.number_input("Viewport height", value=float(VIEWPORT.get("height", 800)), step=10.0)
        card_top = st.number_input("Card top (scroll)", value=float(VIEWPORT.get("card_top", 120)), step=10.0)

    uploaded = st.file_uploader("Holder feed (.json, .csv, .xlsx)", type=["json", "csv", "xlsx"])

    try:
        entries = load_entries(uploaded)
    except ValueError as e:
        st.error(f"Could not read feed: {e}")
        log(f"❌ {e}")
        return
    except Exception as e:
        st.error("Feed failed to load. See log below.")
        log(f"❌ Fatal error: {e}\n{traceback.format_exc()}")
        st.code("\n".join(st.session_state.log), language="text")
        return

    if not entries:
        st.info("The feed has no holders.")
        return

    layout: DonutLayout = replace(LAYOUT, touch=touch)
    viewport = dict(VIEWPORT, width=vw, height=vh, card_top=card_top)
    probe = static_probe_for(entries, layout, viewport)
    engine = DonutPlacement([e.percent for e in entries], probe, layout)

    names = [e.name for e in entries]
    col_table, col_chart = st.columns([2, 3])

    with col_table:
        st.dataframe(table_for_display(entries), hide_index=True, use_container_width=True)
        st.caption(updated_at_line())
        total = sum(e.percent for e in entries)
        st.caption(f"Total: {format_percent(total)}")

    with col_chart:
        mode = st.radio("Interaction", [MODE_NONE, MODE_LEGEND_HOVER, MODE_LEGEND_TAP, MODE_RING_TAP],
                        horizontal=True)
        index = None
        tap = None
        if mode in (MODE_LEGEND_HOVER, MODE_LEGEND_TAP):
            index = names.index(st.selectbox("Legend row", names))
        elif mode == MODE_RING_TAP:
            c1, c2 = st.columns(2)
            tap = (
                c1.number_input("x", value=float(probe.pie.left + layout.width / 2 + layout.outer - 20)),
                c2.number_input("y", value=float(probe.pie.top + layout.height / 2)),
            )

        event = apply_interaction(engine, mode, index, tap)
        if event:
            log(event)
        if engine.active_index is not None:
            item = entries[engine.active_index]
            probe.tooltip = tooltip_size_for(item.name, item.percent)
            place = engine.placement()
            if place is not None:
                log(f"tooltip {place.placement} at ({place.x:.1f}, {place.y:.1f})")
        elif mode == MODE_LEGEND_HOVER and layout.touch:
            st.caption("Hover is ignored on touch devices.")

        pie_offset = (probe.pie.left - probe.card.left, probe.pie.top - probe.card.top)
        svg = donut_svg(None, entries, engine, layout, pie_offset)
        st.markdown(f'<div class="chart-card">{svg}</div>', unsafe_allow_html=True)

        st.download_button("Download SVG", data=svg, file_name="shareholder_donut.svg",
                           mime="image/svg+xml")
        register_fonts()
        with tempfile.TemporaryDirectory() as tmp:
            pdf_path = Path(tmp) / "shareholder_structure.pdf"
            merge_overlay(REPORT_TEMPLATE_PDF, paint_report(entries), pdf_path)
            st.download_button("Download PDF", data=pdf_path.read_bytes(),
                               file_name=pdf_path.name, mime="application/pdf")

    st.write("### Log")
    st.code("\n".join(st.session_state.log[-20:]) or "Ready.", language="text")


if __name__ == "__main__":
    main()
