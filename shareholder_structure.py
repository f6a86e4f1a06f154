# shareholder_structure.py
# Raw holder feed -> deduplicated ownership list whose percents add up to 100.00.
# Also loads the feed (JSON as served by the shareholders endpoint, or CSV/XLSX
# with the same two columns) and builds the table shown next to the donut.

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from chart_config import FEED_TICKER, HOLDER_COL, PERCENT_COL

log = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
SUM_TOLERANCE = 1e-6

# longest leading float literal, the way a browser parseFloat reads it
_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class RawRow:
    holder: str
    share_percent: str = ""


@dataclass(frozen=True)
class OwnershipEntry:
    id: str
    name: str
    percent: float


# =======================
# Parsing + rounding
# =======================
def parse_percent(text: Optional[str]) -> float:
    """
    Parse a locale-formatted percent such as ``"40,004"``.

    The first comma is read as the decimal separator. Anything that does not
    start with a number (``None``, ``""``, ``"n/a"``) is 0, as are negative,
    NaN and infinite values.
    """
    if text is None:
        return 0.0
    s = str(text).replace(",", ".", 1)
    m = _FLOAT_PREFIX.match(s)
    if not m:
        return 0.0
    value = float(m.group(0))
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def round2(value: float) -> float:
    """Half-up rounding to two decimals on the shortest decimal repr of ``value``."""
    return float(Decimal(repr(float(value))).quantize(TWOPLACES, rounding=ROUND_HALF_UP))


def total_percent(entries: Iterable[OwnershipEntry]) -> float:
    return round2(sum(e.percent for e in entries))


def format_percent(value: float, decimal: str = ".") -> str:
    """``12.3 -> "12.30 %"``; pass ``decimal=","`` for the tooltip style ``"12,30 %"``."""
    txt = f"{round2(value):.2f}"
    if decimal != ".":
        txt = txt.replace(".", decimal)
    return f"{txt} %"


# =======================
# Reconciliation
# =======================
def _dedupe(rows: Iterable[RawRow]) -> Dict[str, float]:
    seen: Dict[str, float] = {}
    for r in rows:
        name = str(r.holder or "").strip()
        if name in seen:
            continue
        seen[name] = parse_percent(r.share_percent)
    return seen


def _distribute_residual(rounded: List[OwnershipEntry], diff: float) -> List[OwnershipEntry]:
    # whole cents still missing (or surplus); largest holders absorb them first
    cents = int(round(abs(diff) * 100))
    if cents == 0 or not rounded:
        return rounded
    step = 0.01 if diff > 0 else -0.01

    ordered = sorted(rounded, key=lambda e: e.percent, reverse=True)
    fixed = {e.name: e.percent for e in ordered}
    for k in range(cents):
        name = ordered[k % len(ordered)].name
        fixed[name] = round2(fixed[name] + step)

    return [OwnershipEntry(e.id, e.name, fixed[e.name]) for e in rounded]


def reconcile(rows: Iterable[RawRow]) -> List[OwnershipEntry]:
    """
    Deduplicate ``rows`` by trimmed holder name and rescale them so the two-decimal
    percents sum to exactly 100.00.

    The first row seen for a holder wins; later duplicates are dropped, not
    summed. Entries come back in first-seen order with ids ``"1".."n"``. When
    rounding leaves a residual, it is paid out in 0.01 steps to the largest
    holders first, round-robin. Never raises.
    """
    seen = _dedupe(rows)
    entries = [OwnershipEntry(str(i + 1), name, pct) for i, (name, pct) in enumerate(seen.items())]
    if not entries:
        return []

    raw_sum = sum(e.percent for e in entries)
    if abs(raw_sum - 100) < SUM_TOLERANCE:
        return [OwnershipEntry(e.id, e.name, round2(e.percent)) for e in entries]

    if raw_sum == 0:
        # nothing to scale; a 100.00 residual spread over zero holders is meaningless
        log.debug("all %d holders at zero percent, leaving them unscaled", len(entries))
        return [OwnershipEntry(e.id, e.name, 0.0) for e in entries]

    rounded = [OwnershipEntry(e.id, e.name, round2(e.percent / raw_sum * 100)) for e in entries]
    diff = round2(100 - sum(e.percent for e in rounded))
    log.debug("rescaled %d holders from %.6f, residual %.2f", len(entries), raw_sum, diff)

    if abs(diff) >= 0.01:
        return _distribute_residual(rounded, diff)
    return rounded


# =======================
# Feed loading
# =======================
def rows_from_records(records: Iterable[Mapping]) -> List[RawRow]:
    """Build RawRows from dicts; an absent or null percent field becomes ``""``."""
    out: List[RawRow] = []
    for rec in records:
        pct = rec.get(PERCENT_COL)
        out.append(RawRow(
            holder=str(rec.get(HOLDER_COL) or ""),
            share_percent="" if pct is None else str(pct),
        ))
    return out


def rows_from_frame(df: pd.DataFrame,
                    holder_col: str = HOLDER_COL,
                    percent_col: str = PERCENT_COL) -> List[RawRow]:
    if holder_col not in df.columns:
        raise ValueError(
            f"Column '{holder_col}' not found. Columns present: {list(df.columns)}"
        )
    df = df.copy()
    if percent_col not in df.columns:
        df[percent_col] = ""
    df = df.dropna(subset=[holder_col]).copy()
    df[percent_col] = df[percent_col].fillna("").astype(str)
    return [RawRow(str(h), p) for h, p in df[[holder_col, percent_col]].values.tolist()]


def rows_from_payload(payload, ticker: str = FEED_TICKER) -> List[RawRow]:
    """Accept either ``{"SBER": [...]}`` or a bare list of row dicts."""
    if isinstance(payload, Mapping):
        payload = payload.get(ticker, [])
    return rows_from_records(payload or [])


def load_feed(path: str | Path, ticker: str = FEED_TICKER) -> List[RawRow]:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".json":
        with open(p, "r", encoding="utf-8") as f:
            return rows_from_payload(json.load(f), ticker)
    if suffix == ".csv":
        return rows_from_frame(pd.read_csv(p, dtype=str, keep_default_na=False))
    if suffix in (".xlsx", ".xls"):
        return rows_from_frame(pd.read_excel(p, dtype=str))
    raise ValueError(f"Unsupported feed format: {p.name}")


# =======================
# Table
# =======================
def ownership_frame(entries: Iterable[OwnershipEntry]) -> pd.DataFrame:
    """Holder table: id, name, numeric percent and the ``"12.34 %"`` display column."""
    rows = [(e.id, e.name, e.percent, format_percent(e.percent)) for e in entries]
    return pd.DataFrame(rows, columns=["id", "holder", "percent", "percent_display"])


def updated_at_line(day: date | None = None) -> str:
    day = day or date.today()
    return f"Last updated: {day.strftime('%d.%m.%Y')}"
