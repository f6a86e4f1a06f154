import json
from datetime import date

import pandas as pd
import pytest

from shareholder_structure import (
    OwnershipEntry,
    RawRow,
    format_percent,
    load_feed,
    ownership_frame,
    parse_percent,
    reconcile,
    round2,
    rows_from_frame,
    rows_from_payload,
    total_percent,
    updated_at_line,
)


def _rows(*pairs):
    return [RawRow(h, p) for h, p in pairs]


def _percents(entries):
    return [e.percent for e in entries]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("40,004", 40.004),
        ("30", 30.0),
        (" 7,5 %", 7.5),
        ("12abc", 12.0),
        ("1e2", 100.0),
        ("1,234,5", 1.234),
        ("", 0.0),
        (None, 0.0),
        ("n/a", 0.0),
        ("nan", 0.0),
        ("-5", 0.0),
    ],
)
def test_parse_percent_is_permissive(text, expected):
    assert parse_percent(text) == pytest.approx(expected)


def test_round2_rounds_half_up():
    assert round2(2.675) == 2.68
    assert round2(0.125) == 0.13
    assert round2(33.333333) == 33.33


def test_format_percent():
    assert format_percent(12.3) == "12.30 %"
    assert format_percent(40.005, decimal=",") == "40,01 %"


def test_worked_example_dedupes_and_rescales():
    rows = _rows(("A", "40,004"), ("B", "30"), ("A", "99"), ("C", "29.99"))
    out = reconcile(rows)

    assert [e.name for e in out] == ["A", "B", "C"]
    assert [e.id for e in out] == ["1", "2", "3"]
    assert _percents(out) == [40.01, 30.0, 29.99]
    assert total_percent(out) == 100.0
    assert max(out, key=lambda e: e.percent).name == "A"


def test_first_occurrence_wins_after_trimming():
    rows = _rows(("  Bank ", "60"), ("Bank", "10"), ("Fund", "40"))
    out = reconcile(rows)
    assert out == [OwnershipEntry("1", "Bank", 60.0), OwnershipEntry("2", "Fund", 40.0)]


def test_positive_residual_goes_to_first_of_equal_largest():
    out = reconcile(_rows(("A", "1"), ("B", "1"), ("C", "1")))
    assert _percents(out) == [33.34, 33.33, 33.33]


def test_negative_residual_spreads_round_robin():
    out = reconcile(_rows(*[(f"H{i}", "1") for i in range(6)]))
    assert _percents(out) == [16.66, 16.66, 16.67, 16.67, 16.67, 16.67]
    assert total_percent(out) == 100.0


def test_largest_holder_absorbs_correction_first():
    out = reconcile(_rows(("A", "1"), ("B", "1"), ("C", "1"), ("D", "3")))
    # order is first-seen even though D was adjusted
    assert [e.name for e in out] == ["A", "B", "C", "D"]
    assert _percents(out) == [16.67, 16.67, 16.67, 49.99]


def test_already_normalised_list_is_unchanged():
    rows = _rows(("A", "50,00"), ("B", "30.25"), ("C", "19.75"))
    assert _percents(reconcile(rows)) == [50.0, 30.25, 19.75]


def test_exact_sum_is_accepted_without_redistribution():
    rows = _rows(("A", "33.335"), ("B", "33.335"), ("C", "33.33"))
    assert _percents(reconcile(rows)) == [33.34, 33.34, 33.33]


@pytest.mark.parametrize("n", [2, 3, 7, 11, 29])
def test_reconciled_sets_sum_to_100(n):
    rows = _rows(*[(f"Holder {i}", f"{(i + 1) * 1.37:.3f}".replace(".", ",")) for i in range(n)])
    out = reconcile(rows)
    assert len(out) == n
    assert abs(sum(_percents(out)) - 100) < 0.005
    assert all(round(p, 2) == p and p >= 0 for p in _percents(out))


def test_empty_input():
    assert reconcile([]) == []


def test_all_zero_input_stays_at_zero():
    out = reconcile(_rows(("A", ""), ("B", "0"), ("C", "junk")))
    assert _percents(out) == [0.0, 0.0, 0.0]
    assert [e.id for e in out] == ["1", "2", "3"]


def test_missing_percent_counts_as_zero():
    out = reconcile(_rows(("A", "50"), ("B", "")))
    assert _percents(out) == [100.0, 0.0]


def test_rows_from_payload_handles_ticker_and_missing_fields():
    payload = {"SBER": [{"holder": "A", "share_percent": "1,5"}, {"holder": "B"}, {"holder": "C", "share_percent": None}]}
    rows = rows_from_payload(payload, "SBER")
    assert rows == [RawRow("A", "1,5"), RawRow("B", ""), RawRow("C", "")]
    assert rows_from_payload({"GAZP": []}, "SBER") == []
    assert rows_from_payload([{"holder": "X", "share_percent": "3"}]) == [RawRow("X", "3")]


def test_load_feed_json(tmp_path):
    path = tmp_path / "feed.json"
    path.write_text(json.dumps({"SBER": [{"holder": "A", "share_percent": "60"},
                                         {"holder": "B", "share_percent": "40"}]}), encoding="utf-8")
    out = reconcile(load_feed(path))
    assert [(e.name, e.percent) for e in out] == [("A", 60.0), ("B", 40.0)]


def test_load_feed_csv(tmp_path):
    path = tmp_path / "feed.csv"
    path.write_text("holder,share_percent\nA,\"10,5\"\nB,\nA,99\n", encoding="utf-8")
    rows = load_feed(path)
    assert rows == [RawRow("A", "10,5"), RawRow("B", ""), RawRow("A", "99")]


def test_load_feed_xlsx(tmp_path):
    pytest.importorskip("openpyxl")
    path = tmp_path / "feed.xlsx"
    pd.DataFrame({"holder": ["A", "B"], "share_percent": ["70", "30"]}).to_excel(path, index=False)
    assert load_feed(path) == [RawRow("A", "70"), RawRow("B", "30")]


def test_load_feed_rejects_unknown_format(tmp_path):
    path = tmp_path / "feed.txt"
    path.write_text("A 100", encoding="utf-8")
    with pytest.raises(ValueError):
        load_feed(path)


def test_rows_from_frame_requires_holder_column():
    with pytest.raises(ValueError):
        rows_from_frame(pd.DataFrame({"name": ["A"]}))


def test_rows_from_frame_without_percent_column():
    rows = rows_from_frame(pd.DataFrame({"holder": ["A", None, "B"]}))
    assert rows == [RawRow("A", ""), RawRow("B", "")]


def test_ownership_frame_and_updated_line():
    entries = [OwnershipEntry("1", "A", 60.0), OwnershipEntry("2", "B", 40.0)]
    df = ownership_frame(entries)
    assert list(df.columns) == ["id", "holder", "percent", "percent_display"]
    assert df["percent_display"].tolist() == ["60.00 %", "40.00 %"]
    assert updated_at_line(date(2024, 3, 5)) == "Last updated: 05.03.2024"
