import io
import json
from datetime import date

from pypdf import PdfReader

from build_report import _wrap_text_by_words, build_report, merge_overlay, paint_report
from shareholder_structure import OwnershipEntry

ENTRIES = [
    OwnershipEntry("1", "Central Bank of the Russian Federation", 50.0),
    OwnershipEntry("2", "Free float", 49.0),
    OwnershipEntry("3", "Treasury shares", 1.0),
]


def test_wrap_text_respects_width():
    from reportlab.pdfbase import pdfmetrics

    lines = _wrap_text_by_words("Central Bank of the Russian Federation", "Helvetica", 11, 100)
    assert len(lines) > 1
    assert all(pdfmetrics.stringWidth(line, "Helvetica", 11) <= 100 for line in lines)
    assert _wrap_text_by_words("", "Helvetica", 11, 100) == [""]


def test_wrap_text_splits_long_tokens():
    lines = _wrap_text_by_words("X" * 80, "Helvetica", 11, 60)
    assert len(lines) > 1
    assert "".join(lines) == "X" * 80


def test_paint_report_is_single_page_pdf():
    data = paint_report(ENTRIES, date(2024, 3, 5))
    assert data.startswith(b"%PDF")
    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) == 1
    text = reader.pages[0].extract_text()
    assert "Shareholder structure" in text
    assert "50.00 %" in text
    assert "05.03.2024" in text


def test_paint_report_with_zero_holders():
    data = paint_report([OwnershipEntry("1", "A", 0.0)], date(2024, 1, 1))
    assert len(PdfReader(io.BytesIO(data)).pages) == 1


def test_merge_overlay_without_template(tmp_path):
    out = tmp_path / "out.pdf"
    merge_overlay(None, paint_report(ENTRIES), out)
    assert len(PdfReader(str(out)).pages) == 1


def test_merge_overlay_onto_template(tmp_path):
    template = tmp_path / "template.pdf"
    merge_overlay(None, paint_report([], title="Template"), template)
    out = tmp_path / "out.pdf"
    merge_overlay(str(template), paint_report(ENTRIES), out)
    text = PdfReader(str(out)).pages[0].extract_text()
    assert "Template" in text
    assert "Free float" in text


def test_build_report_from_feed(tmp_path):
    feed = tmp_path / "feed.json"
    feed.write_text(json.dumps({"SBER": [{"holder": "A", "share_percent": "1"},
                                         {"holder": "B", "share_percent": "1"},
                                         {"holder": "C", "share_percent": "1"}]}), encoding="utf-8")
    path = build_report(str(feed), str(tmp_path / "reports"), template_pdf=None, day=date(2024, 1, 2))
    assert path.exists()
    text = PdfReader(str(path)).pages[0].extract_text()
    assert "33.34 %" in text
