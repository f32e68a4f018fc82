import json

import pytest

from app.models import AuditRecord, AuditResult
from app.services.normalizer import normalize_report
from app.services import reports
from app.services.reports import (
    DETAIL_HEADERS,
    detail_row,
    format_score,
    pdf_detail_rows,
    render_markdown,
    render_pdf,
    summary_rows,
)
from conftest import load_fixture


@pytest.fixture
def result():
    return normalize_report(json.loads(load_fixture("audit_v2_lodash.json")))


def _table_rows(markdown):
    lines = markdown.splitlines()
    start = lines.index("## Vulnerability Details") + 4
    return lines[start:]


def test_markdown_layout(result):
    md = render_markdown(result)
    assert md.startswith("# NPM Audit Report\n")
    assert "- Total: 4\n" in md
    assert "- Critical: 2\n" in md
    assert "- Info: 0\n" in md
    assert "| Package | Version | Vulnerability | Severity | CVSS Score | Recommendation |" in md


def test_markdown_has_every_record_exactly_once(result):
    rows = _table_rows(render_markdown(result))
    assert len(rows) == len(result.vulnerabilities)
    for record in result.vulnerabilities:
        assert sum(1 for row in rows if row.startswith(f"| {record.name} |")) == 1


def test_markdown_escapes_pipes_and_newlines():
    result = AuditResult(vulnerabilities=[
        AuditRecord(name="a", vulnerability="x | y", recommendation="line one\nline two"),
    ])
    [row] = _table_rows(render_markdown(result))
    assert "x \\| y" in row
    assert "line one line two" in row


def test_markdown_missing_score_is_na(result):
    rows = _table_rows(render_markdown(result))
    row = next(r for r in rows if r.startswith("| minimist |"))
    assert "| N/A |" in row


def test_markdown_for_empty_result():
    md = render_markdown(AuditResult())
    assert "- Total: 0" in md
    assert _table_rows(md) == []


def test_detail_rows_cover_every_record_once(result):
    rows = [detail_row(r) for r in result.vulnerabilities]
    assert [row[0] for row in rows] == ["lodash", "express-handlebars", "minimist", "left-pad"]
    assert rows[0][4] == "9.1"


def test_summary_rows_order(result):
    assert [label for label, _ in summary_rows(result.summary())] == [
        "Total", "Critical", "High", "Moderate", "Low", "Info",
    ]


def test_format_score():
    assert format_score(None) == "N/A"
    assert format_score(7.0) == "7.0"


def test_render_pdf_produces_document(result):
    pdf = render_pdf(result)
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


def test_render_pdf_handles_markup_characters():
    result = AuditResult(vulnerabilities=[
        AuditRecord(name="<script>", vulnerability="a & b < c", recommendation="use >= 2.0"),
    ])
    assert render_pdf(result).startswith(b"%PDF")


def test_render_pdf_spans_pages_for_many_records():
    records = [AuditRecord(name=f"pkg-{i}", severity="low") for i in range(120)]
    small = render_pdf(AuditResult(vulnerabilities=records[:1]))
    large = render_pdf(AuditResult(vulnerabilities=records))
    assert len(large) > len(small)


def test_pdf_rows_hold_every_record_exactly_once(result):
    rows = pdf_detail_rows(result)
    assert rows[0] == DETAIL_HEADERS
    names = [row[0] for row in rows[1:]]
    assert names == ["lodash", "express-handlebars", "minimist", "left-pad"]
    for record in result.vulnerabilities:
        assert names.count(record.name) == 1


def test_render_pdf_lays_out_the_pdf_rows(monkeypatch):
    records = [AuditRecord(name=f"pkg-{i}", severity="low") for i in range(45)]
    seen = []

    def recording_rows(result):
        rows = pdf_detail_rows(result)
        seen.append(rows)
        return rows

    monkeypatch.setattr(reports, "pdf_detail_rows", recording_rows)
    assert render_pdf(AuditResult(vulnerabilities=records)).startswith(b"%PDF")

    assert len(seen) == 1
    body = seen[0][1:]
    assert len(body) == len(records)
    assert sorted(row[0] for row in body) == sorted(r.name for r in records)
