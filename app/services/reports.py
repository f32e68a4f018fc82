"""Markdown and PDF exports of an audit result."""
import io
import logging
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.models import AuditRecord, AuditResult, AuditSummary

logger = logging.getLogger(__name__)

REPORT_TITLE = "NPM Audit Report"
DETAIL_HEADERS = ["Package", "Version", "Vulnerability", "Severity", "CVSS Score", "Recommendation"]
SUMMARY_ROWS = (
    ("Total", "total"),
    ("Critical", "critical"),
    ("High", "high"),
    ("Moderate", "moderate"),
    ("Low", "low"),
    ("Info", "info"),
)


def format_score(score: Optional[float]) -> str:
    return "N/A" if score is None else f"{score:.1f}"


def detail_row(record: AuditRecord) -> List[str]:
    return [
        record.name,
        record.version,
        record.vulnerability,
        record.severity,
        format_score(record.cvss_score),
        record.recommendation,
    ]


def pdf_detail_rows(result: AuditResult) -> List[List[str]]:
    """Header plus one row per record, in report order, as laid out in the PDF table."""
    return [list(DETAIL_HEADERS)] + [detail_row(record) for record in result.vulnerabilities]


def summary_rows(summary: AuditSummary) -> List[Tuple[str, int]]:
    return [(label, getattr(summary, field)) for label, field in SUMMARY_ROWS]


def _md_cell(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def render_markdown(result: AuditResult) -> str:
    summary = result.summary()
    lines = [f"# {REPORT_TITLE}", "", "## Vulnerability Summary", ""]
    lines += [f"- {label}: {count}" for label, count in summary_rows(summary)]
    lines += [
        "",
        "## Vulnerability Details",
        "",
        "| " + " | ".join(DETAIL_HEADERS) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in DETAIL_HEADERS) + "|",
    ]
    for record in result.vulnerabilities:
        lines.append("| " + " | ".join(_md_cell(c) for c in detail_row(record)) + " |")
    return "\n".join(lines) + "\n"


def render_pdf(result: AuditResult) -> bytes:
    """Render the report as a PDF: title, summary table, one detail row per record."""
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"]
    cell_style.fontSize = 8
    cell_style.leading = 10

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        title=REPORT_TITLE,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
    )
    header_style = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2980B9")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
    ])

    summary = result.summary()
    summary_table = Table(
        [["Severity", "Count"]] + [[label, str(count)] for label, count in summary_rows(summary)],
        colWidths=[60 * mm, 30 * mm],
        hAlign="LEFT",
    )
    summary_table.setStyle(header_style)

    details = [[Paragraph(escape(cell), cell_style) for cell in row] for row in pdf_detail_rows(result)]
    details_table = Table(
        details,
        colWidths=[40 * mm, 30 * mm, 70 * mm, 22 * mm, 20 * mm, 85 * mm],
        repeatRows=1,
        hAlign="LEFT",
    )
    details_table.setStyle(header_style)

    story = [
        Paragraph(REPORT_TITLE, styles["Title"]),
        Paragraph("Vulnerability Summary", styles["Heading2"]),
        summary_table,
        Spacer(1, 6 * mm),
        Paragraph("Vulnerability Details", styles["Heading2"]),
        details_table,
    ]
    doc.build(story)
    logger.debug("Rendered PDF report with %d rows", len(result.vulnerabilities))
    return buffer.getvalue()
