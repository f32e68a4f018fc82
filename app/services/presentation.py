"""Table, card, chart and insight data for the audit dashboard."""
import math
from typing import Any, Dict, List, Optional

from app.models import AuditRecord, AuditResult, AuditSummary

SEVERITY_RANK = {"critical": 5, "high": 4, "moderate": 3, "low": 2, "info": 1, "unknown": 0}

SEVERITY_COLORS = {
    "critical": "#DC2626",
    "high": "#EA580C",
    "moderate": "#CA8A04",
    "low": "#16A34A",
    "info": "#2563EB",
}

CARD_ORDER = ("critical", "high", "moderate", "low", "info")

# columns shown in the table, in display order
COLUMNS = ("name", "version", "vulnerability", "severity", "cvss_score", "recommendation")
_COLUMN_ALIASES = {"cvssScore": "cvss_score"}

DEFAULT_PAGE_SIZE = 10


def _cell_text(record: AuditRecord, column: str) -> str:
    value = getattr(record, column)
    return "" if value is None else str(value)


def filter_records(records: List[AuditRecord], query: Optional[str]) -> List[AuditRecord]:
    """Global filter: keep records where any column contains *query* (case-insensitive)."""
    if not query or not query.strip():
        return list(records)
    needle = query.strip().lower()
    return [r for r in records if any(needle in _cell_text(r, c).lower() for c in COLUMNS)]


def sort_records(records: List[AuditRecord], column: Optional[str], descending: bool = False) -> List[AuditRecord]:
    if not column:
        return list(records)
    column = _COLUMN_ALIASES.get(column, column)
    if column not in COLUMNS:
        raise ValueError(f"Unknown sort column: {column}")

    if column == "severity":
        return sorted(records, key=lambda r: SEVERITY_RANK.get(r.severity, 0), reverse=descending)
    if column == "cvss_score":
        scored = [r for r in records if r.cvss_score is not None]
        unscored = [r for r in records if r.cvss_score is None]
        return sorted(scored, key=lambda r: r.cvss_score, reverse=descending) + unscored
    return sorted(records, key=lambda r: _cell_text(r, column).lower(), reverse=descending)


def paginate(records: List[AuditRecord], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    page_size = max(1, page_size)
    page_count = max(1, math.ceil(len(records) / page_size))
    page = min(max(1, page), page_count)
    start = (page - 1) * page_size
    return {
        "rows": records[start:start + page_size],
        "page": page,
        "page_size": page_size,
        "page_count": page_count,
        "total_rows": len(records),
        "has_previous": page > 1,
        "has_next": page < page_count,
    }


def severity_cards(summary: AuditSummary) -> List[Dict[str, Any]]:
    cards = []
    for severity in CARD_ORDER:
        count = getattr(summary, severity)
        percentage = (count / summary.total) * 100 if summary.total > 0 else 0.0
        cards.append({
            "severity": severity,
            "label": severity.capitalize(),
            "count": count,
            "percentage": round(percentage, 1),
            "color": SEVERITY_COLORS[severity],
        })
    return cards


def chart_data(summary: AuditSummary) -> Dict[str, Any]:
    return {
        "labels": [s.capitalize() for s in CARD_ORDER],
        "values": [getattr(summary, s) for s in CARD_ORDER],
        "colors": [SEVERITY_COLORS[s] for s in CARD_ORDER],
    }


def insights(summary: AuditSummary) -> List[Dict[str, str]]:
    messages = []
    if summary.total == 0:
        messages.append({"level": "success", "message": "No vulnerabilities found. Great job!"})
    else:
        messages.append({"level": "danger", "message": "Vulnerabilities detected. Action required."})
    if summary.critical > 0:
        messages.append({
            "level": "critical",
            "message": "Critical vulnerabilities found! Immediate action recommended.",
        })
    if summary.high > 0:
        messages.append({
            "level": "high",
            "message": "High severity vulnerabilities present. Address these soon.",
        })
    if summary.moderate > 0 or summary.low > 0:
        messages.append({
            "level": "moderate",
            "message": "Moderate and low severity issues exist. Plan to address these in future updates.",
        })
    return messages


def build_dashboard(
    result: AuditResult,
    query: Optional[str] = None,
    sort: Optional[str] = None,
    descending: bool = False,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    """Everything the dashboard renders for one audit result."""
    summary = result.summary()
    rows = sort_records(filter_records(result.vulnerabilities, query), sort, descending)
    return {
        "summary": summary,
        "cards": severity_cards(summary),
        "chart": chart_data(summary),
        "insights": insights(summary),
        "table": paginate(rows, page, page_size),
    }
