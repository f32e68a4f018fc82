from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from app.models import AuditResult
from app.services.presentation import DEFAULT_PAGE_SIZE, build_dashboard
from app.services.reports import render_markdown, render_pdf

router = APIRouter(prefix="/api/npm-audit")


@router.post("/report")
def export_report(
    result: AuditResult,
    format_: Literal["markdown", "pdf"] = Query("markdown", alias="format"),
):
    """Export an audit result as a Markdown or PDF download."""
    if format_ == "pdf":
        return Response(
            content=render_pdf(result),
            media_type="application/pdf",
            headers={"Content-Disposition": 'attachment; filename="npm-audit-report.pdf"'},
        )
    return Response(
        content=render_markdown(result),
        media_type="text/markdown",
        headers={"Content-Disposition": 'attachment; filename="npm-audit-report.md"'},
    )


@router.post("/dashboard")
def dashboard(
    result: AuditResult,
    q: Optional[str] = None,
    sort: Optional[str] = None,
    desc: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
):
    """Filtered, sorted, paginated table plus summary cards, chart and insights."""
    try:
        return build_dashboard(result, query=q, sort=sort, descending=desc, page=page, page_size=page_size)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
