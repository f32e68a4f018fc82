"""Turn raw ``npm audit --json`` output into flat AuditRecord rows.

Two report shapes exist in the wild: the npm 7+ ``vulnerabilities`` map keyed
by package name, and the npm 6 ``advisories`` map keyed by advisory id. Both
end up as the same record shape.
"""
import logging
from typing import Any, Dict, List, Optional

from app.models import SEVERITIES, UNKNOWN_SEVERITY, AuditRecord, AuditResult
from app.services.errors import AuditToolError

logger = logging.getLogger(__name__)

NO_RECOMMENDATION = "No specific recommendation"


def normalize_severity(value: Any) -> str:
    if isinstance(value, str) and value.lower() in SEVERITIES:
        return value.lower()
    return UNKNOWN_SEVERITY


def _first_cause(via: Any) -> Any:
    if isinstance(via, list):
        return via[0] if via else None
    return via


def _recommendation(fix: Any) -> str:
    if isinstance(fix, dict) and fix.get("name"):
        text = f"Upgrade {fix['name']} to version {fix.get('version', 'latest')}"
        if fix.get("isSemVerMajor"):
            text += " (semver major)"
        return text
    if fix is True:
        return "Run npm audit fix"
    return NO_RECOMMENDATION


def _cvss(cvss: Any):
    if not isinstance(cvss, dict):
        return None, None
    score = cvss.get("score")
    vector = cvss.get("vectorString") or None
    # npm reports advisories without CVSS data as score 0 and a null vector
    if not score and not vector:
        return None, None
    try:
        score = float(score) if score is not None else None
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric CVSS score %r", score)
        score = None
    return score, vector


def _cwe_list(cwe: Any) -> Optional[List[str]]:
    if isinstance(cwe, str):
        return [cwe] if cwe else None
    if isinstance(cwe, list):
        return [str(c) for c in cwe] or None
    return None


def _from_vulnerability(name: str, info: Dict[str, Any]) -> AuditRecord:
    via = _first_cause(info.get("via"))
    record = AuditRecord(
        name=name,
        version=info.get("range") or "unknown",
        severity=normalize_severity(info.get("severity")),
        recommendation=_recommendation(info.get("fixAvailable")),
    )
    if isinstance(via, dict):
        record.vulnerability = via.get("title") or "unknown"
        record.cvss_score, record.cvss_vector = _cvss(via.get("cvss"))
        record.source = via.get("source")
        record.url = via.get("url")
        record.cwe = _cwe_list(via.get("cwe"))
    elif isinstance(via, str) and via:
        # transitive: the finding comes in through another vulnerable package
        record.vulnerability = via
    return record


def _from_advisory(advisory: Dict[str, Any]) -> AuditRecord:
    score, vector = _cvss(advisory.get("cvss"))
    return AuditRecord(
        name=advisory.get("module_name") or "unknown",
        version=advisory.get("vulnerable_versions") or "unknown",
        vulnerability=advisory.get("title") or "unknown",
        severity=normalize_severity(advisory.get("severity")),
        recommendation=advisory.get("recommendation") or NO_RECOMMENDATION,
        cvss_score=score,
        cvss_vector=vector,
        source=advisory.get("id"),
        url=advisory.get("url"),
        cwe=_cwe_list(advisory.get("cwe")),
    )


def normalize_report(report: Any) -> AuditResult:
    """Map a parsed npm audit document to an AuditResult.

    Raises AuditToolError when npm returned its error envelope
    (e.g. ``{"error": {"code": "ENOLOCK", ...}}``) instead of a report.
    """
    if not isinstance(report, dict):
        raise AuditToolError(f"Unexpected npm audit output type: {type(report).__name__}")

    err = report.get("error")
    if err:
        if isinstance(err, dict):
            code = err.get("code") or "unknown"
            summary = err.get("summary") or ""
            detail = err.get("detail") or ""
            raise AuditToolError(f"{code}: {summary} {detail}".strip())
        raise AuditToolError(str(err))

    records: List[AuditRecord] = []
    vulnerabilities = report.get("vulnerabilities")
    if isinstance(vulnerabilities, dict):
        for name, info in vulnerabilities.items():
            if not isinstance(info, dict):
                logger.warning("Skipping malformed vulnerability entry for %s", name)
                continue
            records.append(_from_vulnerability(name, info))
    elif isinstance(report.get("advisories"), dict):
        for advisory in report["advisories"].values():
            if isinstance(advisory, dict):
                records.append(_from_advisory(advisory))

    metadata = report.get("metadata")
    return AuditResult(
        vulnerabilities=records,
        metadata=metadata if isinstance(metadata, dict) else None,
    )
