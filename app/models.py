from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SEVERITIES = ("critical", "high", "moderate", "low", "info")
UNKNOWN_SEVERITY = "unknown"


class AuditRecord(BaseModel):
    """One vulnerable package, flattened for the table and the reports."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    version: str = "unknown"
    vulnerability: str = "unknown"
    severity: str = UNKNOWN_SEVERITY
    recommendation: str = "No specific recommendation"
    cvss_score: Optional[float] = None
    cvss_vector: Optional[str] = None
    source: Optional[Any] = None
    url: Optional[str] = None
    cwe: Optional[List[str]] = None


class AuditSummary(BaseModel):
    info: int = 0
    low: int = 0
    moderate: int = 0
    high: int = 0
    critical: int = 0
    total: int = 0

    @classmethod
    def from_records(cls, records: List[AuditRecord]) -> "AuditSummary":
        counts = {s: 0 for s in SEVERITIES}
        for r in records:
            if r.severity in counts:
                counts[r.severity] += 1
        return cls(total=len(records), **counts)


class AuditResult(BaseModel):
    vulnerabilities: List[AuditRecord] = []
    metadata: Optional[Dict[str, Any]] = None

    def summary(self) -> AuditSummary:
        """Severity counts from the tool's metadata, or counted from the records."""
        counts = (self.metadata or {}).get("vulnerabilities")
        if isinstance(counts, dict):
            summary = AuditSummary(**{k: v for k, v in counts.items() if k in AuditSummary.model_fields})
            # npm 6 reports carry no total
            if "total" not in counts:
                summary.total = sum(getattr(summary, s) for s in SEVERITIES)
            return summary
        return AuditSummary.from_records(self.vulnerabilities)
