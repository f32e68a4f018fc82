from typing import Any, Dict, Optional


class AuditError(Exception):
    """Base for failures that end an audit request with a JSON error body."""

    status_code = 500
    error = "Failed to perform npm audit"

    def __init__(self, details: str = "", error: Optional[str] = None):
        super().__init__(details or self.error)
        self.details = details
        if error:
            self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "details": self.details}


class InvalidDependenciesError(AuditError):
    status_code = 400
    error = "Invalid dependencies format"


class ManifestUploadError(AuditError):
    status_code = 400
    error = "Invalid package.json upload"


class LockfileGenerationError(AuditError):
    error = "Failed to create package-lock.json"


class AuditToolError(AuditError):
    """npm answered with its own JSON error envelope instead of a report."""

    error = "npm audit reported an error"


class AuditOutputParseError(AuditError):
    error = "Failed to parse npm audit output"

    def __init__(self, details: str, stdout: Optional[str], stderr: Optional[str]):
        super().__init__(details)
        self.stdout = stdout
        self.stderr = stderr

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["stdout"] = self.stdout
        body["stderr"] = self.stderr
        return body
