import logging
import traceback
from functools import lru_cache

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse

from app.config import Settings
from app.models import AuditResult
from app.services.errors import AuditError, InvalidDependenciesError, ManifestUploadError
from app.services.npm_audit import NpmAuditor, parse_dependencies, parse_manifest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def get_auditor(settings: Settings = Depends(get_settings)) -> NpmAuditor:
    return NpmAuditor(settings)


def _unexpected_failure(e: Exception) -> JSONResponse:
    logger.exception("Error performing npm audit: %s", e)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Failed to perform npm audit",
            "details": str(e),
            "stack": traceback.format_exc(),
        },
    )


async def _audit(auditor: NpmAuditor, payload) -> AuditResult:
    dependencies = parse_dependencies(payload)
    return await auditor.audit(dependencies)


@router.post("/npm-audit", response_model=AuditResult)
async def npm_audit(request: Request, auditor: NpmAuditor = Depends(get_auditor)):
    """Audit a ``{"dependencies": {name: range}}`` body with npm audit."""
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidDependenciesError("Request body must be valid JSON")

    try:
        return await _audit(auditor, payload)
    except AuditError:
        raise
    except Exception as e:
        return _unexpected_failure(e)


@router.post("/npm-audit/upload", response_model=AuditResult)
async def npm_audit_upload(file: UploadFile = File(...), auditor: NpmAuditor = Depends(get_auditor)):
    """Audit the dependencies of an uploaded package.json."""
    try:
        content = await file.read()
    except Exception as e:
        raise ManifestUploadError(f"Failed to read uploaded file: {e}")
    manifest = parse_manifest(content)
    logger.info("Received manifest upload %s", file.filename)

    try:
        return await _audit(auditor, manifest)
    except AuditError:
        raise
    except Exception as e:
        return _unexpected_failure(e)
