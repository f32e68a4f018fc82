import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.services.errors import AuditError

logger = logging.getLogger(__name__)


async def _audit_error_handler(_request: Request, exc: AuditError) -> JSONResponse:
    logger.warning("%s: %s", exc.error, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Map AuditError subclasses to their JSON error bodies."""
    app.add_exception_handler(AuditError, _audit_error_handler)  # type: ignore[arg-type]
