import logging

from fastapi import FastAPI
from dotenv import load_dotenv

# Load environment variables from .env at startup (if present)
load_dotenv()

from app.config import Settings
from app.errors import register_error_handlers
from app.routes import audit, reports


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # basicConfig is a no-op once handlers exist, the level still has to apply
    logging.getLogger().setLevel(settings.log_level)


configure_logging(Settings.from_env())

app = FastAPI(title="NPM Audit Scanner API")

register_error_handlers(app)

app.include_router(audit.router)
app.include_router(reports.router)


@app.get("/health")
def health():
    return {"status": "ok"}
