import logging
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .db.session import ensure_schema, get_engine
from .logging_config import configure_logging
from .progress_routes import router as progress_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Progress Sync Remote Store", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(progress_router)


@app.on_event("startup")
def create_schema() -> None:
    try:
        ensure_schema()
    except RuntimeError as exc:
        logger.warning("Remote store database unavailable at startup: %s", exc)
        return
    settings = get_settings()
    if settings.auth_secret == Settings.model_fields["auth_secret"].default:
        logger.warning("PROGRESS_SYNC_AUTH_SECRET is unset; using the built-in default secret.")
    logger.info("Remote store schema ready")


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "database": "configured" if settings.database_url else "missing"}


@app.get("/healthz/database")
def database_health() -> Dict[str, str]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ok", "dialect": engine.dialect.name}
