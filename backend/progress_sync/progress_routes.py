"""Reference remote store endpoints: username claims and whole-record progress reads/writes."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import JSONResponse

from .config import Settings, get_settings
from .db.session import session_scope
from .models import parse_progress
from .repositories.progress_records import progress_records
from .telemetry import emit_event
from .tokens import issue_token, verify_token


router = APIRouter(prefix="/api", tags=["progress"])
logger = logging.getLogger(__name__)

USERNAME_REGEX = re.compile(r"[a-zA-Z0-9_-]{3,20}")
CLAIM_FORMAT_ERROR = (
    "Username must be 3-20 characters and can only contain letters, numbers, hyphens, and underscores."
)
INVALID_USERNAME_ERROR = "Invalid username format."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _normalized(username: Any) -> Optional[str]:
    if not isinstance(username, str) or not USERNAME_REGEX.fullmatch(username):
        return None
    return username.lower()


@router.post("/username")
def claim_username(
    body: Optional[Dict[str, Any]] = Body(default=None),
    settings: Settings = Depends(get_settings),
):
    body = body or {}
    normalized = _normalized(body.get("username"))
    if normalized is None:
        return _error(400, CLAIM_FORMAT_ERROR)
    token = issue_token(normalized, settings.auth_secret)
    try:
        with session_scope() as session:
            if progress_records.exists(session, normalized):
                emit_event("server_username_claim", username=normalized, created=False)
                return {"exists": True, "username": normalized, "token": token}
            progress_records.create_empty(session, normalized)
    except SQLAlchemyError:
        logger.exception("Database error while claiming username %s", normalized)
        return _error(500, "Internal server error")
    emit_event("server_username_claim", username=normalized, created=True)
    return {"created": True, "username": normalized, "token": token}


@router.get("/progress")
def get_progress(username: Optional[str] = Query(default=None)):
    normalized = _normalized(username)
    if normalized is None:
        return _error(400, INVALID_USERNAME_ERROR)
    try:
        with session_scope(commit=False) as session:
            payload = progress_records.get_payload(session, normalized)
    except SQLAlchemyError:
        logger.exception("Database error while loading progress for %s", normalized)
        return _error(500, "Internal server error")
    if payload is None:
        return _error(404, "No progress found for this username.")
    return payload


@router.put("/progress")
def put_progress(
    body: Optional[Dict[str, Any]] = Body(default=None),
    settings: Settings = Depends(get_settings),
):
    body = body or {}
    normalized = _normalized(body.get("username"))
    if normalized is None:
        return _error(400, INVALID_USERNAME_ERROR)
    token = body.get("token")
    if not isinstance(token, str) or not verify_token(normalized, token, settings.auth_secret):
        return _error(401, "Invalid or missing authentication token.")
    progress = parse_progress(body.get("progress"), strict=False)
    if progress is None:
        return _error(400, "Invalid progress data.")
    try:
        with session_scope() as session:
            progress_records.put(session, normalized, progress)
    except SQLAlchemyError:
        logger.exception("Database error while saving progress for %s", normalized)
        return _error(500, "Internal server error")
    emit_event("server_progress_put", username=normalized, xp=progress.xp)
    return {"ok": True}


__all__ = ["router"]
